"""Contentful Content Delivery API connector."""

from typing import Any

from app.core.config import settings
from app.models.cms_integration import CmsType
from app.schemas.connector import FieldType, SourceField
from app.services.connectors.base import (
    CmsConnector,
    ConnectorConfig,
    FetchOptions,
    WebhookConfig,
)
from app.services.connectors.exceptions import ConnectorConfigError

WEBHOOK_TOPICS = [
    "Entry.create",
    "Entry.save",
    "Entry.auto_save",
    "Entry.archive",
    "Entry.unarchive",
    "Entry.publish",
    "Entry.unpublish",
    "Entry.delete",
]

_FIELD_TYPES: dict[str, FieldType] = {
    "Symbol": "string",
    "Text": "string",
    "RichText": "object",
    "Integer": "number",
    "Number": "number",
    "Date": "date",
    "Boolean": "boolean",
    "Array": "array",
    "Object": "object",
    "Location": "object",
    "Link": "object",
}


class ContentfulConfig(ConnectorConfig):
    space_id: str
    api_key: str
    environment: str = "master"
    content_type: str | None = None
    management_token: str | None = None
    cdn_url: str | None = None


class ContentfulConnector(CmsConnector[ContentfulConfig]):
    """Skip/limit pagination against the CDN; entries are keyed by ``sys.id``."""

    cms_type = CmsType.CONTENTFUL
    display_name = "Contentful"
    config_model = ContentfulConfig
    supports_webhooks = True

    def _environment_url(self, config: ContentfulConfig) -> str:
        base = (config.cdn_url or settings.CONTENTFUL_CDN_URL).rstrip("/")
        return f"{base}/spaces/{config.space_id}/environments/{config.environment}"

    def _headers(self, config: ContentfulConfig) -> dict[str, str]:
        return {"Authorization": f"Bearer {config.api_key}"}

    def _management_headers(self, config: ContentfulConfig) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {config.management_token or config.api_key}",
            "Content-Type": "application/vnd.contentful.management.v1+json",
        }

    def id_paths(self, config: ContentfulConfig) -> tuple[str, ...]:
        return ("sys.id",)

    async def _check_connection(self, config: ContentfulConfig) -> None:
        await self._request(
            "GET",
            f"{self._environment_url(config)}/entries",
            params={"limit": 1},
            headers=self._headers(config),
        )

    async def _fetch_page(self, config: ContentfulConfig, options: FetchOptions) -> Any:
        params: dict[str, Any] = {
            "limit": options.limit,
            "skip": options.offset,
            **options.filters,
        }
        if config.content_type:
            params.setdefault("content_type", config.content_type)
        if options.modified_since:
            params["sys.updatedAt[gte]"] = options.modified_since
        data = await self._request(
            "GET",
            f"{self._environment_url(config)}/entries",
            params=params,
            headers=self._headers(config),
        ) or {}
        items = data.get("items", [])
        total = data.get("total")
        if isinstance(total, int) and isinstance(items, list) and options.offset + len(items) >= total:
            options.exhausted = True
        return items

    async def _fetch_one(self, config: ContentfulConfig, document_id: str) -> Any:
        return await self._request(
            "GET",
            f"{self._environment_url(config)}/entries/{document_id}",
            headers=self._headers(config),
        )

    async def _fields(self, config: ContentfulConfig) -> list[SourceField]:
        data = await self._request(
            "GET",
            f"{self._environment_url(config)}/content_types",
            headers=self._headers(config),
        ) or {}

        fields = [
            SourceField(name="sys.id", type="string", label="Entry ID"),
            SourceField(name="sys.createdAt", type="date", label="Created At"),
            SourceField(name="sys.updatedAt", type="date", label="Updated At"),
        ]

        content_types = data.get("items") or []
        if config.content_type:
            content_types = [
                ct for ct in content_types if ct.get("sys", {}).get("id") == config.content_type
            ]
        if content_types:
            for item in content_types[0].get("fields", []):
                fields.append(
                    SourceField(
                        name=f"fields.{item['id']}",
                        type=_FIELD_TYPES.get(item.get("type", ""), "string"),
                        label=item.get("name") or item["id"],
                        required=bool(item.get("required")),
                    )
                )
        return fields

    async def setup_webhook(
        self,
        config: Any,
        webhook_url: str,
        secret: str | None = None,
    ) -> WebhookConfig:
        cfg = self.parse_config(config)
        if not cfg.management_token:
            raise ConnectorConfigError(
                "Contentful webhook registration requires a management_token",
                self.cms_type.value,
            )
        body: dict[str, Any] = {
            "name": "CMS Sync Webhook",
            "url": webhook_url,
            "topics": WEBHOOK_TOPICS,
        }
        data = await self._request(
            "POST",
            f"{settings.CONTENTFUL_MANAGEMENT_URL.rstrip('/')}/spaces/{cfg.space_id}"
            "/webhook_definitions",
            json=body,
            headers=self._management_headers(cfg),
        ) or {}
        return WebhookConfig(
            url=webhook_url,
            # Contentful authenticates deliveries with static headers, not a per-request HMAC.
            secret=secret or "",
            events=list(WEBHOOK_TOPICS),
            registration_id=data.get("sys", {}).get("id"),
        )

    async def teardown_webhook(self, config: Any, registration_id: str) -> None:
        cfg = self.parse_config(config)
        await self._request(
            "DELETE",
            f"{settings.CONTENTFUL_MANAGEMENT_URL.rstrip('/')}/spaces/{cfg.space_id}"
            f"/webhook_definitions/{registration_id}",
            headers=self._management_headers(cfg),
        )
