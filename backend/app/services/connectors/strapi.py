"""Strapi REST connector (v4 ``attributes`` envelopes and v5 flat documents)."""

from typing import Any

from app.models.cms_integration import CmsType
from app.schemas.connector import FieldType, SourceField
from app.services.connectors.base import (
    CmsConnector,
    ConnectorConfig,
    FetchOptions,
    WebhookConfig,
)

WEBHOOK_EVENTS = ["entry.create", "entry.update", "entry.delete"]

_FIELD_TYPES: dict[str, FieldType] = {
    "string": "string",
    "text": "string",
    "richtext": "string",
    "blocks": "object",
    "email": "string",
    "password": "string",
    "enumeration": "string",
    "uid": "string",
    "integer": "number",
    "biginteger": "number",
    "float": "number",
    "decimal": "number",
    "date": "date",
    "datetime": "date",
    "time": "date",
    "boolean": "boolean",
    "json": "object",
    "relation": "object",
    "component": "object",
    "dynamiczone": "object",
    "media": "object",
}


class StrapiConfig(ConnectorConfig):
    url: str
    api_key: str
    collection_type: str = "articles"


class StrapiConnector(CmsConnector[StrapiConfig]):
    """``pagination[page]``/``pagination[pageSize]`` pagination, bearer auth."""

    cms_type = CmsType.STRAPI
    display_name = "Strapi"
    config_model = StrapiConfig
    supports_webhooks = True

    def _headers(self, config: StrapiConfig) -> dict[str, str]:
        return {"Authorization": f"Bearer {config.api_key}"}

    def _api_url(self, config: StrapiConfig) -> str:
        return f"{config.url.rstrip('/')}/api"

    def id_paths(self, config: StrapiConfig) -> tuple[str, ...]:
        return ("documentId", "id")

    async def _check_connection(self, config: StrapiConfig) -> None:
        await self._request(
            "GET",
            f"{self._api_url(config)}/content-type-builder/content-types",
            headers=self._headers(config),
        )

    async def _fetch_page(self, config: StrapiConfig, options: FetchOptions) -> Any:
        params: list[tuple[str, Any]] = [
            ("pagination[pageSize]", options.limit),
            ("pagination[page]", options.page),
            ("populate", "*"),
        ]
        if options.modified_since:
            params.append(("filters[updatedAt][$gte]", options.modified_since))
        for key, value in options.filters.items():
            params.append((f"filters[{key}]", value))

        data = await self._request(
            "GET",
            f"{self._api_url(config)}/{config.collection_type}",
            params=params,
            headers=self._headers(config),
        ) or {}
        page_count = ((data.get("meta") or {}).get("pagination") or {}).get("pageCount")
        if isinstance(page_count, int) and options.page >= page_count:
            options.exhausted = True
        return data.get("data", [])

    async def _fetch_one(self, config: StrapiConfig, document_id: str) -> Any:
        data = await self._request(
            "GET",
            f"{self._api_url(config)}/{config.collection_type}/{document_id}",
            params={"populate": "*"},
            headers=self._headers(config),
        ) or {}
        return data.get("data")

    async def _fields(self, config: StrapiConfig) -> list[SourceField]:
        data = await self._request(
            "GET",
            f"{self._api_url(config)}/content-type-builder/content-types",
            headers=self._headers(config),
        ) or {}

        fields = [
            SourceField(name="id", type="number", label="ID"),
            SourceField(name="attributes.createdAt", type="date", label="Created At"),
            SourceField(name="attributes.updatedAt", type="date", label="Updated At"),
        ]

        collection = config.collection_type
        content_type = next(
            (
                ct
                for ct in data.get("data") or []
                if collection in (ct.get("apiID"), (ct.get("schema") or {}).get("pluralName"))
                or collection in (ct.get("uid") or "")
            ),
            None,
        )
        attributes = ((content_type or {}).get("schema") or {}).get("attributes") or {}
        for key, attr in attributes.items():
            fields.append(
                SourceField(
                    name=f"attributes.{key}",
                    type=_FIELD_TYPES.get(attr.get("type", ""), "string"),
                    label=key[:1].upper() + key[1:],
                    required=bool(attr.get("required")),
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
        data = await self._request(
            "POST",
            f"{self._api_url(cfg)}/webhooks",
            json={
                "name": "CMS Sync Webhook",
                "url": webhook_url,
                "headers": {},
                "events": WEBHOOK_EVENTS,
            },
            headers=self._headers(cfg),
        ) or {}
        created = data.get("data") if isinstance(data.get("data"), dict) else data
        registration_id = created.get("id")
        return WebhookConfig(
            url=webhook_url,
            # Strapi does not sign deliveries; the secret is only useful to a signing proxy.
            secret=secret or "",
            events=list(WEBHOOK_EVENTS),
            registration_id=str(registration_id) if registration_id is not None else None,
        )

    async def teardown_webhook(self, config: Any, registration_id: str) -> None:
        cfg = self.parse_config(config)
        await self._request(
            "DELETE",
            f"{self._api_url(cfg)}/webhooks/{registration_id}",
            headers=self._headers(cfg),
        )
