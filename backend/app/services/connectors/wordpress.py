"""WordPress REST API v2 connector."""

from typing import Any

from app.models.cms_integration import CmsType
from app.schemas.connector import SourceField
from app.services.connectors.base import (
    CmsConnector,
    ConnectorConfig,
    FetchOptions,
    WebhookConfig,
)
from app.services.connectors.exceptions import FetchError

WEBHOOK_EVENTS = ["post_created", "post_updated", "post_deleted"]
INVALID_PAGE_CODE = "rest_post_invalid_page_number"


class WordPressConfig(ConnectorConfig):
    url: str
    api_key: str | None = None
    post_type: str = "posts"


class WordPressConnector(CmsConnector[WordPressConfig]):
    """Page-indexed pagination (``per_page``/``page``), bearer auth.

    Webhook registration requires the WP Webhooks plugin on the site.
    """

    cms_type = CmsType.WORDPRESS
    display_name = "WordPress"
    config_model = WordPressConfig
    supports_webhooks = True

    def _headers(self, config: WordPressConfig) -> dict[str, str]:
        if not config.api_key:
            return {}
        return {"Authorization": f"Bearer {config.api_key}"}

    def _collection_url(self, config: WordPressConfig) -> str:
        return f"{config.url.rstrip('/')}/wp-json/wp/v2/{config.post_type}"

    async def _check_connection(self, config: WordPressConfig) -> None:
        await self._request(
            "GET",
            self._collection_url(config),
            params={"per_page": 1},
            headers=self._headers(config),
        )

    async def _fetch_page(self, config: WordPressConfig, options: FetchOptions) -> Any:
        params: dict[str, Any] = {
            "per_page": options.limit,
            "page": options.page,
            **options.filters,
        }
        if options.modified_since:
            params["modified_after"] = options.modified_since
        try:
            response = await self._send(
                "GET",
                self._collection_url(config),
                params=params,
                headers=self._headers(config),
            )
        except FetchError as exc:
            # WordPress answers a page past the last one with 400, not an empty list.
            if options.page > 1 and exc.status_code == 400 and INVALID_PAGE_CODE in exc.body:
                options.exhausted = True
                return []
            raise
        total_pages = response.headers.get("X-WP-TotalPages")
        if total_pages and total_pages.isdigit() and options.page >= int(total_pages):
            options.exhausted = True
        return self._decode(response)

    async def _fetch_one(self, config: WordPressConfig, document_id: str) -> Any:
        return await self._request(
            "GET",
            f"{self._collection_url(config)}/{document_id}",
            headers=self._headers(config),
        )

    async def _fields(self, config: WordPressConfig) -> list[SourceField]:
        return [
            SourceField(name="title.rendered", type="string", label="Title", required=True),
            SourceField(name="content.rendered", type="string", label="Content", required=True),
            SourceField(name="excerpt.rendered", type="string", label="Excerpt"),
            SourceField(name="date", type="date", label="Published Date"),
            SourceField(name="modified", type="date", label="Modified Date"),
            SourceField(name="author", type="number", label="Author ID"),
            SourceField(name="slug", type="string", label="Slug"),
            SourceField(name="status", type="string", label="Status"),
            SourceField(name="link", type="string", label="Permalink"),
            SourceField(name="categories", type="array", label="Categories"),
            SourceField(name="tags", type="array", label="Tags"),
        ]

    async def setup_webhook(
        self,
        config: Any,
        webhook_url: str,
        secret: str | None = None,
    ) -> WebhookConfig:
        cfg = self.parse_config(config)
        body: dict[str, Any] = {"url": webhook_url, "events": WEBHOOK_EVENTS}
        if secret:
            body["secret"] = secret
        data = await self._request(
            "POST",
            f"{cfg.url.rstrip('/')}/wp-json/wp-webhooks/v1/webhooks",
            json=body,
            headers=self._headers(cfg),
        ) or {}
        registration_id = data.get("id")
        return WebhookConfig(
            url=webhook_url,
            secret=data.get("secret") or secret or "",
            events=list(WEBHOOK_EVENTS),
            registration_id=str(registration_id) if registration_id is not None else None,
        )

    async def teardown_webhook(self, config: Any, registration_id: str) -> None:
        cfg = self.parse_config(config)
        await self._request(
            "DELETE",
            f"{cfg.url.rstrip('/')}/wp-json/wp-webhooks/v1/webhooks/{registration_id}",
            headers=self._headers(cfg),
        )
