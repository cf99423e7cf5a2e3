"""Ghost Content API connector."""

import hmac
import time
from typing import Any

import jwt

from app.models.cms_integration import CmsType
from app.schemas.connector import SourceField
from app.services.connectors.base import (
    CmsConnector,
    ConnectorConfig,
    FetchOptions,
    WebhookConfig,
    compute_signature,
)
from app.services.connectors.exceptions import ConnectorConfigError

WEBHOOK_EVENTS = ["post.published", "post.edited", "post.deleted"]


class GhostConfig(ConnectorConfig):
    url: str
    api_key: str
    admin_api_key: str | None = None


class GhostConnector(CmsConnector[GhostConfig]):
    """Page-indexed pagination with the content key passed as a query parameter.

    Webhooks go through the Admin API, authenticated with a short-lived JWT
    minted from the ``id:secret`` admin key. Ghost signs each delivery with
    ``X-Ghost-Signature: sha256=<hex>, t=<timestamp>``.
    """

    cms_type = CmsType.GHOST
    display_name = "Ghost"
    config_model = GhostConfig
    supports_webhooks = True

    def _content_url(self, config: GhostConfig) -> str:
        return f"{config.url.rstrip('/')}/ghost/api/content"

    def _admin_url(self, config: GhostConfig) -> str:
        return f"{config.url.rstrip('/')}/ghost/api/admin"

    def _admin_headers(self, config: GhostConfig) -> dict[str, str]:
        if not config.admin_api_key or ":" not in config.admin_api_key:
            raise ConnectorConfigError(
                "Ghost webhook registration requires an admin_api_key of the form 'id:secret'",
                self.cms_type.value,
            )
        key_id, secret = config.admin_api_key.split(":", 1)
        try:
            signing_key = bytes.fromhex(secret)
        except ValueError as exc:
            raise ConnectorConfigError(
                "Ghost admin_api_key secret must be hex encoded", self.cms_type.value
            ) from exc
        now = int(time.time())
        token = jwt.encode(
            {"iat": now, "exp": now + 5 * 60, "aud": "/admin/"},
            signing_key,
            algorithm="HS256",
            headers={"kid": key_id},
        )
        return {"Authorization": f"Ghost {token}"}

    async def _check_connection(self, config: GhostConfig) -> None:
        await self._request(
            "GET",
            f"{self._content_url(config)}/posts/",
            params={"key": config.api_key, "limit": 1},
        )

    async def _fetch_page(self, config: GhostConfig, options: FetchOptions) -> Any:
        params: dict[str, Any] = {
            "key": config.api_key,
            "limit": options.limit,
            "page": options.page,
            "include": "authors,tags",
            **options.filters,
        }
        if options.modified_since:
            params["filter"] = f"updated_at:>='{options.modified_since}'"
        data = await self._request("GET", f"{self._content_url(config)}/posts/", params=params) or {}
        pages = ((data.get("meta") or {}).get("pagination") or {}).get("pages")
        if isinstance(pages, int) and options.page >= pages:
            options.exhausted = True
        return data.get("posts", [])

    async def _fetch_one(self, config: GhostConfig, document_id: str) -> Any:
        data = await self._request(
            "GET",
            f"{self._content_url(config)}/posts/{document_id}/",
            params={"key": config.api_key, "include": "authors,tags"},
        ) or {}
        posts = data.get("posts") or []
        return posts[0] if posts else None

    async def _fields(self, config: GhostConfig) -> list[SourceField]:
        return [
            SourceField(name="id", type="string", label="Post ID", required=True),
            SourceField(name="uuid", type="string", label="UUID"),
            SourceField(name="title", type="string", label="Title", required=True),
            SourceField(name="slug", type="string", label="Slug"),
            SourceField(name="html", type="string", label="HTML Content"),
            SourceField(name="plaintext", type="string", label="Plain Text"),
            SourceField(name="excerpt", type="string", label="Excerpt"),
            SourceField(name="published_at", type="date", label="Published At"),
            SourceField(name="created_at", type="date", label="Created At"),
            SourceField(name="updated_at", type="date", label="Updated At"),
            SourceField(name="url", type="string", label="URL"),
            SourceField(name="feature_image", type="string", label="Feature Image"),
            SourceField(name="featured", type="boolean", label="Featured"),
            SourceField(name="visibility", type="string", label="Visibility"),
            SourceField(name="authors", type="array", label="Authors"),
            SourceField(name="tags", type="array", label="Tags"),
            SourceField(name="meta_title", type="string", label="Meta Title"),
            SourceField(name="meta_description", type="string", label="Meta Description"),
        ]

    async def setup_webhook(
        self,
        config: Any,
        webhook_url: str,
        secret: str | None = None,
    ) -> WebhookConfig:
        cfg = self.parse_config(config)
        headers = self._admin_headers(cfg)
        registration_ids: list[str] = []
        # The Admin API creates one webhook per event.
        for event in WEBHOOK_EVENTS:
            hook: dict[str, Any] = {"event": event, "target_url": webhook_url}
            if secret:
                hook["secret"] = secret
            data = await self._request(
                "POST",
                f"{self._admin_url(cfg)}/webhooks/",
                json={"webhooks": [hook]},
                headers=headers,
            ) or {}
            for created in data.get("webhooks") or []:
                if created.get("id"):
                    registration_ids.append(str(created["id"]))
        return WebhookConfig(
            url=webhook_url,
            secret=secret or "",
            events=list(WEBHOOK_EVENTS),
            registration_id=",".join(registration_ids) or None,
        )

    async def teardown_webhook(self, config: Any, registration_id: str) -> None:
        cfg = self.parse_config(config)
        headers = self._admin_headers(cfg)
        for webhook_id in filter(None, registration_id.split(",")):
            await self._request(
                "DELETE",
                f"{self._admin_url(cfg)}/webhooks/{webhook_id}/",
                headers=headers,
            )

    def validate_webhook_signature(self, payload: bytes, signature: str, secret: str) -> bool:
        parts = dict(
            part.strip().split("=", 1) for part in signature.split(",") if "=" in part
        )
        digest = parts.get("sha256")
        timestamp = parts.get("t")
        if digest is None or timestamp is None:
            return super().validate_webhook_signature(payload, signature, secret)
        expected = compute_signature(payload + timestamp.encode("utf-8"), secret)
        return hmac.compare_digest(expected, digest.strip().lower())
