"""CMS connector base class and factory.

Defines the abstract CmsConnector contract that every upstream CMS family
implements, plus the factory that returns the connector for a CMS type.
Connectors are stateless: family-specific settings arrive as the
integration's opaque config bag and are parsed into the family's typed
config model on every call.
"""

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar, Generic, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from app.core.config import settings
from app.models.cms_integration import CmsType
from app.schemas.cms_integration import FieldMapping
from app.schemas.connector import SourceField
from app.services.connectors.exceptions import (
    ConnectorConfigError,
    ConnectorError,
    FetchError,
    MappingError,
    UpstreamConnectionError,
    WebhookNotSupportedError,
)
from app.services.connectors.field_mapper import MISSING, get_nested_value, map_fields

logger = logging.getLogger(__name__)


class ConnectorConfig(BaseModel):
    """Base for per-family config models.

    Accepts both snake_case and the camelCase keys the admin UI stores
    (``apiKey``, ``spaceId``...). Unknown keys are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


ConfigT = TypeVar("ConfigT", bound=ConnectorConfig)


@dataclass
class FetchOptions:
    """Generic page request; each connector translates it to its native idiom."""

    limit: int = 100
    offset: int = 0
    filters: dict[str, Any] = field(default_factory=dict)
    incremental_sync: bool = False
    last_sync_date: datetime | None = None
    # Set by a connector once the upstream reports no further pages.
    exhausted: bool = False

    @property
    def page(self) -> int:
        """1-based page number for page-indexed APIs."""
        return self.offset // self.limit + 1

    @property
    def modified_since(self) -> str | None:
        """ISO-8601 UTC timestamp when an incremental filter applies."""
        if not self.incremental_sync or self.last_sync_date is None:
            return None
        value = self.last_sync_date
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class ConnectionTestResult:
    success: bool
    message: str | None = None


@dataclass
class WebhookConfig:
    """Outcome of registering a push subscription upstream."""

    url: str
    secret: str
    events: list[str]
    registration_id: str | None = None


def compute_signature(payload: bytes, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 of *payload* keyed by *secret*."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class CmsConnector(ABC, Generic[ConfigT]):
    """Abstract base class for CMS connectors.

    Subclasses implement the family-specific HTTP calls; mapping, signature
    verification and error translation are shared here.
    """

    cms_type: ClassVar[CmsType]
    display_name: ClassVar[str]
    config_model: ClassVar[type[ConnectorConfig]]
    supports_webhooks: ClassVar[bool] = False

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        self._transport = transport
        self._timeout = timeout if timeout is not None else settings.CMS_REQUEST_TIMEOUT_SECONDS

    # ── config ──────────────────────────────────────────────────────────

    def parse_config(self, config: Mapping[str, Any] | ConfigT) -> ConfigT:
        """Validate the opaque config bag against the family's config model."""
        if isinstance(config, self.config_model):
            return config  # type: ignore[return-value]
        try:
            return self.config_model.model_validate(dict(config))  # type: ignore[return-value]
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ConnectorConfigError(
                f"Invalid {self.display_name} config: {problems}", self.cms_type.value
            ) from exc

    # ── HTTP ────────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Issue one upstream request and return the decoded JSON body."""
        response = await self._send(method, url, params=params, json=json, headers=headers)
        return self._decode(response)

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one upstream request and return the successful response.

        Transport failures become ``UpstreamConnectionError`` and non-2xx
        responses become ``FetchError`` carrying the upstream status and body.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,  # type: ignore[arg-type]
                    json=json,
                    headers=dict(headers or {}),
                )
        except httpx.InvalidURL as exc:
            raise ConnectorConfigError(f"Invalid URL {url!r}: {exc}", self.cms_type.value) from exc
        except httpx.TimeoutException as exc:
            raise UpstreamConnectionError(
                f"{self.display_name} request timed out: {url}", self.cms_type.value
            ) from exc
        except httpx.TransportError as exc:
            raise UpstreamConnectionError(
                f"Could not reach {self.display_name} at {url}: {exc}", self.cms_type.value
            ) from exc

        if response.is_error:
            detail = response.text[:500] if response.text else ""
            raise FetchError(
                f"{self.display_name} returned {response.status_code} "
                f"{response.reason_phrase}: {detail}".rstrip(": "),
                self.cms_type.value,
                status_code=response.status_code,
                body=detail,
            )
        return response

    def _decode(self, response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(
                f"{self.display_name} returned a non-JSON body",
                self.cms_type.value,
                status_code=response.status_code,
            ) from exc

    # ── contract ────────────────────────────────────────────────────────

    async def test_connection(self, config: Mapping[str, Any]) -> ConnectionTestResult:
        """Issue one lightweight read; never raises."""
        try:
            await self._check_connection(self.parse_config(config))
        except ConnectorError as exc:
            return ConnectionTestResult(success=False, message=str(exc))
        except Exception as exc:
            logger.warning("%s connection test crashed", self.display_name, exc_info=True)
            return ConnectionTestResult(success=False, message=str(exc) or type(exc).__name__)
        return ConnectionTestResult(success=True, message="Connection successful")

    async def fetch_documents(
        self,
        config: Mapping[str, Any],
        options: FetchOptions | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch one page of raw documents."""
        options = options or FetchOptions()
        documents = await self._fetch_page(self.parse_config(config), options)
        if not isinstance(documents, list):
            raise FetchError(
                f"{self.display_name} returned an unexpected page shape",
                self.cms_type.value,
            )
        return documents

    async def fetch_document(self, config: Mapping[str, Any], document_id: str) -> dict[str, Any]:
        """Fetch a single raw document by its native id."""
        document = await self._fetch_one(self.parse_config(config), document_id)
        if not isinstance(document, dict):
            raise FetchError(
                f"{self.display_name} document {document_id} not found",
                self.cms_type.value,
                status_code=404,
            )
        return document

    async def get_available_fields(self, config: Mapping[str, Any]) -> list[SourceField]:
        return await self._fields(self.parse_config(config))

    def map_fields(
        self,
        raw_document: Mapping[str, Any],
        mappings: Iterable[FieldMapping | Mapping[str, Any]],
    ) -> dict[str, Any]:
        return map_fields(raw_document, mappings)

    def extract_document_id(self, config: Mapping[str, Any], raw_document: Mapping[str, Any]) -> str:
        """Return the upstream native id of *raw_document*."""
        for path in self.id_paths(self.parse_config(config)):
            value = get_nested_value(raw_document, path)
            if value is not MISSING and value not in (None, ""):
                return str(value)
        raise MappingError(f"{self.display_name} document has no native id")

    def resolve_document_id(
        self, config: Mapping[str, Any], payload: Mapping[str, Any]
    ) -> str | None:
        """Native id named by a webhook payload, keyed the same way batch syncs key it.

        Tries the family's own id paths, then the generic ``id`` and ``documentId``.
        """
        paths = (*self.id_paths(self.parse_config(config)), "id", "documentId")
        for path in dict.fromkeys(paths):
            value = get_nested_value(payload, path)
            if value is not MISSING and value not in (None, ""):
                return str(value)
        return None

    def id_paths(self, config: ConfigT) -> tuple[str, ...]:
        return ("id",)

    def supports_incremental(self, config: Mapping[str, Any]) -> bool:
        return True

    def is_paginated(self, config: Mapping[str, Any]) -> bool:
        return True

    async def setup_webhook(
        self,
        config: Mapping[str, Any],
        webhook_url: str,
        secret: str | None = None,
    ) -> WebhookConfig:
        """Register a push subscription upstream.

        *secret* is a locally generated signing secret that families able to
        sign deliveries are given; the returned config carries whichever
        secret the upstream actually uses (empty when it does not sign).
        """
        raise WebhookNotSupportedError(
            f"{self.display_name} does not support webhook registration", self.cms_type.value
        )

    async def teardown_webhook(self, config: Mapping[str, Any], registration_id: str) -> None:
        raise WebhookNotSupportedError(
            f"{self.display_name} does not support webhook registration", self.cms_type.value
        )

    def validate_webhook_signature(self, payload: bytes, signature: str, secret: str) -> bool:
        """HMAC-SHA256 over the raw body, hex encoded, optional ``sha256=`` prefix."""
        candidate = signature.strip()
        if candidate.lower().startswith("sha256="):
            candidate = candidate[len("sha256=") :]
        expected = compute_signature(payload, secret)
        return hmac.compare_digest(expected, candidate.lower())

    # ── family hooks ────────────────────────────────────────────────────

    @abstractmethod
    async def _check_connection(self, config: ConfigT) -> None:
        """Perform the lightweight read used by test_connection."""
        ...  # pragma: no cover

    @abstractmethod
    async def _fetch_page(self, config: ConfigT, options: FetchOptions) -> Any:
        ...  # pragma: no cover

    @abstractmethod
    async def _fetch_one(self, config: ConfigT, document_id: str) -> Any:
        ...  # pragma: no cover

    @abstractmethod
    async def _fields(self, config: ConfigT) -> list[SourceField]:
        ...  # pragma: no cover


def get_connector(
    cms_type: CmsType | str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> CmsConnector[Any]:
    """Factory: return the connector for *cms_type*.

    Raises ``ValueError`` if the CMS type is not supported.
    """
    from app.services.connectors.contentful import ContentfulConnector
    from app.services.connectors.custom import CustomConnector
    from app.services.connectors.ghost import GhostConnector
    from app.services.connectors.strapi import StrapiConnector
    from app.services.connectors.wordpress import WordPressConnector

    connectors: dict[CmsType, type[CmsConnector[Any]]] = {
        CmsType.WORDPRESS: WordPressConnector,
        CmsType.CONTENTFUL: ContentfulConnector,
        CmsType.STRAPI: StrapiConnector,
        CmsType.GHOST: GhostConnector,
        CmsType.CUSTOM: CustomConnector,
    }

    try:
        key = CmsType(cms_type)
    except ValueError:
        raise ValueError(f"No connector registered for cms_type={cms_type}") from None
    return connectors[key](transport=transport)


def get_connector_factory() -> Callable[[str], CmsConnector[Any]]:
    """FastAPI dependency returning the connector factory; overridden in tests."""
    return get_connector
