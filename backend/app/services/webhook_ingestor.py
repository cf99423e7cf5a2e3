"""Inbound CMS webhook ingestion.

Order of operations: parse, look up the integration, verify the signature,
persist the event unprocessed, dispatch, then mark it processed. Anything
rejected before persistence leaves no event row; anything after it always
ends with ``processed = True`` and either a result or an error.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from app.core.config import settings
from app.models.cms_integration import CmsIntegration
from app.models.sync_log import DocumentOperation
from app.models.webhook_event import WebhookEvent
from app.repositories.cms_integration_repository import CmsIntegrationRepository
from app.repositories.webhook_event_repository import WebhookEventRepository
from app.schemas.webhook_event import WebhookEventPayload
from app.services.connectors.base import get_connector
from app.services.connectors.exceptions import (
    ConnectorConfigError,
    IntegrationNotFoundError,
    SignatureError,
    WebhookValidationError,
)
from app.services.sync_orchestrator import ConnectorFactory, SyncOrchestrator

logger = logging.getLogger(__name__)

CONTENT_CREATED = "content.created"
CONTENT_UPDATED = "content.updated"
CONTENT_DELETED = "content.deleted"
CONTENT_PUBLISHED = "content.published"
CONTENT_UNPUBLISHED = "content.unpublished"

# Native event names of the supported families, normalised to the content.* vocabulary.
EVENT_ALIASES = {
    "post_created": CONTENT_CREATED,
    "post_updated": CONTENT_UPDATED,
    "post_deleted": CONTENT_DELETED,
    "Entry.create": CONTENT_CREATED,
    "Entry.save": CONTENT_UPDATED,
    "Entry.auto_save": CONTENT_UPDATED,
    "Entry.delete": CONTENT_DELETED,
    "Entry.publish": CONTENT_PUBLISHED,
    "Entry.unpublish": CONTENT_UNPUBLISHED,
    "entry.create": CONTENT_CREATED,
    "entry.update": CONTENT_UPDATED,
    "entry.delete": CONTENT_DELETED,
    "entry.publish": CONTENT_PUBLISHED,
    "entry.unpublish": CONTENT_UNPUBLISHED,
    "post.added": CONTENT_CREATED,
    "post.edited": CONTENT_UPDATED,
    "post.deleted": CONTENT_DELETED,
    "post.published": CONTENT_PUBLISHED,
    "post.unpublished": CONTENT_UNPUBLISHED,
}

_OPERATIONS = {
    CONTENT_CREATED: DocumentOperation.INSERT,
    CONTENT_UPDATED: DocumentOperation.UPDATE,
    CONTENT_DELETED: DocumentOperation.DELETE,
}


def normalize_event_type(event_type: str) -> str:
    return EVENT_ALIASES.get(event_type, event_type)


def extract_document_id(payload: dict[str, Any]) -> str | None:
    """The upstream native id carried by a webhook payload (``id`` or ``documentId``)."""
    for key in ("id", "documentId"):
        value = payload.get(key)
        if value not in (None, ""):
            return str(value)
    return None


@dataclass
class IngestResult:
    event: WebhookEvent
    result: dict[str, Any]


class WebhookProcessingError(Exception):
    """Dispatch failed after the event was persisted."""

    def __init__(self, event: WebhookEvent, cause: Exception):
        self.event = event
        self.cause = cause
        super().__init__(str(cause) or type(cause).__name__)


class WebhookIngestor:
    def __init__(
        self,
        db: Any,
        connector_factory: ConnectorFactory = get_connector,
        orchestrator: SyncOrchestrator | None = None,
    ):
        self.db = db
        self.connector_factory = connector_factory
        self.orchestrator = orchestrator or SyncOrchestrator(db, connector_factory)
        self.integrations = CmsIntegrationRepository(db)
        self.events = WebhookEventRepository(db)

    def parse(self, body: bytes) -> WebhookEventPayload:
        try:
            data = json.loads(body)
        except ValueError:
            raise WebhookValidationError("Invalid JSON payload") from None
        if not isinstance(data, dict):
            raise WebhookValidationError("Webhook body must be a JSON object")
        try:
            return WebhookEventPayload.model_validate(data)
        except ValidationError as exc:
            missing = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
            raise WebhookValidationError(
                f"Missing or invalid fields: {', '.join(missing) or 'body'}"
            ) from exc

    def verify(self, integration: CmsIntegration, body: bytes, signature: str | None) -> bool:
        """Return True if the body was verified, False if accepted unverified.

        Raises SignatureError when a present signature does not match, or when
        signatures are required and one cannot be checked.
        """
        secret = integration.webhook_secret
        if secret and signature:
            connector = self.connector_factory(str(integration.cms_type))
            if not connector.validate_webhook_signature(body, signature, str(secret)):
                logger.warning("Invalid webhook signature for integration %s", integration.id)
                raise SignatureError("Invalid signature")
            return True
        if settings.REQUIRE_WEBHOOK_SIGNATURE:
            logger.warning(
                "Rejected unsigned webhook for integration %s (secret configured: %s)",
                integration.id,
                bool(secret),
            )
            raise SignatureError("Missing signature" if secret else "No webhook secret configured")
        if secret:
            logger.warning(
                "Accepting unsigned webhook for integration %s despite a configured secret",
                integration.id,
            )
        return False

    def document_id(self, integration: CmsIntegration, payload: dict[str, Any]) -> str | None:
        """The native id a payload names, resolved with the integration's connector."""
        connector = self.connector_factory(str(integration.cms_type))
        try:
            return connector.resolve_document_id(dict(integration.config or {}), payload)
        except ConnectorConfigError:
            return extract_document_id(payload)

    async def ingest(self, body: bytes, signature: str | None = None) -> IngestResult:
        payload = self.parse(body)

        integration = self.integrations.get_by_id(payload.integration_id)
        if not integration:
            raise IntegrationNotFoundError("Integration not found")

        verified = self.verify(integration, body, signature)

        event = self.events.create(
            integration_id=integration.id,  # type: ignore[arg-type]
            tenant_id=integration.tenant_id,  # type: ignore[arg-type]
            event_type=payload.event_type,
            payload=payload.payload,
            resource_id=self.document_id(integration, payload.payload),
            signature_verified=verified,
        )
        event_id = event.id
        logger.info(
            "Received %s webhook %s for integration %s", payload.event_type, event_id, integration.id
        )

        try:
            result = await self.dispatch(integration, payload)
        except Exception as exc:
            logger.error("Webhook %s processing failed: %s", event_id, exc, exc_info=True)
            self.db.rollback()
            failed = self.events.mark_processed(
                event_id,  # type: ignore[arg-type]
                error=str(exc) or type(exc).__name__,
            )
            raise WebhookProcessingError(failed or event, exc) from exc

        processed = self.events.mark_processed(event_id, result=result)  # type: ignore[arg-type]
        return IngestResult(event=processed or event, result=result)

    async def dispatch(
        self,
        integration: CmsIntegration,
        payload: WebhookEventPayload,
    ) -> dict[str, Any]:
        event_type = normalize_event_type(payload.event_type)
        if not integration.is_active:
            logger.warning("Ignoring %s for inactive integration %s", event_type, integration.id)
            return {
                "success": True,
                "message": "Integration is inactive; event ignored",
                "warning": "inactive_integration",
            }

        operation = _OPERATIONS.get(event_type)
        if operation is None:
            if event_type in (CONTENT_PUBLISHED, CONTENT_UNPUBLISHED):
                return {"success": True, "message": f"{event_type} event recorded"}
            logger.warning("Unknown webhook event type %r", payload.event_type)
            return {
                "success": True,
                "message": f"Unknown event type: {payload.event_type}",
                "warning": "unknown_event_type",
            }

        document_id = self.document_id(integration, payload.payload)
        if document_id is None:
            logger.warning("Webhook %s carries no document id", event_type)
            return {
                "success": True,
                "message": "Payload carries no document id; nothing to sync",
                "warning": "missing_document_id",
            }

        inline = payload.payload.get("document")
        sync_log = await self.orchestrator.sync_document(
            integration.id,  # type: ignore[arg-type]
            integration.tenant_id,  # type: ignore[arg-type]
            document_id,
            operation,
            raw_document=inline if isinstance(inline, dict) else None,
        )
        return {
            "success": True,
            "message": f"{operation.value} applied to document {document_id}",
            "operation": operation.value,
            "document_id": document_id,
            "sync_log_id": str(sync_log.id),
            "status": sync_log.status,
        }

