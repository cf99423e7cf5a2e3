from app.models.cms_integration import CmsIntegration, CmsType, SyncMode
from app.models.sync_log import (
    DocumentOperation,
    SyncDocumentOutcome,
    SyncLog,
    SyncLogStatus,
    SyncType,
)
from app.models.synced_document import SyncedDocument
from app.models.tenant import Tenant
from app.models.webhook_event import WebhookEvent

__all__ = [
    "CmsIntegration",
    "CmsType",
    "DocumentOperation",
    "SyncDocumentOutcome",
    "SyncLog",
    "SyncLogStatus",
    "SyncMode",
    "SyncType",
    "SyncedDocument",
    "Tenant",
    "WebhookEvent",
]
