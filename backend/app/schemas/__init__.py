from app.schemas.cms_integration import (
    CmsIntegrationCreate,
    CmsIntegrationResponse,
    CmsIntegrationUpdate,
    ConnectionTestRequest,
    ConnectionTestResponse,
    FieldMapping,
    SyncRequest,
    SyncSchedule,
    WebhookSetupRequest,
    WebhookSetupResponse,
)
from app.schemas.connector import SourceField
from app.schemas.sync_log import (
    SyncDocumentOutcomeResponse,
    SyncLogDetailResponse,
    SyncLogResponse,
)
from app.schemas.synced_document import SyncedDocumentResponse
from app.schemas.tenant import TenantCreate, TenantResponse
from app.schemas.webhook_event import (
    WebhookAcceptedResponse,
    WebhookEventPayload,
    WebhookEventResponse,
)

__all__ = [
    "CmsIntegrationCreate",
    "CmsIntegrationResponse",
    "CmsIntegrationUpdate",
    "ConnectionTestRequest",
    "ConnectionTestResponse",
    "FieldMapping",
    "SourceField",
    "SyncDocumentOutcomeResponse",
    "SyncLogDetailResponse",
    "SyncLogResponse",
    "SyncRequest",
    "SyncSchedule",
    "SyncedDocumentResponse",
    "TenantCreate",
    "TenantResponse",
    "WebhookAcceptedResponse",
    "WebhookEventPayload",
    "WebhookEventResponse",
    "WebhookSetupRequest",
    "WebhookSetupResponse",
]
