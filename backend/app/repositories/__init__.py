from app.repositories.cms_integration_repository import CmsIntegrationRepository
from app.repositories.sync_log_repository import SyncLogRepository
from app.repositories.synced_document_repository import SyncedDocumentRepository
from app.repositories.tenant_repository import TenantRepository
from app.repositories.webhook_event_repository import WebhookEventRepository

__all__ = [
    "CmsIntegrationRepository",
    "SyncLogRepository",
    "SyncedDocumentRepository",
    "TenantRepository",
    "WebhookEventRepository",
]
