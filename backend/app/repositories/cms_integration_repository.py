"""CMS integration repository for data access."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.sorting import apply_order_by
from app.models.cms_integration import CmsIntegration
from app.models.sync_log import SyncDocumentOutcome, SyncLog
from app.models.synced_document import SyncedDocument
from app.models.webhook_event import WebhookEvent
from app.schemas.cms_integration import CmsIntegrationCreate, CmsIntegrationUpdate


class CmsIntegrationRepository:
    """Repository for CmsIntegration model. Every read is tenant scoped."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        tenant_id: UUID,
        skip: int = 0,
        limit: int = 100,
        cms_type: str | None = None,
        is_active: bool | None = None,
        order_by: str | None = None,
    ) -> list[CmsIntegration]:
        """Get all integrations for a tenant."""
        query = self.db.query(CmsIntegration).filter(CmsIntegration.tenant_id == tenant_id)
        if cms_type:
            query = query.filter(CmsIntegration.cms_type == cms_type)
        if is_active is not None:
            query = query.filter(CmsIntegration.is_active == is_active)
        query = apply_order_by(query, CmsIntegration, order_by)
        return query.offset(skip).limit(limit).all()

    def count(
        self,
        tenant_id: UUID,
        cms_type: str | None = None,
        is_active: bool | None = None,
    ) -> int:
        query = self.db.query(func.count(CmsIntegration.id)).filter(
            CmsIntegration.tenant_id == tenant_id
        )
        if cms_type:
            query = query.filter(CmsIntegration.cms_type == cms_type)
        if is_active is not None:
            query = query.filter(CmsIntegration.is_active == is_active)
        return query.scalar() or 0

    def get_by_id(
        self,
        integration_id: UUID,
        tenant_id: UUID | None = None,
    ) -> CmsIntegration | None:
        """Get an integration by ID, optionally restricted to a tenant."""
        query = self.db.query(CmsIntegration).filter(CmsIntegration.id == integration_id)
        if tenant_id is not None:
            query = query.filter(CmsIntegration.tenant_id == tenant_id)
        return query.first()

    def get_due_for_sync(self, now: datetime) -> list[CmsIntegration]:
        """Active integrations whose scheduled next run is at or before *now*."""
        return (
            self.db.query(CmsIntegration)
            .filter(
                CmsIntegration.is_active.is_(True),
                CmsIntegration.next_sync_at.isnot(None),
                CmsIntegration.next_sync_at <= now,
            )
            .order_by(CmsIntegration.next_sync_at.asc())
            .all()
        )

    def create(
        self,
        data: CmsIntegrationCreate,
        tenant_id: UUID,
        next_sync_at: datetime | None = None,
    ) -> CmsIntegration:
        """Create a new integration."""
        integration = CmsIntegration(
            tenant_id=tenant_id,
            cms_type=data.cms_type.value,
            name=data.name,
            config=data.config,
            target_collection=data.target_collection,
            field_mappings=[m.model_dump() for m in data.field_mappings],
            sync_schedule=data.sync_schedule.model_dump() if data.sync_schedule else None,
            sync_mode=data.sync_mode.value,
            is_active=data.is_active,
            next_sync_at=next_sync_at,
        )
        self.db.add(integration)
        self.db.commit()
        self.db.refresh(integration)
        return integration

    def update(
        self,
        integration_id: UUID,
        data: CmsIntegrationUpdate,
        tenant_id: UUID,
        **extra: Any,
    ) -> CmsIntegration | None:
        """Apply a partial update; *extra* carries derived columns such as next_sync_at."""
        integration = self.get_by_id(integration_id, tenant_id)
        if not integration:
            return None
        values = data.model_dump(exclude_unset=True, mode="json")
        values.update(extra)
        for key, value in values.items():
            setattr(integration, key, value)
        self.db.commit()
        self.db.refresh(integration)
        return integration

    def set_webhook(
        self,
        integration: CmsIntegration,
        url: str,
        secret: str,
        events: list[str],
        registration_id: str | None,
    ) -> CmsIntegration:
        integration.webhook_url = url  # type: ignore[assignment]
        integration.webhook_secret = secret  # type: ignore[assignment]
        integration.webhook_events = events  # type: ignore[assignment]
        integration.webhook_registration_id = registration_id  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(integration)
        return integration

    def record_sync_result(
        self,
        integration_id: UUID,
        status: str,
        synced_at: datetime,
        count: int | None = None,
        error: str | None = None,
        next_sync_at: datetime | None = None,
        reschedule: bool = False,
    ) -> CmsIntegration | None:
        """Update the last-sync summary shown alongside the integration."""
        integration = self.get_by_id(integration_id)
        if not integration:
            return None
        integration.last_sync_status = status  # type: ignore[assignment]
        integration.last_sync_at = synced_at  # type: ignore[assignment]
        if count is not None:
            integration.last_sync_count = count  # type: ignore[assignment]
        integration.last_sync_error = error  # type: ignore[assignment]
        if reschedule:
            integration.next_sync_at = next_sync_at  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(integration)
        return integration

    def delete(self, integration_id: UUID, tenant_id: UUID) -> bool:
        """Delete an integration together with its logs, events and synced documents."""
        integration = self.get_by_id(integration_id, tenant_id)
        if not integration:
            return False
        run_ids = select(SyncLog.id).where(SyncLog.integration_id == integration_id)
        self.db.query(SyncDocumentOutcome).filter(
            SyncDocumentOutcome.sync_log_id.in_(run_ids)
        ).delete(synchronize_session=False)
        for model in (SyncLog, WebhookEvent, SyncedDocument):
            self.db.query(model).filter(model.integration_id == integration_id).delete(
                synchronize_session=False
            )
        self.db.delete(integration)
        self.db.commit()
        return True
