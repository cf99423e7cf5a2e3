"""Webhook event repository for data access."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.sorting import apply_order_by
from app.models.shared import utc_now
from app.models.webhook_event import WebhookEvent


class WebhookEventRepository:
    """Repository for WebhookEvent model."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        integration_id: UUID,
        tenant_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        resource_id: str | None = None,
        signature_verified: bool = False,
    ) -> WebhookEvent:
        """Persist an inbound event as unprocessed; received_at is written in the same insert."""
        event = WebhookEvent(
            integration_id=integration_id,
            tenant_id=tenant_id,
            event_type=event_type,
            resource_id=resource_id,
            payload=payload,
            signature_verified=signature_verified,
            processed=False,
            received_at=utc_now(),
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def get_by_id(self, event_id: UUID) -> WebhookEvent | None:
        return self.db.query(WebhookEvent).filter(WebhookEvent.id == event_id).first()

    def get_by_integration(
        self,
        integration_id: UUID,
        skip: int = 0,
        limit: int = 100,
        processed: bool | None = None,
        order_by: str | None = None,
    ) -> list[WebhookEvent]:
        query = self.db.query(WebhookEvent).filter(WebhookEvent.integration_id == integration_id)
        if processed is not None:
            query = query.filter(WebhookEvent.processed == processed)
        query = apply_order_by(query, WebhookEvent, order_by, default_field="received_at")
        return query.offset(skip).limit(limit).all()

    def count_by_integration(self, integration_id: UUID, processed: bool | None = None) -> int:
        query = self.db.query(func.count(WebhookEvent.id)).filter(
            WebhookEvent.integration_id == integration_id
        )
        if processed is not None:
            query = query.filter(WebhookEvent.processed == processed)
        return query.scalar() or 0

    def mark_processed(
        self,
        event_id: UUID,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> WebhookEvent | None:
        """Mark an event processed, with either a result or an error."""
        event = self.get_by_id(event_id)
        if not event:
            return None
        event.processed = True  # type: ignore[assignment]
        event.processed_at = utc_now()  # type: ignore[assignment]
        event.processing_result = result  # type: ignore[assignment]
        event.processing_error = error  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(event)
        return event
