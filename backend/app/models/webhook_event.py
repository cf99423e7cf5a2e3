"""Webhook event model for inbound CMS push notifications."""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, String, Text, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class WebhookEvent(Base):
    """An inbound push notification, persisted before it is processed."""

    __tablename__ = "cms_webhook_events"
    __table_args__ = (
        Index("ix_cms_webhook_events_integration_id", "integration_id"),
        Index("ix_cms_webhook_events_processed", "processed"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    integration_id = Column(
        UUIDType,
        ForeignKey("cms_integrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id = Column(UUIDType, nullable=False)
    event_type = Column(String(100), nullable=False)
    resource_id = Column(String(255), nullable=True)
    payload = Column(JSON, nullable=False)
    signature_verified = Column(Boolean, nullable=False, default=False)
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    processing_result = Column(JSON, nullable=True)
    processing_error = Column(Text, nullable=True)

    received_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
