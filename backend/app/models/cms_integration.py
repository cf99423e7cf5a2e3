"""CMS integration model: one configured link between a tenant and an upstream CMS."""

from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from app.core.database import Base
from app.models.shared import DEFAULT_TENANT_ID, UUIDType, generate_uuid


class CmsType(str, Enum):
    """Supported upstream CMS families."""

    WORDPRESS = "wordpress"
    CONTENTFUL = "contentful"
    STRAPI = "strapi"
    GHOST = "ghost"
    CUSTOM = "custom"


class SyncMode(str, Enum):
    """How an integration is kept up to date."""

    MANUAL = "manual"
    SCHEDULED = "scheduled"
    WEBHOOK = "webhook"
    INCREMENTAL = "incremental"


class CmsIntegration(Base):
    """A tenant's connection to one upstream CMS instance.

    ``cms_type`` is immutable after creation: ``field_mappings`` reference the
    source-field vocabulary of that family. ``webhook_secret`` is write-only
    and never leaves the service through response schemas.
    """

    __tablename__ = "cms_integrations"
    __table_args__ = (
        Index("ix_cms_integrations_tenant_id", "tenant_id"),
        Index("ix_cms_integrations_next_sync_at", "next_sync_at"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    tenant_id = Column(
        UUIDType,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        default=DEFAULT_TENANT_ID,
    )
    cms_type = Column(String(30), nullable=False)
    name = Column(String(255), nullable=False)
    config = Column(JSON, nullable=False, default=dict)
    target_collection = Column(String(255), nullable=False)
    field_mappings = Column(JSON, nullable=False, default=list)
    sync_schedule = Column(JSON, nullable=True)
    sync_mode = Column(String(20), nullable=False, default=SyncMode.MANUAL.value)
    is_active = Column(Boolean, nullable=False, default=True)

    webhook_secret = Column(String(255), nullable=True)
    webhook_url = Column(String(2048), nullable=True)
    webhook_events = Column(JSON, nullable=True)
    webhook_registration_id = Column(String(255), nullable=True)

    last_sync_status = Column(String(20), nullable=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_sync_count = Column(Integer, nullable=True)
    last_sync_error = Column(Text, nullable=True)
    next_sync_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
