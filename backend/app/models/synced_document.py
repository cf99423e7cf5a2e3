"""SyncedDocument model: the canonical document stored in the target index."""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class SyncedDocument(Base):
    """A mapped document keyed by (integration_id, native_id)."""

    __tablename__ = "cms_synced_documents"
    __table_args__ = (
        UniqueConstraint(
            "integration_id",
            "native_id",
            name="uq_cms_synced_documents_integration_native_id",
        ),
        Index("ix_cms_synced_documents_collection", "collection"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    integration_id = Column(
        UUIDType,
        ForeignKey("cms_integrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    collection = Column(String(255), nullable=False)
    native_id = Column(String(255), nullable=False)
    fields = Column(JSON, nullable=False)
    content_hash = Column(String(64), nullable=False)
    last_synced_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
