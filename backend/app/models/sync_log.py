"""Sync log models: one row per sync run plus its per-document outcomes."""

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
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class SyncLogStatus(str, Enum):
    """Run status. Transitions only move forward: pending, running, then a terminal state."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


TERMINAL_STATUSES = frozenset(
    {SyncLogStatus.SUCCESS.value, SyncLogStatus.FAILED.value, SyncLogStatus.PARTIAL.value}
)


class SyncType(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"
    WEBHOOK = "webhook"


class DocumentOperation(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SyncLog(Base):
    """Append-only record of a single sync run."""

    __tablename__ = "cms_sync_logs"
    __table_args__ = (
        Index("ix_cms_sync_logs_integration_id", "integration_id"),
        Index("ix_cms_sync_logs_status", "status"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    integration_id = Column(
        UUIDType,
        ForeignKey("cms_integrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sync_type = Column(String(20), nullable=False)
    document_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=SyncLogStatus.PENDING.value)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    documents_fetched = Column(Integer, nullable=False, default=0)
    documents_synced = Column(Integer, nullable=False, default=0)
    documents_failed = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    error_details = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    outcomes = relationship(
        "SyncDocumentOutcome",
        order_by="SyncDocumentOutcome.position",
        passive_deletes=True,
    )


class SyncDocumentOutcome(Base):
    """Result of syncing one document within a run."""

    __tablename__ = "cms_sync_document_outcomes"
    __table_args__ = (Index("ix_cms_sync_document_outcomes_sync_log_id", "sync_log_id"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    sync_log_id = Column(
        UUIDType,
        ForeignKey("cms_sync_logs.id", ondelete="CASCADE"),
        nullable=False,
    )
    position = Column(Integer, nullable=False)
    document_id = Column(String(255), nullable=False)
    operation = Column(String(10), nullable=False)
    success = Column(Boolean, nullable=False)
    unchanged = Column(Boolean, nullable=False, default=False)
    error = Column(String(1000), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
