"""Sync log repository: the audit store for sync runs.

Pure persistence. ``create_run``, ``append_outcome`` and ``complete_run`` are
the only writers; the status guard keeps transitions monotonic
(pending -> running -> success | failed | partial).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.sorting import apply_order_by
from app.models.cms_integration import CmsIntegration
from app.models.shared import utc_now
from app.models.sync_log import (
    TERMINAL_STATUSES,
    SyncDocumentOutcome,
    SyncLog,
    SyncLogStatus,
    SyncType,
)

logger = logging.getLogger(__name__)


class SyncLogRepository:
    """Repository for SyncLog and SyncDocumentOutcome models."""

    def __init__(self, db: Session):
        self.db = db

    def create_run(
        self,
        integration_id: UUID,
        sync_type: str,
        document_id: str | None = None,
    ) -> SyncLog:
        """Open a new run in ``pending``."""
        sync_log = SyncLog(
            integration_id=integration_id,
            sync_type=sync_type,
            document_id=document_id,
            status=SyncLogStatus.PENDING.value,
        )
        self.db.add(sync_log)
        self.db.commit()
        self.db.refresh(sync_log)
        return sync_log

    def mark_running(self, sync_log_id: UUID) -> SyncLog | None:
        sync_log = self.get_by_id(sync_log_id)
        if not sync_log:
            return None
        if sync_log.status != SyncLogStatus.PENDING.value:
            logger.warning(
                "Sync run %s cannot start from status %s", sync_log_id, sync_log.status
            )
            return sync_log
        sync_log.status = SyncLogStatus.RUNNING.value  # type: ignore[assignment]
        sync_log.started_at = utc_now()  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(sync_log)
        return sync_log

    def append_outcome(
        self,
        sync_log_id: UUID,
        document_id: str,
        operation: str,
        success: bool,
        error: str | None = None,
        unchanged: bool = False,
    ) -> SyncDocumentOutcome:
        """Record the outcome of one document, preserving processing order."""
        position = (
            self.db.query(func.count(SyncDocumentOutcome.id))
            .filter(SyncDocumentOutcome.sync_log_id == sync_log_id)
            .scalar()
            or 0
        )
        outcome = SyncDocumentOutcome(
            sync_log_id=sync_log_id,
            position=position,
            document_id=document_id,
            operation=operation,
            success=success,
            unchanged=unchanged,
            error=error[:1000] if error else None,
        )
        self.db.add(outcome)
        self.db.commit()
        self.db.refresh(outcome)
        return outcome

    def complete_run(
        self,
        sync_log_id: UUID,
        status: str,
        documents_fetched: int = 0,
        documents_synced: int = 0,
        documents_failed: int = 0,
        error_message: str | None = None,
        error_details: dict[str, Any] | None = None,
    ) -> SyncLog | None:
        """Move a run to a terminal status. A run that is already terminal is left untouched."""
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Cannot complete a sync run with non-terminal status {status!r}")
        sync_log = self.get_by_id(sync_log_id)
        if not sync_log:
            return None
        if sync_log.status in TERMINAL_STATUSES:
            logger.warning(
                "Sync run %s already finished as %s; ignoring %s",
                sync_log_id,
                sync_log.status,
                status,
            )
            return sync_log

        now = utc_now()
        sync_log.status = status  # type: ignore[assignment]
        if sync_log.started_at is None:
            sync_log.started_at = now  # type: ignore[assignment]
        sync_log.completed_at = now  # type: ignore[assignment]
        sync_log.documents_fetched = documents_fetched  # type: ignore[assignment]
        sync_log.documents_synced = documents_synced  # type: ignore[assignment]
        sync_log.documents_failed = documents_failed  # type: ignore[assignment]
        sync_log.error_message = error_message  # type: ignore[assignment]
        sync_log.error_details = error_details  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(sync_log)
        return sync_log

    def get_by_id(self, sync_log_id: UUID, tenant_id: UUID | None = None) -> SyncLog | None:
        query = self.db.query(SyncLog).filter(SyncLog.id == sync_log_id)
        if tenant_id is not None:
            query = query.join(CmsIntegration, CmsIntegration.id == SyncLog.integration_id).filter(
                CmsIntegration.tenant_id == tenant_id
            )
        return query.first()

    def get_by_integration(
        self,
        integration_id: UUID,
        skip: int = 0,
        limit: int = 100,
        status: str | None = None,
        order_by: str | None = None,
    ) -> list[SyncLog]:
        query = self.db.query(SyncLog).filter(SyncLog.integration_id == integration_id)
        if status:
            query = query.filter(SyncLog.status == status)
        query = apply_order_by(query, SyncLog, order_by)
        return query.offset(skip).limit(limit).all()

    def count_by_integration(self, integration_id: UUID, status: str | None = None) -> int:
        query = self.db.query(func.count(SyncLog.id)).filter(
            SyncLog.integration_id == integration_id
        )
        if status:
            query = query.filter(SyncLog.status == status)
        return query.scalar() or 0

    def get_outcomes(self, sync_log_id: UUID) -> list[SyncDocumentOutcome]:
        return (
            self.db.query(SyncDocumentOutcome)
            .filter(SyncDocumentOutcome.sync_log_id == sync_log_id)
            .order_by(SyncDocumentOutcome.position.asc())
            .all()
        )

    def fail_stale_runs(self, cutoff: datetime) -> int:
        """Reclassify runs left ``pending``/``running`` since before *cutoff* as ``failed``."""
        stale = (
            self.db.query(SyncLog)
            .filter(
                SyncLog.status.in_([SyncLogStatus.PENDING.value, SyncLogStatus.RUNNING.value]),
                or_(
                    SyncLog.started_at < cutoff,
                    SyncLog.started_at.is_(None) & (SyncLog.created_at < cutoff),
                ),
            )
            .all()
        )
        now = utc_now()
        for sync_log in stale:
            sync_log.status = SyncLogStatus.FAILED.value  # type: ignore[assignment]
            sync_log.completed_at = now  # type: ignore[assignment]
            sync_log.error_message = (  # type: ignore[assignment]
                "Sync run exceeded the liveness timeout and was marked failed"
            )
        if stale:
            self.db.commit()
        return len(stale)

    def get_last_completed(self, integration_id: UUID) -> SyncLog | None:
        """Most recent full/incremental run that synced at least part of the upstream."""
        return (
            self.db.query(SyncLog)
            .filter(
                SyncLog.integration_id == integration_id,
                SyncLog.sync_type.in_([SyncType.FULL.value, SyncType.INCREMENTAL.value]),
                SyncLog.status.in_([SyncLogStatus.SUCCESS.value, SyncLogStatus.PARTIAL.value]),
                SyncLog.started_at.isnot(None),
            )
            .order_by(SyncLog.started_at.desc())
            .first()
        )
