import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from arq import cron

from app.core.config import settings
from app.core.database import SessionLocal
from app.core.logging_config import setup_logging
from app.models.cms_integration import SyncMode
from app.models.sync_log import SyncType
from app.repositories.cms_integration_repository import CmsIntegrationRepository
from app.repositories.sync_log_repository import SyncLogRepository
from app.services.connectors.exceptions import SyncError
from app.services.sync_orchestrator import SyncOrchestrator
from app.services.sync_schedule import compute_next_sync_at
from app.tasks import redis_settings

logger = logging.getLogger(__name__)


async def sync_integration_task(
    ctx: dict[str, Any],
    integration_id: str,
    tenant_id: str,
    mode: str = SyncType.FULL.value,
) -> dict[str, Any]:
    """Background task: run one explicitly enqueued sync."""
    db = SessionLocal()
    try:
        orchestrator = SyncOrchestrator(db)
        sync_log = await orchestrator.run_sync(UUID(integration_id), UUID(tenant_id), mode)
        return {
            "sync_log_id": str(sync_log.id),
            "status": sync_log.status,
            "documents_synced": sync_log.documents_synced,
            "documents_failed": sync_log.documents_failed,
        }
    finally:
        db.close()


async def run_due_syncs_task(ctx: dict[str, Any]) -> int:
    """Background task: run every active integration whose schedule is due.

    Runs every minute. Integrations in incremental mode get an incremental
    run, everything else a full one. The next run time is advanced before
    the sync starts so a slow run is not picked up twice.
    """
    db = SessionLocal()
    try:
        now = datetime.now(UTC)
        repo = CmsIntegrationRepository(db)
        orchestrator = SyncOrchestrator(db)
        count = 0
        for integration in repo.get_due_for_sync(now):
            integration.next_sync_at = compute_next_sync_at(  # type: ignore[assignment]
                integration.sync_schedule, now
            )
            db.commit()
            mode = (
                SyncType.INCREMENTAL.value
                if integration.sync_mode == SyncMode.INCREMENTAL.value
                else SyncType.FULL.value
            )
            try:
                await orchestrator.run_sync(
                    integration.id,  # type: ignore[arg-type]
                    integration.tenant_id,  # type: ignore[arg-type]
                    mode,
                )
                count += 1
            except SyncError as exc:
                logger.warning("Scheduled sync of integration %s skipped: %s", integration.id, exc)
            except Exception:
                logger.exception("Scheduled sync of integration %s crashed", integration.id)
        if count > 0:
            logger.info("Ran %d scheduled syncs", count)
        return count
    finally:
        db.close()


async def fail_stale_sync_runs_task(ctx: dict[str, Any]) -> int:
    """Background task: mark runs stuck in pending/running past the liveness timeout as failed.

    Runs every 15 minutes.
    """
    db = SessionLocal()
    try:
        cutoff = datetime.now(UTC) - timedelta(minutes=settings.SYNC_RUN_TIMEOUT_MINUTES)
        count = SyncLogRepository(db).fail_stale_runs(cutoff)
        if count > 0:
            logger.warning("Marked %d stale sync runs as failed", count)
        return count
    finally:
        db.close()


async def startup(ctx: dict[str, Any]) -> None:
    setup_logging()


class WorkerSettings:
    functions = [
        sync_integration_task,
        run_due_syncs_task,
        fail_stale_sync_runs_task,
    ]
    cron_jobs = [
        cron(run_due_syncs_task, second=0),  # every minute
        cron(fail_stale_sync_runs_task, minute={0, 15, 30, 45}),
    ]
    on_startup = startup
    redis_settings = redis_settings
