from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import get_current_tenant
from app.core.database import get_db
from app.models.sync_log import SyncLog
from app.repositories.sync_log_repository import SyncLogRepository
from app.schemas.sync_log import SyncLogDetailResponse

router = APIRouter()


@router.get(
    "/{sync_log_id}",
    response_model=SyncLogDetailResponse,
    summary="Get sync log",
    responses={404: {"description": "Sync log not found"}},
)
async def get_sync_log(
    sync_log_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> SyncLog:
    """Get a sync run with its ordered per-document outcomes."""
    sync_log = SyncLogRepository(db).get_by_id(sync_log_id, tenant_id)
    if not sync_log:
        raise HTTPException(status_code=404, detail="Sync log not found")
    return sync_log
