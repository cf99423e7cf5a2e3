from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class SyncDocumentOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document_id: str
    operation: str
    success: bool
    unchanged: bool = False
    error: str | None = None


class SyncLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    integration_id: UUID
    sync_type: str
    document_id: str | None = None
    status: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    documents_fetched: int
    documents_synced: int
    documents_failed: int
    error_message: str | None = None
    error_details: dict[str, Any] | None = None
    created_at: datetime


class SyncLogDetailResponse(SyncLogResponse):
    """Sync log with its ordered per-document outcomes."""

    outcomes: list[SyncDocumentOutcomeResponse] = []
