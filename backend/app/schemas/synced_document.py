from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class SyncedDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    integration_id: UUID
    collection: str
    native_id: str
    fields: dict[str, Any]
    content_hash: str
    last_synced_at: datetime
    created_at: datetime
    updated_at: datetime
