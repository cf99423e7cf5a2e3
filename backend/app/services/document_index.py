"""Target index for mapped documents.

The orchestrator writes through ``DocumentIndex`` only: a keyed upsert and a
keyed delete, both idempotent on ``(integration_id, native_id)``.
``SqlDocumentIndex`` stores documents in ``cms_synced_documents``; any other
search/document store can be plugged in by implementing the same two methods.
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.shared import utc_now
from app.repositories.synced_document_repository import SyncedDocumentRepository
from app.services.connectors.exceptions import IndexWriteError

logger = logging.getLogger(__name__)


class UpsertResult(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def content_hash(fields: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of *fields*."""
    canonical = json.dumps(fields, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class DocumentIndex(ABC):
    @abstractmethod
    def upsert(
        self,
        collection: str,
        integration_id: UUID,
        native_id: str,
        fields: dict[str, Any],
    ) -> UpsertResult:
        """Insert or replace the document keyed by (integration_id, native_id)."""

    @abstractmethod
    def delete(self, collection: str, integration_id: UUID, native_id: str) -> bool:
        """Remove the document; returns False when nothing was stored."""


class SqlDocumentIndex(DocumentIndex):
    def __init__(self, db: Session):
        self.db = db
        self.repo = SyncedDocumentRepository(db)

    def upsert(
        self,
        collection: str,
        integration_id: UUID,
        native_id: str,
        fields: dict[str, Any],
    ) -> UpsertResult:
        digest = content_hash(fields)
        try:
            return self._upsert(collection, integration_id, native_id, fields, digest)
        except IntegrityError:
            # A concurrent run inserted the same key first; retry as an update.
            self.db.rollback()
            try:
                return self._upsert(collection, integration_id, native_id, fields, digest)
            except SQLAlchemyError as exc:
                self.db.rollback()
                raise IndexWriteError(f"Upsert of {native_id} failed: {exc}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise IndexWriteError(f"Upsert of {native_id} failed: {exc}") from exc

    def _upsert(
        self,
        collection: str,
        integration_id: UUID,
        native_id: str,
        fields: dict[str, Any],
        digest: str,
    ) -> UpsertResult:
        existing = self.repo.get(integration_id, native_id)
        if existing is None:
            self.repo.create(integration_id, collection, native_id, fields, digest, utc_now())
            return UpsertResult.CREATED
        if existing.content_hash == digest and existing.collection == collection:
            return UpsertResult.UNCHANGED
        self.repo.replace_fields(existing, collection, fields, digest, utc_now())
        return UpsertResult.UPDATED

    def delete(self, collection: str, integration_id: UUID, native_id: str) -> bool:
        try:
            return self.repo.delete(integration_id, native_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise IndexWriteError(f"Delete of {native_id} failed: {exc}") from exc
