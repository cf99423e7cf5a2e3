"""Synced document repository: row access for the SQL-backed document index."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.sorting import apply_order_by
from app.models.synced_document import SyncedDocument


class SyncedDocumentRepository:
    """Repository for SyncedDocument model."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, integration_id: UUID, native_id: str) -> SyncedDocument | None:
        return (
            self.db.query(SyncedDocument)
            .filter(
                SyncedDocument.integration_id == integration_id,
                SyncedDocument.native_id == native_id,
            )
            .first()
        )

    def get_by_integration(
        self,
        integration_id: UUID,
        skip: int = 0,
        limit: int = 100,
        order_by: str | None = None,
    ) -> list[SyncedDocument]:
        query = self.db.query(SyncedDocument).filter(
            SyncedDocument.integration_id == integration_id
        )
        query = apply_order_by(query, SyncedDocument, order_by)
        return query.offset(skip).limit(limit).all()

    def count_by_integration(self, integration_id: UUID) -> int:
        return (
            self.db.query(func.count(SyncedDocument.id))
            .filter(SyncedDocument.integration_id == integration_id)
            .scalar()
            or 0
        )

    def create(
        self,
        integration_id: UUID,
        collection: str,
        native_id: str,
        fields: dict[str, Any],
        content_hash: str,
        synced_at: datetime,
    ) -> SyncedDocument:
        document = SyncedDocument(
            integration_id=integration_id,
            collection=collection,
            native_id=native_id,
            fields=fields,
            content_hash=content_hash,
            last_synced_at=synced_at,
        )
        self.db.add(document)
        self.db.commit()
        self.db.refresh(document)
        return document

    def replace_fields(
        self,
        document: SyncedDocument,
        collection: str,
        fields: dict[str, Any],
        content_hash: str,
        synced_at: datetime,
    ) -> SyncedDocument:
        document.collection = collection  # type: ignore[assignment]
        document.fields = fields  # type: ignore[assignment]
        document.content_hash = content_hash  # type: ignore[assignment]
        document.last_synced_at = synced_at  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(document)
        return document

    def delete(self, integration_id: UUID, native_id: str) -> bool:
        deleted = (
            self.db.query(SyncedDocument)
            .filter(
                SyncedDocument.integration_id == integration_id,
                SyncedDocument.native_id == native_id,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted > 0
