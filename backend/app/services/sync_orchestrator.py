"""Sync orchestrator: reconciles an upstream CMS into the document index.

Two entry points share one per-document pipeline (extract id, map fields,
upsert):

* ``run_sync`` pages through the upstream (full or incremental) and isolates
  per-document failures; a fetch-level failure aborts the run.
* ``sync_document`` handles a single INSERT/UPDATE/DELETE from a webhook and
  propagates its one failure to the caller.

Every run is recorded as a SyncLog that ends in success, partial or failed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from app.core.config import settings
from app.models.cms_integration import CmsIntegration
from app.models.shared import as_utc, utc_now
from app.models.sync_log import DocumentOperation, SyncLog, SyncLogStatus, SyncType
from app.repositories.cms_integration_repository import CmsIntegrationRepository
from app.repositories.sync_log_repository import SyncLogRepository
from app.services.connectors.base import CmsConnector, FetchOptions, get_connector
from app.services.connectors.exceptions import (
    ConnectorError,
    IndexWriteError,
    IntegrationInactiveError,
    IntegrationNotFoundError,
    MappingError,
)
from app.services.document_index import DocumentIndex, SqlDocumentIndex, UpsertResult
from app.services.sync_schedule import compute_next_sync_at

logger = logging.getLogger(__name__)

ConnectorFactory = Callable[[str], CmsConnector[Any]]

UNKNOWN_DOCUMENT_ID = "<unknown>"


@dataclass
class DocumentOutcome:
    document_id: str
    operation: DocumentOperation
    success: bool
    unchanged: bool = False
    error: Exception | None = None


def classify_run(documents_synced: int, documents_failed: int) -> SyncLogStatus:
    """Terminal status for a run from its per-document counts."""
    if documents_failed == 0:
        return SyncLogStatus.SUCCESS
    if documents_synced == 0:
        return SyncLogStatus.FAILED
    return SyncLogStatus.PARTIAL


class SyncOrchestrator:
    def __init__(
        self,
        db: Any,
        connector_factory: ConnectorFactory = get_connector,
        index: DocumentIndex | None = None,
    ):
        self.db = db
        self.connector_factory = connector_factory
        self.index = index or SqlDocumentIndex(db)
        self.integrations = CmsIntegrationRepository(db)
        self.sync_logs = SyncLogRepository(db)

    def _load_integration(self, integration_id: UUID, tenant_id: UUID) -> CmsIntegration:
        integration = self.integrations.get_by_id(integration_id, tenant_id)
        if not integration:
            raise IntegrationNotFoundError(f"CMS integration {integration_id} not found")
        if not integration.is_active:
            raise IntegrationInactiveError(f"CMS integration {integration_id} is inactive")
        return integration

    async def run_sync(
        self,
        integration_id: UUID,
        tenant_id: UUID,
        mode: str = SyncType.FULL.value,
    ) -> SyncLog:
        """Run a full or incremental sync and return the completed SyncLog."""
        integration = self._load_integration(integration_id, tenant_id)
        connector = self.connector_factory(str(integration.cms_type))
        config: dict[str, Any] = dict(integration.config or {})

        sync_type = SyncType(mode)
        details: dict[str, Any] = {}
        sync_log = self.sync_logs.create_run(integration.id, sync_type.value)  # type: ignore[arg-type]
        run_id: UUID = sync_log.id  # type: ignore[assignment]
        self.sync_logs.mark_running(run_id)
        logger.info(
            "Starting %s sync %s for integration %s (%s)",
            sync_type.value,
            run_id,
            integration.id,
            integration.cms_type,
        )

        fetched = synced = failed = 0
        try:
            last_sync_date = None
            if sync_type == SyncType.INCREMENTAL:
                if not connector.supports_incremental(config):
                    logger.warning(
                        "Integration %s cannot filter by modification date; running a full sync",
                        integration.id,
                    )
                    details["incremental_fallback"] = (
                        f"{connector.display_name} config has no modified-since filter; "
                        "all documents were fetched"
                    )
                else:
                    last_sync_date = self._last_sync_date(integration)
                    if last_sync_date is None:
                        details["incremental_fallback"] = "No previous completed sync"

            paginated = connector.is_paginated(config)
            options = FetchOptions(
                limit=settings.SYNC_PAGE_SIZE,
                offset=0,
                incremental_sync=last_sync_date is not None,
                last_sync_date=last_sync_date,
            )
            for _ in range(settings.SYNC_MAX_PAGES):
                documents = await connector.fetch_documents(config, options)
                fetched += len(documents)
                for raw in documents:
                    outcome = self._process_document(connector, integration, run_id, raw)
                    if outcome.success:
                        synced += 1
                    else:
                        failed += 1
                if not paginated or options.exhausted or len(documents) < options.limit:
                    break
                options.offset += options.limit
            else:
                logger.warning(
                    "Sync %s stopped after %d pages; upstream may ignore pagination",
                    run_id,
                    settings.SYNC_MAX_PAGES,
                )
                details["truncated_after_pages"] = settings.SYNC_MAX_PAGES
        except ConnectorError as exc:
            logger.error("Sync %s aborted: %s", run_id, exc, exc_info=True)
            return self._finish(
                integration,
                run_id,
                SyncLogStatus.FAILED,
                fetched,
                synced,
                failed,
                error_message=str(exc),
                details={**details, "cms_type": exc.cms_type, "retriable": exc.retriable},
            )
        except Exception as exc:
            logger.exception("Sync %s crashed", run_id)
            self._finish(
                integration,
                run_id,
                SyncLogStatus.FAILED,
                fetched,
                synced,
                failed,
                error_message=str(exc) or type(exc).__name__,
                details=details,
            )
            raise

        status = classify_run(synced, failed)
        error_message = None
        if failed:
            error_message = f"{failed} of {synced + failed} documents failed to sync"
        logger.info(
            "Sync %s finished %s: fetched=%d synced=%d failed=%d",
            run_id,
            status.value,
            fetched,
            synced,
            failed,
        )
        return self._finish(
            integration,
            run_id,
            status,
            fetched,
            synced,
            failed,
            error_message=error_message,
            details=details,
        )

    async def sync_document(
        self,
        integration_id: UUID,
        tenant_id: UUID,
        document_id: str,
        operation: DocumentOperation | str,
        raw_document: dict[str, Any] | None = None,
    ) -> SyncLog:
        """Apply one upstream change; the document's failure is raised after it is recorded."""
        integration = self._load_integration(integration_id, tenant_id)
        connector = self.connector_factory(str(integration.cms_type))
        config: dict[str, Any] = dict(integration.config or {})
        operation = DocumentOperation(operation)

        sync_log = self.sync_logs.create_run(
            integration.id,  # type: ignore[arg-type]
            SyncType.WEBHOOK.value,
            document_id=document_id,
        )
        run_id: UUID = sync_log.id  # type: ignore[assignment]
        self.sync_logs.mark_running(run_id)

        if operation == DocumentOperation.DELETE:
            outcome = self._delete_document(integration, run_id, document_id)
            fetched = 0
        else:
            try:
                raw = raw_document
                if raw is None:
                    raw = await connector.fetch_document(config, document_id)
            except ConnectorError as exc:
                logger.error(
                    "Fetching document %s for integration %s failed: %s",
                    document_id,
                    integration.id,
                    exc,
                )
                self.sync_logs.append_outcome(
                    run_id, document_id, operation.value, success=False, error=str(exc)
                )
                self._finish(
                    integration,
                    run_id,
                    SyncLogStatus.FAILED,
                    0,
                    0,
                    1,
                    error_message=str(exc),
                    details={"cms_type": exc.cms_type, "retriable": exc.retriable},
                    reschedule=False,
                )
                raise
            native_id = self._native_id(connector, config, raw, document_id)
            outcome = self._process_document(
                connector, integration, run_id, raw, native_id=native_id, operation=operation
            )
            fetched = 1

        synced, failed = (1, 0) if outcome.success else (0, 1)
        result = self._finish(
            integration,
            run_id,
            classify_run(synced, failed),
            fetched,
            synced,
            failed,
            error_message=str(outcome.error) if outcome.error else None,
            reschedule=False,
        )
        if outcome.error is not None:
            raise outcome.error
        return result

    def _process_document(
        self,
        connector: CmsConnector[Any],
        integration: CmsIntegration,
        run_id: UUID,
        raw: dict[str, Any],
        native_id: str | None = None,
        operation: DocumentOperation | None = None,
    ) -> DocumentOutcome:
        """Map and upsert one raw document, recording its outcome on the run."""
        document_id = native_id or UNKNOWN_DOCUMENT_ID
        try:
            if native_id is None:
                document_id = connector.extract_document_id(dict(integration.config or {}), raw)
            fields = connector.map_fields(raw, integration.field_mappings or [])
            result = self.index.upsert(
                str(integration.target_collection),
                integration.id,  # type: ignore[arg-type]
                document_id,
                fields,
            )
        except (MappingError, IndexWriteError) as exc:
            logger.warning(
                "Document %s of integration %s failed: %s", document_id, integration.id, exc
            )
            op = operation or DocumentOperation.UPDATE
            self.sync_logs.append_outcome(
                run_id, document_id, op.value, success=False, error=str(exc)
            )
            return DocumentOutcome(document_id, op, success=False, error=exc)

        if operation is None:
            operation = (
                DocumentOperation.INSERT
                if result == UpsertResult.CREATED
                else DocumentOperation.UPDATE
            )
        unchanged = result == UpsertResult.UNCHANGED
        self.sync_logs.append_outcome(
            run_id, document_id, operation.value, success=True, unchanged=unchanged
        )
        return DocumentOutcome(document_id, operation, success=True, unchanged=unchanged)

    def _native_id(
        self,
        connector: CmsConnector[Any],
        config: dict[str, Any],
        raw: dict[str, Any],
        document_id: str,
    ) -> str:
        """Key a pushed document exactly as a batch sync keys it."""
        try:
            return connector.extract_document_id(config, raw)
        except MappingError:
            return document_id

    def _delete_document(
        self,
        integration: CmsIntegration,
        run_id: UUID,
        document_id: str,
    ) -> DocumentOutcome:
        try:
            self.index.delete(
                str(integration.target_collection),
                integration.id,  # type: ignore[arg-type]
                document_id,
            )
        except IndexWriteError as exc:
            logger.warning(
                "Deleting document %s of integration %s failed: %s",
                document_id,
                integration.id,
                exc,
            )
            self.sync_logs.append_outcome(
                run_id, document_id, DocumentOperation.DELETE.value, success=False, error=str(exc)
            )
            return DocumentOutcome(document_id, DocumentOperation.DELETE, False, error=exc)
        self.sync_logs.append_outcome(
            run_id, document_id, DocumentOperation.DELETE.value, success=True
        )
        return DocumentOutcome(document_id, DocumentOperation.DELETE, True)

    def _last_sync_date(self, integration: CmsIntegration) -> datetime | None:
        last_run = self.sync_logs.get_last_completed(integration.id)  # type: ignore[arg-type]
        if last_run is not None:
            return as_utc(last_run.started_at)  # type: ignore[arg-type]
        return as_utc(integration.last_sync_at)  # type: ignore[arg-type]

    def _finish(
        self,
        integration: CmsIntegration,
        run_id: UUID,
        status: SyncLogStatus,
        fetched: int,
        synced: int,
        failed: int,
        error_message: str | None = None,
        details: dict[str, Any] | None = None,
        reschedule: bool = True,
    ) -> SyncLog:
        sync_log = self.sync_logs.complete_run(
            run_id,
            status.value,
            documents_fetched=fetched,
            documents_synced=synced,
            documents_failed=failed,
            error_message=error_message,
            error_details=details or None,
        )
        now = utc_now()
        self.integrations.record_sync_result(
            integration.id,  # type: ignore[arg-type]
            status.value,
            synced_at=now,
            count=synced if reschedule else None,
            error=error_message,
            next_sync_at=compute_next_sync_at(integration.sync_schedule, now),
            reschedule=reschedule,
        )
        return sync_log  # type: ignore[return-value]
