"""CMS integrations router: configuration, connection tests, syncs and history."""

from typing import Any, NoReturn
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.core.auth import get_current_tenant
from app.core.database import get_db
from app.models.cms_integration import CmsIntegration
from app.models.sync_log import SyncLog
from app.models.synced_document import SyncedDocument
from app.models.webhook_event import WebhookEvent
from app.repositories.cms_integration_repository import CmsIntegrationRepository
from app.repositories.sync_log_repository import SyncLogRepository
from app.repositories.synced_document_repository import SyncedDocumentRepository
from app.repositories.webhook_event_repository import WebhookEventRepository
from app.schemas.cms_integration import (
    CmsIntegrationCreate,
    CmsIntegrationResponse,
    CmsIntegrationUpdate,
    ConnectionTestRequest,
    ConnectionTestResponse,
    SyncRequest,
    WebhookSetupRequest,
    WebhookSetupResponse,
)
from app.schemas.connector import SourceField
from app.schemas.sync_log import SyncLogDetailResponse, SyncLogResponse
from app.schemas.synced_document import SyncedDocumentResponse
from app.schemas.webhook_event import WebhookEventResponse
from app.services.cms_integration_service import CmsIntegrationService
from app.services.connectors.base import get_connector_factory
from app.services.connectors.exceptions import (
    ConnectorConfigError,
    ConnectorError,
    IntegrationInactiveError,
    IntegrationNotFoundError,
    SyncError,
    WebhookNotSupportedError,
)
from app.services.sync_orchestrator import ConnectorFactory, SyncOrchestrator
from app.tasks import enqueue_integration_sync

router = APIRouter()


def _get_integration_or_404(
    integration_id: UUID,
    tenant_id: UUID,
    db: Session,
) -> CmsIntegration:
    """Fetch an integration or raise 404."""
    repo = CmsIntegrationRepository(db)
    integration = repo.get_by_id(integration_id, tenant_id)
    if not integration:
        raise HTTPException(status_code=404, detail="CMS integration not found")
    return integration


def _raise_http(exc: Exception) -> NoReturn:
    """Translate a sync-engine error into the matching HTTP error."""
    if isinstance(exc, IntegrationNotFoundError):
        raise HTTPException(status_code=404, detail="CMS integration not found") from exc
    if isinstance(exc, IntegrationInactiveError):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if isinstance(exc, ConnectorConfigError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if isinstance(exc, WebhookNotSupportedError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, ConnectorError):
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post(
    "/",
    response_model=CmsIntegrationResponse,
    status_code=201,
    summary="Create CMS integration",
    responses={
        404: {"description": "Tenant not found"},
        422: {"description": "Validation error"},
    },
)
async def create_cms_integration(
    data: CmsIntegrationCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
    connector_factory: ConnectorFactory = Depends(get_connector_factory),
) -> CmsIntegration:
    """Create a new CMS integration after validating its connection config."""
    service = CmsIntegrationService(db, connector_factory)
    try:
        return service.create(data, tenant_id)
    except (SyncError, ValueError) as exc:
        _raise_http(exc)


@router.get(
    "/",
    response_model=list[CmsIntegrationResponse],
    summary="List CMS integrations",
)
async def list_cms_integrations(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    cms_type: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> list[CmsIntegration]:
    """List CMS integrations for the tenant."""
    repo = CmsIntegrationRepository(db)
    response.headers["X-Total-Count"] = str(
        repo.count(tenant_id, cms_type=cms_type, is_active=is_active)
    )
    return repo.get_all(
        tenant_id,
        skip=skip,
        limit=limit,
        cms_type=cms_type,
        is_active=is_active,
        order_by=order_by,
    )


@router.post(
    "/test_connection",
    response_model=ConnectionTestResponse,
    summary="Test an unsaved CMS connection",
    responses={422: {"description": "Validation error"}},
)
async def test_unsaved_connection(
    data: ConnectionTestRequest,
    connector_factory: ConnectorFactory = Depends(get_connector_factory),
) -> ConnectionTestResponse:
    """Issue one lightweight read with the supplied credentials. Failures are reported, not raised."""
    connector = connector_factory(data.cms_type.value)
    result = await connector.test_connection(data.config)
    return ConnectionTestResponse(success=result.success, message=result.message)


@router.get(
    "/{integration_id}",
    response_model=CmsIntegrationResponse,
    summary="Get CMS integration",
    responses={404: {"description": "CMS integration not found"}},
)
async def get_cms_integration(
    integration_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> CmsIntegration:
    """Get a CMS integration by ID."""
    return _get_integration_or_404(integration_id, tenant_id, db)


@router.put(
    "/{integration_id}",
    response_model=CmsIntegrationResponse,
    summary="Update CMS integration",
    responses={
        404: {"description": "CMS integration not found"},
        422: {"description": "Validation error (cms_type cannot be changed)"},
    },
)
async def update_cms_integration(
    integration_id: UUID,
    data: CmsIntegrationUpdate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
    connector_factory: ConnectorFactory = Depends(get_connector_factory),
) -> CmsIntegration:
    """Update a CMS integration."""
    service = CmsIntegrationService(db, connector_factory)
    try:
        return service.update(integration_id, data, tenant_id)
    except (SyncError, ValueError) as exc:
        _raise_http(exc)


@router.delete(
    "/{integration_id}",
    status_code=204,
    summary="Delete CMS integration",
    responses={404: {"description": "CMS integration not found"}},
)
async def delete_cms_integration(
    integration_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
    connector_factory: ConnectorFactory = Depends(get_connector_factory),
) -> None:
    """Delete a CMS integration and its history. The upstream webhook is removed best-effort."""
    service = CmsIntegrationService(db, connector_factory)
    try:
        await service.delete(integration_id, tenant_id)
    except SyncError as exc:
        _raise_http(exc)


@router.post(
    "/{integration_id}/test",
    response_model=ConnectionTestResponse,
    summary="Test CMS integration connection",
    responses={404: {"description": "CMS integration not found"}},
)
async def test_cms_integration(
    integration_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
    connector_factory: ConnectorFactory = Depends(get_connector_factory),
) -> ConnectionTestResponse:
    """Test a saved integration's connection credentials."""
    service = CmsIntegrationService(db, connector_factory)
    try:
        result = await service.test_integration(integration_id, tenant_id)
    except SyncError as exc:
        _raise_http(exc)
    return ConnectionTestResponse(success=result.success, message=result.message)


@router.get(
    "/{integration_id}/fields",
    response_model=list[SourceField],
    summary="List available source fields",
    responses={
        404: {"description": "CMS integration not found"},
        422: {"description": "Invalid connection config"},
        502: {"description": "Upstream CMS error"},
    },
)
async def get_cms_integration_fields(
    integration_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
    connector_factory: ConnectorFactory = Depends(get_connector_factory),
) -> list[SourceField]:
    """Introspect the upstream schema to populate field mappings."""
    service = CmsIntegrationService(db, connector_factory)
    try:
        return await service.get_available_fields(integration_id, tenant_id)
    except SyncError as exc:
        _raise_http(exc)


@router.post(
    "/{integration_id}/sync",
    response_model=SyncLogDetailResponse,
    summary="Run a sync",
    responses={
        404: {"description": "CMS integration not found"},
        409: {"description": "CMS integration is inactive"},
    },
)
async def run_cms_integration_sync(
    integration_id: UUID,
    data: SyncRequest | None = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
    connector_factory: ConnectorFactory = Depends(get_connector_factory),
) -> SyncLog:
    """Run a full or incremental sync now and return its sync log.

    Upstream failures are reported through the log's ``failed`` status.
    """
    mode = data.mode if data else "full"
    orchestrator = SyncOrchestrator(db, connector_factory)
    try:
        return await orchestrator.run_sync(integration_id, tenant_id, mode)
    except SyncError as exc:
        _raise_http(exc)


@router.post(
    "/{integration_id}/sync_jobs",
    status_code=202,
    response_model=dict[str, Any],
    summary="Queue a background sync",
    responses={
        404: {"description": "CMS integration not found"},
        409: {"description": "CMS integration is inactive"},
    },
)
async def enqueue_cms_integration_sync(
    integration_id: UUID,
    data: SyncRequest | None = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> dict[str, Any]:
    """Queue a sync on the background worker."""
    integration = _get_integration_or_404(integration_id, tenant_id, db)
    if not integration.is_active:
        raise HTTPException(status_code=409, detail="CMS integration is inactive")
    mode = data.mode if data else "full"
    job = await enqueue_integration_sync(str(integration_id), str(tenant_id), mode)
    return {"job_id": job.job_id, "mode": mode, "status": "queued"}


@router.post(
    "/{integration_id}/webhook",
    response_model=WebhookSetupResponse,
    status_code=201,
    summary="Register upstream webhook",
    responses={
        400: {"description": "CMS type does not support webhooks"},
        404: {"description": "CMS integration not found"},
        422: {"description": "Invalid connection config"},
        502: {"description": "Upstream CMS error"},
    },
)
async def setup_cms_integration_webhook(
    integration_id: UUID,
    data: WebhookSetupRequest,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
    connector_factory: ConnectorFactory = Depends(get_connector_factory),
) -> WebhookSetupResponse:
    """Register a push subscription upstream. The signing secret is only returned here."""
    service = CmsIntegrationService(db, connector_factory)
    try:
        webhook = await service.setup_webhook(integration_id, tenant_id, data.webhook_url)
    except SyncError as exc:
        _raise_http(exc)
    return WebhookSetupResponse(url=webhook.url, secret=webhook.secret, events=webhook.events)


@router.get(
    "/{integration_id}/sync_logs",
    response_model=list[SyncLogResponse],
    summary="List sync logs",
    responses={404: {"description": "CMS integration not found"}},
)
async def list_cms_integration_sync_logs(
    integration_id: UUID,
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    status: str | None = Query(default=None),
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> list[SyncLog]:
    """List sync runs for an integration, newest first."""
    _get_integration_or_404(integration_id, tenant_id, db)
    repo = SyncLogRepository(db)
    response.headers["X-Total-Count"] = str(repo.count_by_integration(integration_id, status))
    return repo.get_by_integration(
        integration_id, skip=skip, limit=limit, status=status, order_by=order_by
    )


@router.get(
    "/{integration_id}/webhook_events",
    response_model=list[WebhookEventResponse],
    summary="List webhook events",
    responses={404: {"description": "CMS integration not found"}},
)
async def list_cms_integration_webhook_events(
    integration_id: UUID,
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    processed: bool | None = Query(default=None),
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> list[WebhookEvent]:
    """List inbound webhook events for an integration."""
    _get_integration_or_404(integration_id, tenant_id, db)
    repo = WebhookEventRepository(db)
    response.headers["X-Total-Count"] = str(repo.count_by_integration(integration_id, processed))
    return repo.get_by_integration(
        integration_id, skip=skip, limit=limit, processed=processed, order_by=order_by
    )


@router.get(
    "/{integration_id}/documents",
    response_model=list[SyncedDocumentResponse],
    summary="List synced documents",
    responses={404: {"description": "CMS integration not found"}},
)
async def list_cms_integration_documents(
    integration_id: UUID,
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> list[SyncedDocument]:
    """List the documents an integration has written to the index."""
    _get_integration_or_404(integration_id, tenant_id, db)
    repo = SyncedDocumentRepository(db)
    response.headers["X-Total-Count"] = str(repo.count_by_integration(integration_id))
    return repo.get_by_integration(integration_id, skip=skip, limit=limit, order_by=order_by)
