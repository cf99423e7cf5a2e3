"""Tenant management endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.tenant import Tenant
from app.repositories.tenant_repository import TenantRepository
from app.schemas.tenant import TenantCreate, TenantResponse

router = APIRouter()


@router.post(
    "/",
    response_model=TenantResponse,
    status_code=201,
    summary="Create tenant",
    responses={422: {"description": "Validation error"}},
)
async def create_tenant(
    data: TenantCreate,
    db: Session = Depends(get_db),
) -> Tenant:
    """Create a tenant. Its id is passed as ``X-Tenant-Id`` on scoped requests."""
    return TenantRepository(db).create(data)


@router.get(
    "/",
    response_model=list[TenantResponse],
    summary="List tenants",
)
async def list_tenants(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[Tenant]:
    repo = TenantRepository(db)
    tenants = repo.get_all(skip=skip, limit=limit, order_by=order_by)
    response.headers["X-Total-Count"] = str(repo.count())
    return tenants


@router.get(
    "/{tenant_id}",
    response_model=TenantResponse,
    summary="Get tenant",
    responses={404: {"description": "Tenant not found"}},
)
async def get_tenant(
    tenant_id: UUID,
    db: Session = Depends(get_db),
) -> Tenant:
    tenant = TenantRepository(db).get_by_id(tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant
