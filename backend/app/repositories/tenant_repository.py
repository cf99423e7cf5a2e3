from __future__ import annotations

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.sorting import apply_order_by
from app.models.tenant import Tenant
from app.schemas.tenant import TenantCreate


class TenantRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        order_by: str | None = None,
    ) -> list[Tenant]:
        query = self.db.query(Tenant)
        query = apply_order_by(query, Tenant, order_by)
        return query.offset(skip).limit(limit).all()

    def count(self) -> int:
        return self.db.query(func.count(Tenant.id)).scalar() or 0

    def get_by_id(self, tenant_id: UUID) -> Tenant | None:
        return self.db.query(Tenant).filter(Tenant.id == tenant_id).first()

    def create(self, data: TenantCreate) -> Tenant:
        tenant = Tenant(**data.model_dump())
        self.db.add(tenant)
        self.db.commit()
        self.db.refresh(tenant)
        return tenant

