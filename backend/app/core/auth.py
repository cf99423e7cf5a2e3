from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.shared import DEFAULT_TENANT_ID
from app.models.tenant import Tenant


def get_current_tenant(
    request: Request,
    db: Session = Depends(get_db),
) -> UUID:
    """Resolve the tenant the request acts on from the X-Tenant-Id header.

    Session handling lives outside this service, so the header is trusted as-is.
    Without a header the default tenant is used.
    """
    tenant_header = request.headers.get("X-Tenant-Id")
    if not tenant_header:
        return DEFAULT_TENANT_ID

    try:
        tenant_id = UUID(tenant_header)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-Tenant-Id header") from None

    if db.query(Tenant.id).filter(Tenant.id == tenant_id).first() is None:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant_id
