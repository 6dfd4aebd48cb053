from uuid import UUID

from fastapi import HTTPException, Request

from billing_engine.models.shared import DEFAULT_TENANT_ID


def get_current_tenant(request: Request) -> UUID:
    """Resolve the tenant from the X-Tenant-Id header.

    Requests without the header are served for the default tenant.
    """
    tenant_header = request.headers.get("X-Tenant-Id")
    if not tenant_header:
        return DEFAULT_TENANT_ID
    try:
        return UUID(tenant_header)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-Tenant-Id header") from None
