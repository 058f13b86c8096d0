"""Request-scoped dependencies shared by the v1 routers."""

from uuid import UUID

from fastapi import Header


def get_tenant_id(
    tenant_id: UUID = Header(..., alias="X-Tenant-ID", description="Store that owns the instruments."),
) -> UUID:
    """Tenant resolved upstream by the store/auth layer."""

    return tenant_id
