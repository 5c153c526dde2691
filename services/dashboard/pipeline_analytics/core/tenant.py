"""
Tenant context dependencies for the analytics API.
Reads the tenant context that TenantContextMiddleware placed on request.state.
"""
from typing import Optional
from fastapi import Request, HTTPException
from pipeline_analytics.obs.logging import get_logger

logger = get_logger(__name__)


def get_optional_tenant_id(request: Request) -> Optional[str]:
    """
    Return the request's tenant_id, or None for anonymous requests.

    The dashboard answers anonymous callers with the demonstration dataset,
    so a missing tenant is not an error here.
    """
    tenant_id = getattr(request.state, 'tenant_id', None)
    if not tenant_id:
        logger.debug("No tenant context on request; treating as anonymous")
        return None
    return tenant_id


def get_tenant_id(request: Request) -> str:
    """
    Extract and validate tenant_id from request state.

    Raises:
        HTTPException: 403 if tenant_id is missing
    """
    tenant_id = get_optional_tenant_id(request)

    if not tenant_id:
        logger.warning("Missing tenant_id in request state")
        raise HTTPException(
            status_code=403,
            detail="Missing tenant context. Authentication required."
        )

    return tenant_id
