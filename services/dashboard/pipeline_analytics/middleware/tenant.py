"""
Tenant context middleware for the pipeline analytics service.
Reads the tenant/user context forwarded by the upstream auth gateway.
"""
from fastapi import Request

from pipeline_analytics.config import settings
from pipeline_analytics.obs.logging import get_logger
from pipeline_analytics.obs.sentry import set_tenant_context

logger = get_logger(__name__)

TENANT_HEADER = "X-Tenant-ID"
USER_HEADER = "X-User-Id"
ROLE_HEADER = "X-User-Role"


class TenantContextMiddleware:
    """
    Attach tenant_id / user_id / user_role to request.state.

    Authentication happens upstream; this service trusts the gateway headers.
    Requests without a tenant stay anonymous (tenant_id = None) so the
    dashboard can answer them with the demo dataset.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)

        if self._should_skip_tenant_context(request):
            await self.app(scope, receive, send)
            return

        tenant_id = (request.headers.get(TENANT_HEADER) or "").strip() or None
        user_id = (request.headers.get(USER_HEADER) or "").strip() or None
        user_role = (request.headers.get(ROLE_HEADER) or "").strip() or None

        if not tenant_id and settings.DEV_MODE:
            logger.info("DEV_MODE enabled: Using test company/user for unauthenticated request")
            tenant_id = settings.DEV_TEST_COMPANY_ID
            user_id = user_id or settings.DEV_TEST_USER_ID
            user_role = user_role or "manager"

        # Request wraps the shared scope, so state set here is visible downstream
        request.state.tenant_id = tenant_id
        request.state.user_id = user_id
        request.state.user_role = user_role

        if tenant_id:
            set_tenant_context(tenant_id, user_id, user_role)
            logger.debug(f"Tenant context set: {tenant_id}, User: {user_id}, Role: {user_role}")

        await self.app(scope, receive, send)

    def _should_skip_tenant_context(self, request: Request) -> bool:
        if request.method == "OPTIONS":
            return True

        skip_paths = ["/health", "/metrics", "/docs", "/redoc", "/openapi.json", "/favicon.ico"]
        return any(request.url.path.startswith(path) for path in skip_paths)
