"""
Request observability for the analytics API: correlation id, a server span,
the http_requests_total / http_request_duration_ms series and one access log
line per request.
"""
import time
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from pipeline_analytics.obs.logging import extract_trace_id, get_logger, log_error, log_request
from pipeline_analytics.obs.metrics import record_http_request
from pipeline_analytics.obs.tracing import add_span_attributes, add_span_error, get_tracer

logger = get_logger(__name__)
tracer = get_tracer(__name__)

# Health checks and scrapes stay out of the access log and request metrics.
UNOBSERVED_PATHS = ('/health', '/metrics', '/docs', '/openapi.json')


class ObservabilityMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, exclude_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or UNOBSERVED_PATHS)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path.startswith(self.exclude_paths):
            return await call_next(request)

        started = time.perf_counter()
        trace_id = extract_trace_id(request)
        request.state.trace_id = trace_id

        span_attributes = {"http.method": request.method, "http.route": path, "trace_id": trace_id}
        with tracer.start_as_current_span(f"{request.method} {path}", attributes=span_attributes):
            try:
                response = await call_next(request)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - started) * 1000
                add_span_error(e, {"error.route": path, "error.method": request.method})
                record_http_request(route=path, method=request.method, status_code=500, duration_ms=elapsed_ms)
                log_error(
                    logger=logger,
                    error=e,
                    trace_id=trace_id,
                    tenant_id=getattr(request.state, 'tenant_id', None),
                    user_id=getattr(request.state, 'user_id', None),
                    route=path,
                    method=request.method,
                )
                raise

            elapsed_ms = (time.perf_counter() - started) * 1000
            add_span_attributes({"http.status_code": response.status_code})
            response.headers["X-Request-Id"] = trace_id
            record_http_request(route=path, method=request.method, status_code=response.status_code, duration_ms=elapsed_ms)
            log_request(
                logger=logger,
                request=request,
                status_code=response.status_code,
                latency_ms=elapsed_ms,
                trace_id=trace_id,
                tenant_id=getattr(request.state, 'tenant_id', None),
                user_id=getattr(request.state, 'user_id', None),
            )
            return response
