"""
RFC-7807 compliant error handling for the pipeline analytics service.
Provides the engine's typed failures and structured error responses with trace correlation.
"""
from typing import Any, Dict, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from pipeline_analytics.obs.logging import get_logger, log_error
from pipeline_analytics.obs.tracing import get_current_trace_id

logger = get_logger(__name__)


# Typed failures raised by the metrics engine. Store-level exceptions are
# translated into one of these before they leave the services package.
class MetricsEngineError(Exception):
    """Base class for metrics engine failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConflictError(MetricsEngineError):
    """Concurrent writers kept colliding on a counter key after bounded retries."""


class UnauthorizedError(MetricsEngineError):
    """The store refused a read for this tenant."""


class UnavailableError(MetricsEngineError):
    """The store timed out or could not be reached."""


class InvalidInputError(MetricsEngineError):
    """An event or delta was malformed and nothing was applied."""


ERROR_TYPE_MAPPINGS = {
    ConflictError: {
        "type": "https://tools.ietf.org/html/rfc7231#section-6.5.8",
        "title": "Write Conflict",
        "status": 409,
    },
    UnauthorizedError: {
        "type": "https://tools.ietf.org/html/rfc7231#section-6.5.3",
        "title": "Authorization Error",
        "status": 403,
    },
    UnavailableError: {
        "type": "https://tools.ietf.org/html/rfc7231#section-6.6.4",
        "title": "Metrics Store Unavailable",
        "status": 503,
    },
    InvalidInputError: {
        "type": "https://tools.ietf.org/html/rfc4918#section-11.2",
        "title": "Invalid Metrics Input",
        "status": 422,
    },
}


class ProblemDetail:
    """RFC-7807 Problem Details for HTTP APIs."""

    def __init__(
        self,
        type: str,
        title: str,
        detail: str,
        status: int,
        instance: Optional[str] = None,
        trace_id: Optional[str] = None,
        **kwargs
    ):
        self.type = type
        self.title = title
        self.detail = detail
        self.status = status
        self.instance = instance
        self.trace_id = trace_id
        self.extensions = kwargs

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = {
            "type": self.type,
            "title": self.title,
            "detail": self.detail,
            "status": self.status,
        }

        if self.instance:
            result["instance"] = self.instance

        if self.trace_id:
            result["trace_id"] = self.trace_id

        result.update(self.extensions)

        return result


def create_problem_detail(
    error: Exception,
    request: Request,
    status_code: int = 500,
    error_type: str = "about:blank",
    title: str = "Internal Server Error",
    detail: Optional[str] = None
) -> ProblemDetail:
    """Create a ProblemDetail from an exception."""
    trace_id = getattr(request.state, 'trace_id', None) or get_current_trace_id()

    if detail is None:
        detail = str(error)

    return ProblemDetail(
        type=error_type,
        title=title,
        detail=detail,
        status=status_code,
        instance=request.url.path,
        trace_id=trace_id,
    )


def _error_response(request: Request, exc: Exception, problem: ProblemDetail, **log_fields) -> JSONResponse:
    log_error(
        logger=logger,
        error=exc,
        trace_id=problem.trace_id,
        tenant_id=getattr(request.state, 'tenant_id', None),
        user_id=getattr(request.state, 'user_id', None),
        route=request.url.path,
        method=request.method,
        **log_fields,
    )
    return JSONResponse(
        status_code=problem.status,
        content=jsonable_encoder(problem.to_dict())
    )


async def metrics_engine_exception_handler(request: Request, exc: MetricsEngineError) -> JSONResponse:
    """Map typed engine failures onto their problem-detail status codes."""
    mapping = next(
        (m for cls, m in ERROR_TYPE_MAPPINGS.items() if isinstance(exc, cls)),
        {"type": "about:blank", "title": "Metrics Engine Error", "status": 500},
    )
    problem = create_problem_detail(
        error=exc,
        request=request,
        status_code=mapping["status"],
        error_type=mapping["type"],
        title=mapping["title"],
        detail=exc.message,
    )
    if exc.details:
        problem.extensions["details"] = exc.details

    return _error_response(request, exc, problem, status=problem.status)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with RFC-7807 format."""
    problem = create_problem_detail(
        error=exc,
        request=request,
        status_code=exc.status_code,
        error_type="https://tools.ietf.org/html/rfc7231#section-6.5",
        title="HTTP Error",
        detail=exc.detail
    )
    return _error_response(request, exc, problem, status=exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with RFC-7807 format."""
    problem = create_problem_detail(
        error=exc,
        request=request,
        status_code=422,
        error_type="https://tools.ietf.org/html/rfc4918#section-11.2",
        title="Validation Error",
        detail="Request validation failed"
    )
    problem.extensions["validation_errors"] = exc.errors()

    return _error_response(request, exc, problem, status=422)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions with RFC-7807 format."""
    problem = create_problem_detail(
        error=exc,
        request=request,
        status_code=500,
        error_type="https://tools.ietf.org/html/rfc7231#section-6.6.1",
        title="Internal Server Error",
        detail="An unexpected error occurred"
    )
    return _error_response(request, exc, problem, status=500)


def register_error_handlers(app):
    """Register all error handlers with the FastAPI app."""
    app.add_exception_handler(MetricsEngineError, metrics_engine_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
    return app
