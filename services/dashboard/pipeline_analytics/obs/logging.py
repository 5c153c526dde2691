"""
Structured JSON logging for the pipeline analytics service.

Every line carries the request's trace id and, when known, the tenant and
actor it concerns. Contact details that leak into messages (rep emails used
as display-name fallbacks, lead phone numbers) are masked when
OBS_REDACT_PII is on.
"""
import json
import logging
import re
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from fastapi import Request

from pipeline_analytics.config import settings

# Fields copied from `extra=` onto the JSON line when present.
CONTEXT_FIELDS: Tuple[str, ...] = (
    "trace_id", "tenant_id", "user_id", "actor_id",
    "route", "method", "status", "latency_ms", "ip",
    "metric_date", "event_id", "attempt", "period_days",
    "error_type", "stack_trace",
)

NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "fastapi", "sqlalchemy.engine")


class PIIRedactor:
    """Masks emails and phone numbers in free-text log messages."""

    RULES = (
        (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[REDACTED_EMAIL]"),
        (re.compile(r"\+\d{1,3}[-.\s]?\d{3,4}[-.\s]?\d{3,4}[-.\s]?\d{3,4}"), "[REDACTED_PHONE]"),
        (re.compile(r"\(\d{3}\)\s*\d{3}[-.]?\d{4}"), "[REDACTED_PHONE]"),
        (re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"), "[REDACTED_PHONE]"),
    )

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def redact(self, message: str) -> str:
        if not self.enabled or not message:
            return message
        for pattern, replacement in self.RULES:
            message = pattern.sub(replacement, message)
        return message


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, redact_pii: bool = True, service: str = "analytics"):
        super().__init__()
        self.redactor = PIIRedactor(redact_pii)
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "service": getattr(record, "service", self.service),
            "logger": record.name,
            "message": self.redactor.redact(record.getMessage()),
        }
        entry.update(
            (name, getattr(record, name))
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["error_type"] = record.exc_info[0].__name__
            entry["stack_trace"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging() -> logging.Logger:
    """Route the root logger through a single JSON stream handler."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(redact_pii=settings.OBS_REDACT_PII))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _request_context(trace_id: Optional[str], tenant_id: Optional[str], user_id: Optional[str], **kwargs) -> Dict[str, Any]:
    context = {"service": "api", "trace_id": trace_id}
    if tenant_id:
        context["tenant_id"] = tenant_id
    if user_id:
        context["user_id"] = user_id
    context.update(kwargs)
    return context


def log_request(
    logger: logging.Logger,
    request: Request,
    status_code: int,
    latency_ms: float,
    trace_id: str,
    tenant_id: Optional[str] = None,
    user_id: Optional[str] = None,
    **kwargs
):
    """Access log line; level follows the status class."""
    extra = _request_context(
        trace_id, tenant_id, user_id,
        route=request.url.path,
        method=request.method,
        status=status_code,
        latency_ms=round(latency_ms, 2),
        ip=request.client.host if request.client else None,
        **kwargs,
    )
    if status_code >= 500:
        level, outcome = logging.ERROR, "server error"
    elif status_code >= 400:
        level, outcome = logging.WARNING, "client error"
    else:
        level, outcome = logging.INFO, "ok"
    logger.log(level, f"{request.method} {request.url.path} -> {status_code} ({outcome})", extra=extra)


def log_error(
    logger: logging.Logger,
    error: Exception,
    trace_id: Optional[str],
    tenant_id: Optional[str] = None,
    user_id: Optional[str] = None,
    **kwargs
):
    """Error line with stack trace attached."""
    extra = _request_context(trace_id, tenant_id, user_id, error_type=type(error).__name__, **kwargs)
    logger.error(f"{type(error).__name__}: {error}", exc_info=error, extra=extra)


def extract_trace_id(request: Request) -> str:
    """
    Correlation id for a request: X-Request-Id if the caller sent one,
    else the trace id from a W3C traceparent header, else a fresh uuid4.
    """
    request_id = request.headers.get("X-Request-Id")
    if request_id:
        return request_id

    # traceparent: 00-<trace_id>-<span_id>-<flags>
    parts = request.headers.get("traceparent", "").split("-")
    if len(parts) >= 2 and parts[1]:
        return parts[1]

    return str(uuid.uuid4())
