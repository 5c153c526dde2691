"""
Sentry error tracking integration.
Captures exceptions from the API and the counter write path.
"""
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from pipeline_analytics.config import settings
from pipeline_analytics.obs.logging import get_logger, PIIRedactor

logger = get_logger(__name__)

_redactor = PIIRedactor(enabled=True)


def setup_sentry():
    """Initialize Sentry SDK when a DSN is configured."""
    if not settings.SENTRY_DSN:
        logger.warning("SENTRY_DSN not configured, skipping Sentry initialization")
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        integrations=[
            FastApiIntegration(
                transaction_style="endpoint",
                failed_request_status_codes={500, 501, 502, 503, 504}
            ),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        before_send=before_send_event,
        release=f"pipeline-analytics@{settings.ENVIRONMENT}",
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50
    )

    logger.info(f"Sentry initialized for environment: {settings.ENVIRONMENT}")


def before_send_event(event, hint):
    """Redact PII from exception messages; drop non-errors in development."""
    if settings.ENVIRONMENT == "development" and event.get("level") != "error":
        return None

    if "exception" in event:
        for exception in event["exception"].get("values", []):
            if exception.get("value"):
                exception["value"] = _redactor.redact(exception["value"])

    return event


def set_tenant_context(tenant_id: str, user_id: str = None, role: str = None):
    """Tag subsequent events with the request's tenant."""
    sentry_sdk.set_tag("tenant_id", tenant_id)
    sentry_sdk.set_user({
        "id": user_id,
        "tenant_id": tenant_id,
        "role": role
    })


def capture_exception(exception: Exception, extra_context: dict = None):
    """Capture an exception with additional context."""
    with sentry_sdk.new_scope() as scope:
        if extra_context:
            for key, value in extra_context.items():
                scope.set_extra(key, value)

        sentry_sdk.capture_exception(exception)
