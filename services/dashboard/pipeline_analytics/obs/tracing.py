"""
OpenTelemetry distributed tracing for the pipeline analytics service.
"""
from typing import Optional, Dict, Any
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace.export import ConsoleSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from pipeline_analytics.config import settings


def setup_tracing() -> Optional[TracerProvider]:
    """Configure OpenTelemetry tracing for the application."""
    if not settings.ENABLE_TRACING:
        # The API's no-op tracer stays in place; spans cost nothing.
        return None

    resource = Resource.create({
        "service.name": settings.OTEL_SERVICE_NAME_API,
        "service.version": "1.0.0",
        "deployment.environment": settings.ENVIRONMENT,
    })

    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)

    if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT)
    else:
        exporter = ConsoleSpanExporter()

    tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
    return tracer_provider


def instrument_fastapi(app):
    """Instrument FastAPI application with OpenTelemetry."""
    if settings.ENABLE_TRACING:
        FastAPIInstrumentor.instrument_app(app)
    return app


def instrument_sqlalchemy(engine):
    """Instrument the SQLAlchemy engine with OpenTelemetry."""
    if settings.ENABLE_TRACING:
        SQLAlchemyInstrumentor().instrument(engine=engine)
    return engine


def get_tracer(name: str):
    """Get a tracer instance."""
    return trace.get_tracer(name)


def add_span_attributes(attributes: Dict[str, Any]):
    """Add attributes to the current span."""
    span = trace.get_current_span()
    if span and span.is_recording():
        for key, value in attributes.items():
            span.set_attribute(key, value)


def add_span_error(error: Exception, attributes: Optional[Dict[str, Any]] = None):
    """Record an error on the current span."""
    span = trace.get_current_span()
    if span and span.is_recording():
        span.record_exception(error)
        span.set_status(trace.Status(trace.StatusCode.ERROR, str(error)))
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)


def get_current_trace_id() -> Optional[str]:
    """Get the current trace ID as a hex string."""
    span = trace.get_current_span()
    if span:
        span_context = span.get_span_context()
        if span_context and span_context.is_valid:
            return format(span_context.trace_id, '032x')
    return None
