from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from pipeline_analytics.config import settings
from pipeline_analytics.database import SessionLocal, init_db, engine
from pipeline_analytics.routes import analytics, health, metrics
from pipeline_analytics.services.counter_store import CounterStore

# Import observability components
from pipeline_analytics.obs.logging import setup_logging, get_logger
from pipeline_analytics.obs.tracing import setup_tracing, instrument_fastapi, instrument_sqlalchemy
from pipeline_analytics.obs.middleware import ObservabilityMiddleware
from pipeline_analytics.obs.errors import register_error_handlers
from pipeline_analytics.obs.sentry import setup_sentry
from pipeline_analytics.middleware.tenant import TenantContextMiddleware

# Setup observability
setup_logging()
setup_tracing()
setup_sentry()
instrument_sqlalchemy(engine)

logger = get_logger(__name__)

app = FastAPI(title="Pipeline Analytics API")

# Instrument FastAPI with OpenTelemetry
instrument_fastapi(app)

# Register error handlers
register_error_handlers(app)

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Tenant context middleware
app.add_middleware(TenantContextMiddleware)

# Observability middleware (outermost: times and logs the whole request)
app.add_middleware(ObservabilityMiddleware)

# Include routers
app.include_router(health.router)  # Health checks first
app.include_router(metrics.router)  # Prometheus scrape endpoint
app.include_router(analytics.router)


def purge_expired_dedupe_events():
    """Bound the applied-event ledger to EVENT_DEDUPE_RETENTION_DAYS."""
    db = SessionLocal()
    try:
        CounterStore(db).purge_expired_events()
    except SQLAlchemyError as e:
        db.rollback()
        # Expired rows are also ignored at apply time, so startup continues
        logger.warning(f"Dedupe ledger purge failed: {e.__class__.__name__}")
    finally:
        db.close()


@app.on_event("startup")
async def startup_event():
    init_db()
    purge_expired_dedupe_events()
    logger.info(f"Pipeline analytics API started (environment={settings.ENVIRONMENT})")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
