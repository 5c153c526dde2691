"""
Health check endpoints
"""
import time
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from pipeline_analytics.config import settings
from pipeline_analytics.database import get_db
from pipeline_analytics.obs.logging import get_logger

router = APIRouter(tags=["Observability"])
logger = get_logger(__name__)


@router.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@router.get("/health/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """Health check including the metrics store"""
    health_status = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "checks": {}
    }

    try:
        start_time = time.time()
        db.execute(text("SELECT 1"))
        response_time = (time.time() - start_time) * 1000
        health_status["checks"]["database"] = {"status": "healthy", "response_time_ms": response_time}
    except DBAPIError as e:
        logger.error(f"Database health check failed: {e.__class__.__name__}")
        health_status["checks"]["database"] = {"status": "unhealthy", "error": e.__class__.__name__}
        health_status["status"] = "unhealthy"

    return health_status
