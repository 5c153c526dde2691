"""
Analytics API endpoints.

Provides endpoints for:
- Team dashboard (summary, trends, daily activity, leaderboard)
- Per-rep analytics
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from pipeline_analytics.core.tenant import get_optional_tenant_id, get_tenant_id
from pipeline_analytics.database import get_db
from pipeline_analytics.obs.logging import get_logger
from pipeline_analytics.schemas.analytics import DashboardView, RepAnalyticsView
from pipeline_analytics.schemas.responses import APIMetadata, APIResponse
from pipeline_analytics.services.dashboard_assembler import DashboardAssembler

logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


def get_dashboard_assembler(db: Session = Depends(get_db)) -> DashboardAssembler:
    return DashboardAssembler(db)


@router.get("/dashboard", response_model=APIResponse[DashboardView])
async def get_dashboard(
    request: Request,
    period_days: int = Query(7, description="Period length in days: 7, 14, 30 or 90"),
    tenant_id: Optional[str] = Depends(get_optional_tenant_id),
    assembler: DashboardAssembler = Depends(get_dashboard_assembler),
):
    """
    Get the analytics dashboard for the caller's tenant.

    Anonymous callers and tenants without activity in the period receive the
    demonstration dataset with `is_demo = true`.
    """
    view = await assembler.get_dashboard(tenant_id, period_days)

    return APIResponse(
        success=True,
        data=view,
        meta=APIMetadata(request_id=getattr(request.state, 'trace_id', None)),
    )


@router.get("/reps/{actor_id}", response_model=APIResponse[RepAnalyticsView])
async def get_rep_analytics(
    request: Request,
    actor_id: str,
    period_days: int = Query(7, description="Period length in days: 7, 14, 30 or 90"),
    tenant_id: str = Depends(get_tenant_id),
    assembler: DashboardAssembler = Depends(get_dashboard_assembler),
):
    """Get one rep's summary and daily activity for the period."""
    view = await assembler.get_rep_analytics(tenant_id, actor_id, period_days)

    return APIResponse(
        success=True,
        data=view,
        meta=APIMetadata(request_id=getattr(request.state, 'trace_id', None)),
    )
