"""
Prometheus metrics endpoint.

Exposes application metrics in Prometheus format.
"""
from fastapi import APIRouter, Response
from pipeline_analytics.obs.metrics import metrics

router = APIRouter(tags=["Observability"])


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="""
    Exposes application metrics in Prometheus format.

    **Metrics Exposed**:
    - Request count and latency by route
    - Counter deltas applied, write conflicts, rejected and replayed events
    - Dashboard assemblies by outcome (live / demo / error)
    - Range query latency

    **No Authentication Required**: Metrics endpoint is public (no PII)
    """,
    response_class=Response,
)
async def prometheus_metrics():
    return metrics.get_metrics_response()
