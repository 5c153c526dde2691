"""
Envelope shared by the analytics API's success responses. Errors use the
problem-detail format from obs.errors instead.
"""
from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar('T')


class APIMetadata(BaseModel):
    request_id: Optional[str] = Field(None, description="Correlation id, echoed in the X-Request-Id header")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="When the response was built (UTC)")
    version: str = Field(default="v1", description="API version")


class APIResponse(BaseModel, Generic[T]):
    """`data` holds the view (DashboardView, RepAnalyticsView)."""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": True,
            "data": {"is_demo": False, "period_days": 7},
            "meta": {"request_id": "9f1c2a7e-4b1d-4c55-9d0e-2d7c1e8a5b10", "version": "v1"},
        }
    })

    success: bool = True
    data: T
    meta: Optional[APIMetadata] = None
    message: Optional[str] = None
