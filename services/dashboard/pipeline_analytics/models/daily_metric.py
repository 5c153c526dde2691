"""
Daily metric record: one row of raw counters per (tenant, day, actor).
"""
from sqlalchemy import Column, String, Integer, BigInteger, Numeric, DateTime, Index, UniqueConstraint
from sqlalchemy.sql import func
from pipeline_analytics.database import Base


# Counter columns that accept additive deltas
COUNTER_FIELDS = (
    "dials",
    "connects",
    "meetings_held",
    "talk_time_seconds",
    "revenue_generated",
    "leads_created",
)


class DailyMetricRecord(Base):
    """
    Per-tenant, per-day, per-actor counters.

    `date` is the calendar day in the reporting timezone, stored as YYYY-MM-DD
    so that range filters compare lexically. Existing rows only ever change
    through `SET col = col + :delta` updates.
    """

    __tablename__ = "daily_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(255), nullable=False, index=True)
    date = Column(String(10), nullable=False)
    actor_id = Column(String(255), nullable=False)

    dials = Column(Integer, nullable=False, default=0, server_default="0")
    connects = Column(Integer, nullable=False, default=0, server_default="0")
    meetings_held = Column(Integer, nullable=False, default=0, server_default="0")
    talk_time_seconds = Column(BigInteger, nullable=False, default=0, server_default="0")
    revenue_generated = Column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    leads_created = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'date', 'actor_id', name='uq_daily_metrics_tenant_date_actor'),
        Index('ix_daily_metrics_tenant_date', 'tenant_id', 'date'),
    )

    def __repr__(self):
        return f"<DailyMetricRecord(tenant={self.tenant_id}, date={self.date}, actor={self.actor_id})>"
