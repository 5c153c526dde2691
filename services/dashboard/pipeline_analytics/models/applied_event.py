"""
Ledger of event ids whose deltas were already applied, for replay suppression.
"""
from sqlalchemy import Column, String, Integer, DateTime, Index, UniqueConstraint
from sqlalchemy.sql import func
from pipeline_analytics.database import Base


class AppliedMetricEvent(Base):
    """Model for storing applied event ids."""

    __tablename__ = "applied_metric_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(255), nullable=False)
    event_id = Column(String(255), nullable=False)
    kind = Column(String(32), nullable=False)
    applied_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'event_id', name='uq_applied_metric_events_tenant_event'),
        Index('ix_applied_metric_events_applied_at', 'applied_at'),
    )

    def __repr__(self):
        return f"<AppliedMetricEvent(tenant={self.tenant_id}, event_id={self.event_id}, kind={self.kind})>"
