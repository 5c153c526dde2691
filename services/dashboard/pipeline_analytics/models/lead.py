from uuid import uuid4

from sqlalchemy import Column, DateTime, Enum, Numeric, String, Index
from sqlalchemy.sql import func

from pipeline_analytics.database import Base
from pipeline_analytics.models.enums import LeadStatus


class Lead(Base):
    """
    Lead record owned by the CRM module.

    The analytics engine only reads it: leads in `closed_won` whose
    `updated_at` falls in a period count as deals won for `assigned_actor_id`.
    """

    __tablename__ = "leads"

    id = Column(String(255), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(255), nullable=False)
    assigned_actor_id = Column(String(255), nullable=True)
    status = Column(Enum(LeadStatus, native_enum=False, length=32), nullable=False, default=LeadStatus.NEW)
    value = Column(Numeric(14, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_leads_tenant_status_updated', 'tenant_id', 'status', 'updated_at'),
    )
