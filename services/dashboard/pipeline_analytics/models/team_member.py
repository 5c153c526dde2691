from sqlalchemy import Column, String, DateTime, Index
from sqlalchemy.sql import func
from pipeline_analytics.database import Base


class TeamMember(Base):
    """Roster entry used to label leaderboard rows. Owned by the CRM."""

    __tablename__ = "team_members"

    id = Column(String(255), primary_key=True)
    tenant_id = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_team_members_tenant', 'tenant_id'),
    )
