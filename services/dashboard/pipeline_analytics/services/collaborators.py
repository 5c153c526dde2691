"""
Read-only collaborators the dashboard depends on but does not own:
the actor directory (roster names/avatars) and the closed-deal source.

The SQL implementations read the CRM's `team_members` and `leads` tables.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pipeline_analytics.models.enums import LeadStatus
from pipeline_analytics.models.lead import Lead
from pipeline_analytics.models.team_member import TeamMember
from pipeline_analytics.obs.logging import get_logger
from pipeline_analytics.schemas.analytics import ActorProfile, ClosedDeal
from pipeline_analytics.services.counter_store import translate_read_error
from pipeline_analytics.services.leaderboard import UNKNOWN_REP
from pipeline_analytics.services.range_aggregator import to_money

logger = get_logger(__name__)


class ActorDirectory(ABC):
    """Lookup from actor id to display name and avatar."""

    @abstractmethod
    def get_profiles(self, tenant_id: str) -> Dict[str, ActorProfile]:
        pass


class ClosedDealSource(ABC):
    """Closed-won deals whose last update falls in [start, end]."""

    @abstractmethod
    def get_closed_deals(self, tenant_id: str, start: datetime, end: datetime) -> List[ClosedDeal]:
        pass


class SqlActorDirectory(ActorDirectory):
    def __init__(self, db: Session):
        self.db = db

    def get_profiles(self, tenant_id: str) -> Dict[str, ActorProfile]:
        try:
            members = self.db.query(TeamMember).filter(TeamMember.tenant_id == tenant_id).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise translate_read_error(e) from e

        return {
            member.id: ActorProfile(
                display_name=member.name or member.email or UNKNOWN_REP,
                avatar_url=member.avatar_url,
            )
            for member in members
        }


class SqlClosedDealSource(ClosedDealSource):
    def __init__(self, db: Session):
        self.db = db

    def get_closed_deals(self, tenant_id: str, start: datetime, end: datetime) -> List[ClosedDeal]:
        try:
            leads = (
                self.db.query(Lead)
                .filter(
                    Lead.tenant_id == tenant_id,
                    Lead.status == LeadStatus.CLOSED_WON,
                    Lead.updated_at >= start,
                    Lead.updated_at <= end,
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise translate_read_error(e) from e

        deals = [
            ClosedDeal(actor_id=lead.assigned_actor_id, deal_value=to_money(lead.value))
            for lead in leads
        ]
        logger.debug(f"Found {len(deals)} closed deals", extra={"tenant_id": tenant_id})
        return deals
