"""
Schemas for the analytics metrics engine: inbound events, counter deltas,
and the derived dashboard views.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, Field, PlainSerializer

from pipeline_analytics.models.enums import ActivityOutcome, ActivityType, Badge


ALLOWED_PERIOD_DAYS = (7, 14, 30, 90)

# Money stays Decimal through aggregation and ranking; JSON clients get a number.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------

class ActivityEvent(BaseModel):
    """Activity logged by the CRM module (call, meeting or email)."""

    type: ActivityType = Field(..., description="call | meeting | email")
    outcome: ActivityOutcome = Field(ActivityOutcome.NONE, description="Outcome reported for the activity")
    lead_id: Optional[str] = Field(None, description="Lead the activity was logged against")
    actor_id: str = Field(..., description="Rep who performed the activity")
    timestamp: datetime = Field(..., description="When the activity happened; naive values are UTC")
    duration_seconds: Optional[float] = Field(None, description="Call duration; adds to talk time")
    deal_value: Optional[Decimal] = Field(None, description="Deal value attached to a meeting")
    event_id: Optional[str] = Field(None, description="Stable id for replay suppression")


class LeadCreatedEvent(BaseModel):
    """Emitted by the CRM whenever a lead record is created."""

    actor_id: str = Field(..., description="Rep credited with the lead")
    lead_value: Optional[Decimal] = Field(None, description="Initial lead value; 0 when absent")
    timestamp: Optional[datetime] = Field(None, description="Creation time; defaults to now")
    event_id: Optional[str] = Field(None, description="Stable id for replay suppression")


class CounterDelta(BaseModel):
    """
    Increments to apply to one daily metric record.

    Fields left as None are not touched by the update.
    """

    dials: Optional[int] = None
    connects: Optional[int] = None
    meetings_held: Optional[int] = None
    talk_time_seconds: Optional[int] = None
    revenue_generated: Optional[Decimal] = None
    leads_created: Optional[int] = None

    def as_columns(self) -> Dict[str, object]:
        return {name: value for name, value in self.model_dump().items() if value is not None}

    def is_empty(self) -> bool:
        return not self.as_columns()


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------

class PeriodAggregate(BaseModel):
    """Field-wise sum of daily metric records over a span of days."""

    dials: int = 0
    connects: int = 0
    meetings: int = 0
    talk_time_seconds: int = 0
    revenue_generated: Money = Decimal("0")
    leads_created: int = 0


class DayPoint(BaseModel):
    """One calendar day of the activity chart, summed across actors."""

    date: str = Field(..., description="YYYY-MM-DD in the reporting timezone")
    day_name: str = Field(..., description="Mon..Sun")
    dials: int = 0
    connects: int = 0
    meetings: int = 0
    emails: int = Field(0, description="Email counters are not tracked by this engine")
    talk_time_seconds: int = 0
    pipeline_value: Money = Decimal("0")


class TrendSet(BaseModel):
    """Period-over-period percentage change, rounded to whole percent."""

    dials: int = 0
    connects: int = 0
    meetings: int = 0
    pipeline: int = 0


class PeriodSummary(BaseModel):
    total_dials: int = 0
    total_connects: int = 0
    total_meetings: int = 0
    total_emails: int = 0
    total_talk_time_seconds: int = 0
    pipeline_created: Money = Field(Decimal("0"), description="Activity-attributed value, not yet won")
    leads_created: int = 0
    deals_won: int = Field(0, description="Closed-won leads updated in the period")
    revenue_won: Money = Field(Decimal("0"), description="Value of closed-won leads")
    connect_rate: float = Field(0.0, description="connects / dials, 0 when no dials")
    meeting_rate: float = Field(0.0, description="meetings / connects, 0 when no connects")
    close_rate: float = Field(0.0, description="deals won / meetings, 0 when no meetings")
    trends: Optional[TrendSet] = Field(None, description="Change against the preceding period")


class LeaderboardEntry(BaseModel):
    actor_id: str
    display_name: str
    avatar_url: Optional[str] = None
    dials: int = 0
    connects: int = 0
    meetings: int = 0
    pipeline_generated: Money = Decimal("0")
    deals_won: int = 0
    revenue_won: Money = Decimal("0")
    connect_rate: float = 0.0
    rank: int = Field(0, description="1-based position after sorting")
    badges: List[Badge] = Field(default_factory=list)


class DashboardView(BaseModel):
    """Everything the analytics dashboard renders for one period."""

    summary: PeriodSummary
    daily_activity: List[DayPoint]
    leaderboard: List[LeaderboardEntry]
    is_demo: bool = Field(False, description="True when the fixed demonstration dataset was substituted")
    period_days: int
    period_start: datetime
    period_end: datetime


class RepAnalyticsView(BaseModel):
    """One rep's summary and activity chart for a period."""

    actor_id: str
    display_name: str
    avatar_url: Optional[str] = None
    summary: PeriodSummary
    daily_activity: List[DayPoint]
    period_days: int
    period_start: datetime
    period_end: datetime


# ---------------------------------------------------------------------------
# Collaborator payloads
# ---------------------------------------------------------------------------

class ClosedDeal(BaseModel):
    actor_id: Optional[str] = None
    deal_value: Money = Decimal("0")


class ActorProfile(BaseModel):
    display_name: str
    avatar_url: Optional[str] = None
