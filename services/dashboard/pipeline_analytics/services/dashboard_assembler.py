"""
Dashboard assembler: composes summary, trends, daily series and leaderboard
for one tenant and period.

Demo substitution happens for anonymous callers, for tenants whose current
period has no dials and no leaderboard rows, and when the store refuses the
read (UnauthorizedError). Timeouts and outages (UnavailableError) propagate.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional

import pytz
from sqlalchemy.orm import Session

from pipeline_analytics.config import settings
from pipeline_analytics.obs.errors import InvalidInputError, MetricsEngineError, UnauthorizedError
from pipeline_analytics.obs.logging import get_logger
from pipeline_analytics.obs.metrics import record_dashboard_request
from pipeline_analytics.obs.tracing import get_tracer
from pipeline_analytics.schemas.analytics import (
    ALLOWED_PERIOD_DAYS,
    ClosedDeal,
    DashboardView,
    PeriodAggregate,
    PeriodSummary,
    RepAnalyticsView,
    TrendSet,
)
from pipeline_analytics.services.collaborators import (
    ActorDirectory,
    ClosedDealSource,
    SqlActorDirectory,
    SqlClosedDealSource,
)
from pipeline_analytics.services.counter_store import CounterStore
from pipeline_analytics.services.demo_data import demo_dashboard
from pipeline_analytics.services.leaderboard import UNKNOWN_REP, build_leaderboard
from pipeline_analytics.services.range_aggregator import RangeAggregator, safe_rate
from pipeline_analytics.services.trends import build_trends, compute_periods

logger = get_logger(__name__)
tracer = get_tracer(__name__)


def build_summary(
    aggregate: PeriodAggregate,
    closed_deals: List[ClosedDeal],
    trends: Optional[TrendSet] = None,
) -> PeriodSummary:
    deals_won = len(closed_deals)
    return PeriodSummary(
        total_dials=aggregate.dials,
        total_connects=aggregate.connects,
        total_meetings=aggregate.meetings,
        total_talk_time_seconds=aggregate.talk_time_seconds,
        pipeline_created=aggregate.revenue_generated,
        leads_created=aggregate.leads_created,
        deals_won=deals_won,
        revenue_won=sum((deal.deal_value for deal in closed_deals), Decimal("0")),
        connect_rate=safe_rate(aggregate.connects, aggregate.dials),
        meeting_rate=safe_rate(aggregate.meetings, aggregate.connects),
        close_rate=safe_rate(deals_won, aggregate.meetings),
        trends=trends,
    )


class DashboardAssembler:
    """Read-path orchestrator behind the analytics API."""

    def __init__(
        self,
        db: Session,
        store: Optional[CounterStore] = None,
        actor_directory: Optional[ActorDirectory] = None,
        closed_deals: Optional[ClosedDealSource] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.tz = settings.reporting_tz
        self.aggregator = RangeAggregator(store or CounterStore(db))
        self.actor_directory = actor_directory or SqlActorDirectory(db)
        self.closed_deals = closed_deals or SqlClosedDealSource(db)
        self.clock = clock or (lambda: datetime.now(self.tz))

    def _today(self) -> date:
        now = self.clock()
        if now.tzinfo is None:
            now = pytz.utc.localize(now)
        return now.astimezone(self.tz).date()

    def _check_period(self, period_days: int):
        if period_days not in ALLOWED_PERIOD_DAYS:
            raise InvalidInputError(
                f"period_days must be one of {list(ALLOWED_PERIOD_DAYS)}",
                {"period_days": period_days},
            )

    async def get_dashboard(self, tenant_id: Optional[str], period_days: int = 7) -> DashboardView:
        """
        Assemble the dashboard for the most recent `period_days` days.

        Raises:
            InvalidInputError: unsupported period length
            UnavailableError: range query timed out or the store is down
        """
        self._check_period(period_days)
        current, previous = compute_periods(self._today(), period_days)
        period_start, period_end = current.bounds(self.tz)

        if not tenant_id:
            logger.info("Anonymous dashboard request, serving demonstration dataset", extra={"period_days": period_days})
            record_dashboard_request("demo")
            return demo_dashboard(period_days, period_start, period_end)

        try:
            with tracer.start_as_current_span("dashboard.assemble") as span:
                span.set_attribute("tenant_id", tenant_id)
                span.set_attribute("period_days", period_days)

                current_range = self.aggregator.collect(tenant_id, current.start, current.end)
                previous_aggregate, _ = self.aggregator.aggregate(tenant_id, previous.start, previous.end)
                deals = self.closed_deals.get_closed_deals(
                    tenant_id,
                    period_start.astimezone(pytz.utc),
                    period_end.astimezone(pytz.utc),
                )
                profiles = self.actor_directory.get_profiles(tenant_id)
        except UnauthorizedError:
            logger.info(
                "Metrics read not permitted for tenant, serving demonstration dataset",
                extra={"tenant_id": tenant_id, "period_days": period_days},
            )
            record_dashboard_request("demo")
            return demo_dashboard(period_days, period_start, period_end)
        except MetricsEngineError:
            record_dashboard_request("error")
            raise

        leaderboard = build_leaderboard(current_range.by_actor, profiles, deals)

        if current_range.aggregate.dials == 0 and not leaderboard:
            logger.info(
                "No activity recorded for period, serving demonstration dataset",
                extra={"tenant_id": tenant_id, "period_days": period_days},
            )
            record_dashboard_request("demo")
            return demo_dashboard(period_days, period_start, period_end)

        record_dashboard_request("live")
        return DashboardView(
            summary=build_summary(
                current_range.aggregate,
                deals,
                trends=build_trends(current_range.aggregate, previous_aggregate),
            ),
            daily_activity=current_range.daily_series,
            leaderboard=leaderboard,
            is_demo=False,
            period_days=period_days,
            period_start=period_start,
            period_end=period_end,
        )

    async def get_rep_analytics(self, tenant_id: str, actor_id: str, period_days: int = 7) -> RepAnalyticsView:
        """One rep's summary (no trends) and zero-filled daily series."""
        self._check_period(period_days)
        if not tenant_id:
            raise InvalidInputError("tenant_id is required for rep analytics")

        current, _ = compute_periods(self._today(), period_days)
        period_start, period_end = current.bounds(self.tz)

        rep_range = self.aggregator.collect(tenant_id, current.start, current.end, actor_id=actor_id)
        deals = [
            deal
            for deal in self.closed_deals.get_closed_deals(
                tenant_id,
                period_start.astimezone(pytz.utc),
                period_end.astimezone(pytz.utc),
            )
            if deal.actor_id == actor_id
        ]
        profile = self.actor_directory.get_profiles(tenant_id).get(actor_id)

        return RepAnalyticsView(
            actor_id=actor_id,
            display_name=profile.display_name if profile else UNKNOWN_REP,
            avatar_url=profile.avatar_url if profile else None,
            summary=build_summary(rep_range.aggregate, deals),
            daily_activity=rep_range.daily_series,
            period_days=period_days,
            period_start=period_start,
            period_end=period_end,
        )
