"""
Unit tests for dashboard assembly.

Tests verify demo substitution rules, error propagation and that a recorded
week of activity comes back as the expected summary, series and leaderboard.
"""
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from pipeline_analytics.models.enums import ActivityOutcome, ActivityType, Badge, LeadStatus
from pipeline_analytics.models.lead import Lead
from pipeline_analytics.models.team_member import TeamMember
from pipeline_analytics.obs.errors import InvalidInputError, UnauthorizedError, UnavailableError
from pipeline_analytics.schemas.analytics import ActivityEvent, ClosedDeal, PeriodAggregate
from pipeline_analytics.services.collaborators import ClosedDealSource, SqlActorDirectory, SqlClosedDealSource
from pipeline_analytics.services.dashboard_assembler import DashboardAssembler, build_summary
from pipeline_analytics.services.demo_data import DEMO_LEADERBOARD, DEMO_SUMMARY
from pipeline_analytics.services.metrics_recorder import MetricsRecorder


@pytest.fixture
def recorder(db_session, store):
    return MetricsRecorder(db_session, store=store, timezone="UTC")


@pytest.fixture
def recorded_week(db_session, recorder, tenant_id):
    """
    Day 3 of the current week: a connected 2-minute call.
    Day 5: a meeting that closed at 5000, plus the matching closed-won lead.
    """
    recorder.record_activity(tenant_id, ActivityEvent(
        type=ActivityType.CALL,
        outcome=ActivityOutcome.CONNECTED,
        actor_id="rep-a",
        timestamp=datetime(2025, 2, 5, 10, 0),
        duration_seconds=120,
    ))
    recorder.record_activity(tenant_id, ActivityEvent(
        type=ActivityType.MEETING,
        outcome=ActivityOutcome.CLOSED_WON,
        actor_id="rep-a",
        timestamp=datetime(2025, 2, 7, 16, 0),
        deal_value=Decimal("5000"),
    ))
    db_session.add(Lead(
        tenant_id=tenant_id,
        assigned_actor_id="rep-a",
        status=LeadStatus.CLOSED_WON,
        value=Decimal("5000"),
        created_at=datetime(2025, 1, 20, 9, 0),
        updated_at=datetime(2025, 2, 7, 16, 5),
    ))
    db_session.add(TeamMember(id="rep-a", tenant_id=tenant_id, name="Sarah Chen"))
    db_session.commit()


class TestDemoSubstitution:
    """When the dashboard falls back to the demonstration dataset."""

    @pytest.mark.asyncio
    async def test_anonymous_caller_gets_demo(self, assembler):
        view = await assembler.get_dashboard(None, 7)

        assert view.is_demo is True
        assert view.summary.total_dials == DEMO_SUMMARY.total_dials
        assert len(view.leaderboard) == len(DEMO_LEADERBOARD)
        assert view.period_days == 7

    @pytest.mark.asyncio
    async def test_tenant_without_activity_gets_demo(self, assembler, tenant_id):
        view = await assembler.get_dashboard(tenant_id, 30)

        assert view.is_demo is True
        assert view.period_days == 30

    @pytest.mark.asyncio
    async def test_activity_only_in_previous_period_still_demo(self, assembler, recorder, tenant_id):
        recorder.record_activity(tenant_id, ActivityEvent(
            type=ActivityType.CALL, actor_id="rep-a", timestamp=datetime(2025, 1, 30, 9, 0),
        ))

        view = await assembler.get_dashboard(tenant_id, 7)

        assert view.is_demo is True

    @pytest.mark.asyncio
    async def test_unauthorized_read_gets_demo(self, db_session, store, fixed_clock, recorded_week, tenant_id):
        deals = MagicMock(spec=ClosedDealSource)
        deals.get_closed_deals.side_effect = UnauthorizedError("permission denied")
        assembler = DashboardAssembler(db_session, store=store, closed_deals=deals, clock=fixed_clock)

        view = await assembler.get_dashboard(tenant_id, 7)

        assert view.is_demo is True

    @pytest.mark.asyncio
    async def test_unavailable_store_propagates(self, db_session, fixed_clock, tenant_id):
        store = MagicMock()
        store.fetch_range.side_effect = UnavailableError("statement timeout")
        assembler = DashboardAssembler(db_session, store=store, clock=fixed_clock)

        with pytest.raises(UnavailableError):
            await assembler.get_dashboard(tenant_id, 7)

    @pytest.mark.asyncio
    async def test_demo_constants_are_not_shared(self, assembler):
        first = await assembler.get_dashboard(None, 7)
        first.leaderboard[0].dials = 0
        first.summary.total_dials = 0

        second = await assembler.get_dashboard(None, 7)

        assert second.leaderboard[0].dials == DEMO_LEADERBOARD[0].dials
        assert DEMO_SUMMARY.total_dials != 0


class TestPeriodValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("period_days", [0, 5, 31, 365])
    async def test_unsupported_period_rejected(self, assembler, tenant_id, period_days):
        with pytest.raises(InvalidInputError):
            await assembler.get_dashboard(tenant_id, period_days)

    @pytest.mark.asyncio
    async def test_period_bounds_cover_whole_days(self, assembler):
        view = await assembler.get_dashboard(None, 14)

        assert view.period_start.isoformat().startswith("2025-01-27T00:00:00")
        assert view.period_end.isoformat().startswith("2025-02-09T23:59:59")


class TestLiveDashboard:
    """A recorded week assembled end to end."""

    @pytest.mark.asyncio
    async def test_summary_from_recorded_week(self, assembler, recorded_week, tenant_id):
        view = await assembler.get_dashboard(tenant_id, 7)
        summary = view.summary

        assert view.is_demo is False
        assert (summary.total_dials, summary.total_connects, summary.total_meetings) == (1, 1, 1)
        assert summary.total_talk_time_seconds == 120
        assert summary.pipeline_created == 5000
        assert summary.connect_rate == 1.0
        assert summary.meeting_rate == 1.0
        assert summary.deals_won == 1
        assert summary.revenue_won == 5000
        assert summary.close_rate == 1.0

    @pytest.mark.asyncio
    async def test_trends_against_empty_previous_period(self, assembler, recorded_week, tenant_id):
        view = await assembler.get_dashboard(tenant_id, 7)

        assert view.summary.trends.dials == 100
        assert view.summary.trends.pipeline == 100

    @pytest.mark.asyncio
    async def test_daily_series_is_zero_filled(self, assembler, recorded_week, tenant_id):
        view = await assembler.get_dashboard(tenant_id, 7)
        series = {point.date: point for point in view.daily_activity}

        assert len(view.daily_activity) == 7
        assert series["2025-02-05"].dials == 1
        assert series["2025-02-05"].talk_time_seconds == 120
        assert series["2025-02-07"].meetings == 1
        assert series["2025-02-07"].pipeline_value == 5000
        assert series["2025-02-03"].dials == 0

    @pytest.mark.asyncio
    async def test_leaderboard_from_recorded_week(self, assembler, recorded_week, tenant_id):
        view = await assembler.get_dashboard(tenant_id, 7)

        assert len(view.leaderboard) == 1
        entry = view.leaderboard[0]
        assert entry.display_name == "Sarah Chen"
        assert entry.rank == 1
        assert entry.revenue_won == 5000
        assert entry.badges == [Badge.MVP]

    @pytest.mark.asyncio
    async def test_other_tenants_data_is_invisible(self, assembler, recorded_week):
        view = await assembler.get_dashboard("other_tenant_456", 7)

        assert view.is_demo is True


class TestRepAnalytics:
    @pytest.mark.asyncio
    async def test_rep_view_is_scoped_to_actor(self, assembler, recorder, recorded_week, tenant_id):
        recorder.record_activity(tenant_id, ActivityEvent(
            type=ActivityType.CALL, actor_id="rep-b", timestamp=datetime(2025, 2, 5, 11, 0),
        ))

        view = await assembler.get_rep_analytics(tenant_id, "rep-a", 7)

        assert view.display_name == "Sarah Chen"
        assert view.summary.total_dials == 1
        assert view.summary.deals_won == 1
        assert view.summary.trends is None
        assert len(view.daily_activity) == 7

    @pytest.mark.asyncio
    async def test_unknown_rep_gets_zeroed_view(self, assembler, tenant_id):
        view = await assembler.get_rep_analytics(tenant_id, "rep-nobody", 7)

        assert view.display_name == "Unknown Rep"
        assert view.summary.total_dials == 0
        assert all(point.dials == 0 for point in view.daily_activity)


class TestBuildSummary:
    def test_rates_are_zero_without_denominators(self):
        summary = build_summary(PeriodAggregate(), [])

        assert (summary.connect_rate, summary.meeting_rate, summary.close_rate) == (0.0, 0.0, 0.0)

    def test_unassigned_deals_count_toward_totals(self):
        deals = [ClosedDeal(actor_id="rep-a", deal_value=100), ClosedDeal(actor_id=None, deal_value=50)]

        summary = build_summary(PeriodAggregate(meetings=4), deals)

        assert summary.deals_won == 2
        assert summary.revenue_won == 150
        assert summary.close_rate == 0.5


class TestSqlCollaborators:
    """Pool checkout failures in the CRM reads surface as UnavailableError."""

    def _db_with_pool_timeout(self):
        db = MagicMock()
        db.query.side_effect = PoolTimeoutError("QueuePool limit reached, connection timed out")
        return db

    def test_closed_deal_source_pool_timeout(self, tenant_id):
        db = self._db_with_pool_timeout()

        with pytest.raises(UnavailableError):
            SqlClosedDealSource(db).get_closed_deals(tenant_id, datetime(2025, 2, 3), datetime(2025, 2, 9))
        db.rollback.assert_called_once()

    def test_actor_directory_pool_timeout(self, tenant_id):
        db = self._db_with_pool_timeout()

        with pytest.raises(UnavailableError):
            SqlActorDirectory(db).get_profiles(tenant_id)
        db.rollback.assert_called_once()

    def test_closed_deal_values_stay_exact(self, db_session, tenant_id):
        db_session.add_all([
            Lead(tenant_id=tenant_id, assigned_actor_id="rep-a", status=LeadStatus.CLOSED_WON,
                 value=0.1, updated_at=datetime(2025, 2, 5, 12, 0)),
            Lead(tenant_id=tenant_id, assigned_actor_id="rep-a", status=LeadStatus.CLOSED_WON,
                 value=0.2, updated_at=datetime(2025, 2, 6, 12, 0)),
        ])
        db_session.commit()

        deals = SqlClosedDealSource(db_session).get_closed_deals(
            tenant_id, datetime(2025, 2, 3), datetime(2025, 2, 9, 23, 59)
        )

        assert sum((d.deal_value for d in deals), Decimal("0")) == Decimal("0.3")
