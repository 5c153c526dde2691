"""
Unit tests for range aggregation and trend math.
"""
from datetime import date

import pytest

from pipeline_analytics.models.daily_metric import DailyMetricRecord
from pipeline_analytics.obs.errors import InvalidInputError
from pipeline_analytics.schemas.analytics import CounterDelta, PeriodAggregate
from pipeline_analytics.services.range_aggregator import RangeAggregator, fold_records
from pipeline_analytics.services.trends import build_trends, calculate_trend, compute_periods


def _rec(day, actor="rep-a", **counters):
    return DailyMetricRecord(tenant_id="t", date=day, actor_id=actor, **counters)


class TestFoldRecords:
    def test_series_is_zero_filled_for_every_day(self):
        result = fold_records([], date(2025, 2, 3), date(2025, 2, 9))

        assert len(result.daily_series) == 7
        assert [p.date for p in result.daily_series] == [
            "2025-02-03", "2025-02-04", "2025-02-05", "2025-02-06",
            "2025-02-07", "2025-02-08", "2025-02-09",
        ]
        assert all(p.dials == 0 and p.pipeline_value == 0 for p in result.daily_series)
        assert result.aggregate == PeriodAggregate()

    def test_day_names_follow_calendar(self):
        result = fold_records([], date(2025, 2, 3), date(2025, 2, 9))

        assert [p.day_name for p in result.daily_series] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

    def test_sums_across_actors_but_not_across_days(self):
        records = [
            _rec("2025-02-04", "rep-a", dials=3, connects=1, revenue_generated=100),
            _rec("2025-02-04", "rep-b", dials=2, meetings_held=1),
            _rec("2025-02-06", "rep-a", dials=5, talk_time_seconds=300, leads_created=2),
        ]

        result = fold_records(records, date(2025, 2, 3), date(2025, 2, 9))

        by_day = {p.date: p for p in result.daily_series}
        assert by_day["2025-02-04"].dials == 5
        assert by_day["2025-02-04"].meetings == 1
        assert by_day["2025-02-04"].pipeline_value == 100
        assert by_day["2025-02-06"].dials == 5
        assert by_day["2025-02-05"].dials == 0
        assert result.aggregate.dials == 10
        assert result.aggregate.talk_time_seconds == 300
        assert result.aggregate.leads_created == 2
        assert result.aggregate.revenue_generated == 100

    def test_per_actor_in_first_seen_order(self):
        records = [
            _rec("2025-02-04", "rep-b", dials=1),
            _rec("2025-02-04", "rep-a", dials=2),
            _rec("2025-02-05", "rep-b", dials=4),
        ]

        result = fold_records(records, date(2025, 2, 3), date(2025, 2, 9))

        assert list(result.by_actor) == ["rep-b", "rep-a"]
        assert result.by_actor["rep-b"].dials == 5

    def test_single_day_range(self):
        result = fold_records([_rec("2025-02-05", dials=1)], date(2025, 2, 5), date(2025, 2, 5))

        assert len(result.daily_series) == 1
        assert result.aggregate.dials == 1

    def test_inverted_range_rejected(self):
        with pytest.raises(InvalidInputError):
            fold_records([], date(2025, 2, 9), date(2025, 2, 3))


class TestRangeAggregator:
    def test_aggregate_reads_tenant_records(self, store, db_session, tenant_id):
        store.apply_delta(tenant_id, "2025-02-03", "rep-a", CounterDelta(dials=2, connects=1))
        store.apply_delta(tenant_id, "2025-02-07", "rep-b", CounterDelta(dials=1))
        store.apply_delta(tenant_id, "2025-01-30", "rep-a", CounterDelta(dials=50))
        db_session.commit()

        aggregate, series = RangeAggregator(store).aggregate(tenant_id, date(2025, 2, 3), date(2025, 2, 9))

        assert aggregate.dials == 3
        assert aggregate.connects == 1
        assert len(series) == 7

    def test_ninety_day_range_has_ninety_points(self, store, tenant_id):
        start, end = date(2024, 11, 12), date(2025, 2, 9)

        _, series = RangeAggregator(store).aggregate(tenant_id, start, end)

        assert len(series) == (end - start).days + 1 == 90


class TestCalculateTrend:
    @pytest.mark.parametrize("current, previous, expected", [
        (0, 0, 0),
        (5, 0, 100),
        (0, 5, -100),
        (150, 100, 50),
        (100, 100, 0),
        (1, 3, -67),
        (2, 3, -33),
    ])
    def test_trend_values(self, current, previous, expected):
        assert calculate_trend(current, previous) == expected

    def test_halves_round_up(self):
        assert calculate_trend(1, 8) == -87
        assert calculate_trend(9, 8) == 13

    def test_build_trends_uses_pipeline_for_revenue(self):
        current = PeriodAggregate(dials=150, connects=0, meetings=5, revenue_generated=2000)
        previous = PeriodAggregate(dials=100, connects=4, meetings=0, revenue_generated=1000)

        trends = build_trends(current, previous)

        assert (trends.dials, trends.connects, trends.meetings, trends.pipeline) == (50, -100, 100, 100)


class TestComputePeriods:
    def test_previous_period_is_adjacent_and_equal_length(self):
        current, previous = compute_periods(date(2025, 2, 9), 7)

        assert (current.start, current.end) == (date(2025, 2, 3), date(2025, 2, 9))
        assert (previous.start, previous.end) == (date(2025, 1, 27), date(2025, 2, 2))
        assert current.days == previous.days == 7

    @pytest.mark.parametrize("period_days", [7, 14, 30, 90])
    def test_no_gap_no_overlap(self, period_days):
        current, previous = compute_periods(date(2025, 3, 1), period_days)

        assert (current.start - previous.end).days == 1
        assert previous.days == period_days
