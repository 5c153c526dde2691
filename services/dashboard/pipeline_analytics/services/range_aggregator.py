"""
Range aggregation over daily metric records.

Folds the records of a date range into one period aggregate, a zero-filled
per-day series (exactly end - start + 1 points) and per-actor aggregates in
first-seen order.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pipeline_analytics.models.daily_metric import DailyMetricRecord
from pipeline_analytics.obs.errors import InvalidInputError
from pipeline_analytics.schemas.analytics import DayPoint, PeriodAggregate
from pipeline_analytics.services.counter_store import CounterStore

DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def day_name(day: date) -> str:
    return DAY_NAMES[day.weekday()]


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def safe_rate(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def to_money(value) -> Decimal:
    """Exact Decimal for a stored amount; floats go through str so 0.1 stays 0.1."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class RangeResult:
    aggregate: PeriodAggregate
    daily_series: List[DayPoint]
    by_actor: Dict[str, PeriodAggregate] = field(default_factory=dict)


def _add_record(target: PeriodAggregate, record: DailyMetricRecord):
    target.dials += record.dials or 0
    target.connects += record.connects or 0
    target.meetings += record.meetings_held or 0
    target.talk_time_seconds += record.talk_time_seconds or 0
    target.revenue_generated += to_money(record.revenue_generated)
    target.leads_created += record.leads_created or 0


def fold_records(records: Iterable[DailyMetricRecord], start: date, end: date) -> RangeResult:
    """Sum `records` across actors and days; bucket by day and by actor."""
    if start > end:
        raise InvalidInputError("Range start is after range end", {"start": start.isoformat(), "end": end.isoformat()})

    total = PeriodAggregate()
    days: Dict[str, PeriodAggregate] = {day.isoformat(): PeriodAggregate() for day in iter_days(start, end)}
    by_actor: Dict[str, PeriodAggregate] = {}

    for record in records:
        bucket = days.get(record.date)
        if bucket is None:
            continue
        _add_record(total, record)
        _add_record(bucket, record)
        _add_record(by_actor.setdefault(record.actor_id, PeriodAggregate()), record)

    series = [
        DayPoint(
            date=key,
            day_name=day_name(day),
            dials=agg.dials,
            connects=agg.connects,
            meetings=agg.meetings,
            talk_time_seconds=agg.talk_time_seconds,
            pipeline_value=agg.revenue_generated,
        )
        for day, (key, agg) in zip(iter_days(start, end), days.items())
    ]
    return RangeResult(aggregate=total, daily_series=series, by_actor=by_actor)


class RangeAggregator:
    """Reads a tenant's daily records for a date range and folds them."""

    def __init__(self, store: CounterStore):
        self.store = store

    def collect(self, tenant_id: str, start: date, end: date, actor_id: Optional[str] = None) -> RangeResult:
        if start > end:
            raise InvalidInputError("Range start is after range end", {"start": start.isoformat(), "end": end.isoformat()})
        records = self.store.fetch_range(tenant_id, start, end, actor_id=actor_id)
        return fold_records(records, start, end)

    def aggregate(self, tenant_id: str, start: date, end: date) -> Tuple[PeriodAggregate, List[DayPoint]]:
        result = self.collect(tenant_id, start, end)
        return result.aggregate, result.daily_series
