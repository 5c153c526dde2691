"""
Trend math and period windows for the analytics dashboard.
"""
import math
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import NamedTuple, Tuple

from pipeline_analytics.schemas.analytics import PeriodAggregate, TrendSet


class PeriodWindow(NamedTuple):
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def bounds(self, tz) -> Tuple[datetime, datetime]:
        """First and last instant of the window in `tz` (a pytz zone)."""
        return (
            tz.localize(datetime.combine(self.start, time.min)),
            tz.localize(datetime.combine(self.end, time.max)),
        )


def calculate_trend(current, previous) -> int:
    """
    Percentage change from `previous` to `current`, rounded half up.

    A zero baseline reports 100 for any new activity and 0 otherwise.
    """
    current, previous = Decimal(str(current)), Decimal(str(previous))
    if previous == 0:
        return 100 if current > 0 else 0
    return math.floor((current - previous) * 100 / previous + Decimal("0.5"))


def compute_periods(today: date, period_days: int) -> Tuple[PeriodWindow, PeriodWindow]:
    """
    Current window: the `period_days` calendar days ending today (inclusive).
    Previous window: the equal-length span ending the day before it starts.
    """
    current = PeriodWindow(today - timedelta(days=period_days - 1), today)
    previous_end = current.start - timedelta(days=1)
    previous = PeriodWindow(previous_end - timedelta(days=period_days - 1), previous_end)
    return current, previous


def build_trends(current: PeriodAggregate, previous: PeriodAggregate) -> TrendSet:
    return TrendSet(
        dials=calculate_trend(current.dials, previous.dials),
        connects=calculate_trend(current.connects, previous.connects),
        meetings=calculate_trend(current.meetings, previous.meetings),
        pipeline=calculate_trend(current.revenue_generated, previous.revenue_generated),
    )
