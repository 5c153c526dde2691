"""
Fixed demonstration dataset served to anonymous callers and to tenants with
no activity yet. Built once at import; every response gets a deep copy.
"""
from datetime import datetime

from pipeline_analytics.models.enums import Badge
from pipeline_analytics.schemas.analytics import (
    DashboardView,
    DayPoint,
    LeaderboardEntry,
    PeriodSummary,
    TrendSet,
)

DEMO_SUMMARY = PeriodSummary(
    total_dials=238,
    total_connects=26,
    total_meetings=9,
    total_emails=45,
    total_talk_time_seconds=14400,  # 4 hours
    pipeline_created=45200,
    leads_created=12,
    deals_won=3,
    revenue_won=28500,
    connect_rate=0.109,
    meeting_rate=0.346,
    close_rate=0.333,
    trends=TrendSet(dials=12, connects=8, meetings=-18, pipeline=24),
)

DEMO_DAILY_ACTIVITY = tuple(
    DayPoint(date=day, day_name=name, dials=dials, connects=connects, meetings=meetings,
             emails=emails, pipeline_value=pipeline)
    for day, name, dials, connects, meetings, emails, pipeline in (
        ("2025-01-27", "Mon", 52, 6, 2, 8, 4500),
        ("2025-01-28", "Tue", 48, 5, 1, 6, 3200),
        ("2025-01-29", "Wed", 55, 8, 3, 10, 6800),
        ("2025-01-30", "Thu", 45, 4, 1, 7, 2100),
        ("2025-01-31", "Fri", 38, 3, 2, 9, 5400),
        ("2025-02-01", "Sat", 15, 1, 0, 3, 1200),
        ("2025-02-02", "Sun", 10, 1, 0, 2, 800),
    )
)

DEMO_LEADERBOARD = (
    LeaderboardEntry(
        actor_id="demo-1", display_name="Sarah Chen", dials=285, connects=32, meetings=12,
        connect_rate=0.112, pipeline_generated=125000, revenue_won=125000, rank=1, badges=[Badge.MVP],
    ),
    LeaderboardEntry(
        actor_id="demo-2", display_name="Alex Rodriguez", dials=238, connects=26, meetings=9,
        connect_rate=0.109, pipeline_generated=98400, revenue_won=98400, rank=2, badges=[Badge.TOP_GUN],
    ),
    LeaderboardEntry(
        actor_id="demo-3", display_name="Mike Johnson", dials=212, connects=21, meetings=7,
        connect_rate=0.099, pipeline_generated=82100, revenue_won=82100, rank=3,
    ),
    LeaderboardEntry(
        actor_id="demo-4", display_name="Emily Davis", dials=198, connects=19, meetings=6,
        connect_rate=0.096, pipeline_generated=65000, revenue_won=65000, rank=4,
    ),
)


def demo_dashboard(period_days: int, period_start: datetime, period_end: datetime) -> DashboardView:
    """Demonstration dashboard stamped with the requested period."""
    return DashboardView(
        summary=DEMO_SUMMARY.model_copy(deep=True),
        daily_activity=[point.model_copy(deep=True) for point in DEMO_DAILY_ACTIVITY],
        leaderboard=[entry.model_copy(deep=True) for entry in DEMO_LEADERBOARD],
        is_demo=True,
        period_days=period_days,
        period_start=period_start,
        period_end=period_end,
    )
