"""
Leaderboard construction and badge assignment.

Sort: revenue won desc, then pipeline generated desc. Python's sort is
stable, so actors tied on both keys keep their first-seen order and get
sequential ranks.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping

from pipeline_analytics.models.enums import Badge
from pipeline_analytics.schemas.analytics import ActorProfile, ClosedDeal, LeaderboardEntry, PeriodAggregate
from pipeline_analytics.services.range_aggregator import safe_rate

UNKNOWN_REP = "Unknown Rep"

# Badge thresholds are fixed for compatibility with existing fixtures
TOP_GUN_MIN_DIALS = 50        # strict >
CLOSER_MIN_MEETINGS = 5       # >=
CLOSER_MIN_CONNECT_RATE = 0.12  # strict >
HUSTLER_MIN_DIALS = 200       # >=


def revenue_by_actor(closed_deals: Iterable[ClosedDeal]) -> Dict[str, Decimal]:
    totals: Dict[str, Decimal] = {}
    for deal in closed_deals:
        totals[deal.actor_id] = totals.get(deal.actor_id, Decimal("0")) + deal.deal_value
    return totals


def deals_by_actor(closed_deals: Iterable[ClosedDeal]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for deal in closed_deals:
        counts[deal.actor_id] = counts.get(deal.actor_id, 0) + 1
    return counts


def assign_badges(entry: LeaderboardEntry, leaderboard: List[LeaderboardEntry]) -> List[Badge]:
    """Evaluate each badge independently against the whole board."""
    badges = []
    max_revenue = max((e.revenue_won for e in leaderboard), default=0)
    max_dials = max((e.dials for e in leaderboard), default=0)

    if max_revenue > 0 and entry.revenue_won == max_revenue:
        badges.append(Badge.MVP)
    if max_dials > TOP_GUN_MIN_DIALS and entry.dials == max_dials:
        badges.append(Badge.TOP_GUN)
    if entry.meetings >= CLOSER_MIN_MEETINGS and entry.connect_rate > CLOSER_MIN_CONNECT_RATE:
        badges.append(Badge.CLOSER)
    if entry.dials >= HUSTLER_MIN_DIALS:
        badges.append(Badge.HUSTLER)
    return badges


def build_leaderboard(
    per_actor: Mapping[str, PeriodAggregate],
    actor_directory: Mapping[str, ActorProfile],
    closed_deals: Iterable[ClosedDeal],
) -> List[LeaderboardEntry]:
    """One entry per actor with records in the period, ranked and badged."""
    closed_deals = list(closed_deals)
    revenue = revenue_by_actor(closed_deals)
    deals = deals_by_actor(closed_deals)

    leaderboard = []
    for actor_id, stats in per_actor.items():
        profile = actor_directory.get(actor_id)
        leaderboard.append(LeaderboardEntry(
            actor_id=actor_id,
            display_name=profile.display_name if profile else UNKNOWN_REP,
            avatar_url=profile.avatar_url if profile else None,
            dials=stats.dials,
            connects=stats.connects,
            meetings=stats.meetings,
            pipeline_generated=stats.revenue_generated,
            deals_won=deals.get(actor_id, 0),
            revenue_won=revenue.get(actor_id, Decimal("0")),
            connect_rate=safe_rate(stats.connects, stats.dials),
        ))

    leaderboard.sort(key=lambda e: (-e.revenue_won, -e.pipeline_generated))

    for index, entry in enumerate(leaderboard):
        entry.rank = index + 1
    for entry in leaderboard:
        entry.badges = assign_badges(entry, leaderboard)

    return leaderboard
