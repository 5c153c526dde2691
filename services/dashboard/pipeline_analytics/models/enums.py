"""
Canonical enums for the analytics metrics engine.

All enums are string enums (str, Enum) for JSON serialization compatibility.
"""
import enum


class ActivityType(str, enum.Enum):
    """Kind of sales activity reported by the CRM."""
    CALL = "call"
    MEETING = "meeting"
    EMAIL = "email"


class ActivityOutcome(str, enum.Enum):
    """
    Outcome attached to a logged activity.

    Values that count towards the funnel:
    - connected / meeting_set / qualified: a call reached a live contact
    - meeting_set: a call booked a meeting
    - qualified / contract_sent / closed_won: a meeting attributes deal value
    """
    CONNECTED = "connected"
    VOICEMAIL = "voicemail"
    NO_ANSWER = "no_answer"
    WRONG_NUMBER = "wrong_number"
    MEETING_SET = "meeting_set"
    QUALIFIED = "qualified"
    CONTRACT_SENT = "contract_sent"
    CLOSED_WON = "closed_won"
    NONE = "none"


class Badge(str, enum.Enum):
    """Leaderboard performance badges."""
    MVP = "MVP"
    TOP_GUN = "Top Gun"
    CLOSER = "Closer"
    HUSTLER = "Hustler"


class LeadStatus(str, enum.Enum):
    """Lead statuses the closed-deal source distinguishes."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


# Call outcomes that count as a connect
CONNECTED_CALL_OUTCOMES = frozenset({
    ActivityOutcome.CONNECTED,
    ActivityOutcome.MEETING_SET,
    ActivityOutcome.QUALIFIED,
})

# Meeting outcomes that attribute the deal value to pipeline generated
REVENUE_MEETING_OUTCOMES = frozenset({
    ActivityOutcome.QUALIFIED,
    ActivityOutcome.CONTRACT_SENT,
    ActivityOutcome.CLOSED_WON,
})
