"""
Metrics recorder: turns CRM activity and lead-creation events into counter
deltas and applies them through the counter store.

The CRM calls in synchronously with its own session, so the activity row and
the counter update commit together.
"""
import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

import pytz
from pydantic import ValidationError
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from pipeline_analytics.config import settings
from pipeline_analytics.models.enums import (
    ActivityOutcome,
    ActivityType,
    CONNECTED_CALL_OUTCOMES,
    REVENUE_MEETING_OUTCOMES,
)
from pipeline_analytics.obs.errors import InvalidInputError, UnavailableError
from pipeline_analytics.obs.logging import get_logger
from pipeline_analytics.obs.metrics import record_event_rejected
from pipeline_analytics.schemas.analytics import ActivityEvent, CounterDelta, LeadCreatedEvent
from pipeline_analytics.services.counter_store import CounterStore

logger = get_logger(__name__)


def build_activity_delta(event: ActivityEvent) -> CounterDelta:
    """
    Translate one activity into counter increments.

    - call: dials +1; connects +1 for connected / meeting_set / qualified;
      meetings +1 for meeting_set; talk time += duration when present
    - meeting: meetings +1; pipeline += deal value for qualified /
      contract_sent / closed_won when a value is supplied
    - email: nothing
    """
    delta = CounterDelta()

    if event.type == ActivityType.CALL:
        delta.dials = 1
        if event.outcome in CONNECTED_CALL_OUTCOMES:
            delta.connects = 1
        if event.outcome == ActivityOutcome.MEETING_SET:
            delta.meetings_held = 1
        if event.duration_seconds is not None:
            delta.talk_time_seconds = int(round(event.duration_seconds))

    elif event.type == ActivityType.MEETING:
        delta.meetings_held = 1
        if event.outcome in REVENUE_MEETING_OUTCOMES and event.deal_value is not None:
            delta.revenue_generated = event.deal_value

    return delta


def build_lead_created_delta(event: LeadCreatedEvent) -> CounterDelta:
    return CounterDelta(
        leads_created=1,
        revenue_generated=event.lead_value if event.lead_value is not None else Decimal("0"),
    )


def _is_finite_non_negative(value) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite() and value >= 0
    return math.isfinite(value) and value >= 0


class MetricsRecorder:
    """Entry point the CRM module calls when it logs activity or creates a lead."""

    def __init__(self, db: Session, store: Optional[CounterStore] = None, timezone: Optional[str] = None):
        self.db = db
        self.store = store or CounterStore(db)
        self.tz = pytz.timezone(timezone) if timezone else settings.reporting_tz

    def record_activity(
        self,
        tenant_id: str,
        event: Union[ActivityEvent, Mapping[str, Any]],
        commit: bool = True,
    ) -> Optional[CounterDelta]:
        """
        Record one activity event.

        Returns the delta that was applied, or None when the event produced
        no counter mutation (emails, replayed event ids).

        Raises:
            InvalidInputError: malformed event; nothing was applied
            ConflictError / UnavailableError: from the counter store
        """
        event = self._parse(ActivityEvent, event, tenant_id)
        self._validate_common(tenant_id, event.actor_id)
        if event.duration_seconds is not None and not _is_finite_non_negative(event.duration_seconds):
            self._reject(tenant_id, "duration_seconds", event.duration_seconds)
        if event.deal_value is not None and not _is_finite_non_negative(event.deal_value):
            self._reject(tenant_id, "deal_value", event.deal_value)

        delta = build_activity_delta(event)
        if delta.is_empty():
            logger.debug(
                f"{event.type.value} activity carries no counter mutation",
                extra={"tenant_id": tenant_id, "actor_id": event.actor_id},
            )
            self._finish(commit)
            return None

        applied = self.store.apply_delta(
            tenant_id,
            self.metric_date(event.timestamp),
            event.actor_id,
            delta,
            event_id=event.event_id if settings.EVENT_DEDUPE_ENABLED else None,
            event_kind=event.type.value,
        )
        self._finish(commit)
        return delta if applied else None

    def record_lead_created(
        self,
        tenant_id: str,
        event: Union[LeadCreatedEvent, Mapping[str, Any]],
        commit: bool = True,
    ) -> Optional[CounterDelta]:
        """Record a lead creation: leads_created +1, pipeline += lead value."""
        event = self._parse(LeadCreatedEvent, event, tenant_id)
        self._validate_common(tenant_id, event.actor_id)
        if event.lead_value is not None and not _is_finite_non_negative(event.lead_value):
            self._reject(tenant_id, "lead_value", event.lead_value)

        delta = build_lead_created_delta(event)
        applied = self.store.apply_delta(
            tenant_id,
            self.metric_date(event.timestamp or datetime.now(pytz.utc)),
            event.actor_id,
            delta,
            event_id=event.event_id if settings.EVENT_DEDUPE_ENABLED else None,
            event_kind="lead_created",
        )
        self._finish(commit)
        return delta if applied else None

    def metric_date(self, timestamp: datetime) -> str:
        """Calendar day (YYYY-MM-DD) of `timestamp` in the reporting timezone."""
        if timestamp.tzinfo is None:
            timestamp = pytz.utc.localize(timestamp)
        return timestamp.astimezone(self.tz).strftime("%Y-%m-%d")

    def _parse(self, model, event, tenant_id: str):
        if isinstance(event, model):
            return event
        try:
            return model.model_validate(event)
        except ValidationError as e:
            record_event_rejected("schema")
            logger.warning(
                f"Rejected malformed {model.__name__}: {e.error_count()} error(s)",
                extra={"tenant_id": tenant_id},
            )
            raise InvalidInputError(
                f"Malformed {model.__name__}",
                {"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            ) from e

    def _validate_common(self, tenant_id: str, actor_id: str):
        if not tenant_id:
            self._reject(tenant_id, "tenant_id", tenant_id)
        if not actor_id or not actor_id.strip():
            self._reject(tenant_id, "actor_id", actor_id)

    def _reject(self, tenant_id: str, field: str, value):
        record_event_rejected(field)
        logger.warning(
            f"Rejected metrics event: invalid {field}={value!r}",
            extra={"tenant_id": tenant_id},
        )
        raise InvalidInputError(f"Invalid {field}", {"field": field, "value": str(value)})

    def _finish(self, commit: bool):
        if not commit:
            return
        try:
            self.db.commit()
        except DBAPIError as e:
            self.db.rollback()
            raise UnavailableError("Metrics store commit failed", {"error_type": type(e).__name__}) from e
