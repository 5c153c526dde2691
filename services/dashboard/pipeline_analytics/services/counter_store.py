"""
Counter store for daily metric records.

Write path: additive deltas applied with `SET col = col + :delta` inside a
savepoint, so concurrent writers to the same (tenant, day, actor) key never
lose updates. A lost insert race surfaces as an IntegrityError on the unique
key and is retried; the retry lands on the UPDATE branch.

Read path: range queries under a bounded statement timeout, with store errors
translated into the engine's typed failures.
"""
import time
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import delete, insert, update, text
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pipeline_analytics.config import settings
from pipeline_analytics.models.applied_event import AppliedMetricEvent
from pipeline_analytics.models.daily_metric import DailyMetricRecord, COUNTER_FIELDS
from pipeline_analytics.obs.errors import ConflictError, UnauthorizedError, UnavailableError, InvalidInputError
from pipeline_analytics.obs.logging import get_logger
from pipeline_analytics.obs.metrics import (
    record_delta_applied,
    record_delta_conflict,
    record_event_deduplicated,
    record_range_query,
)
from pipeline_analytics.obs.sentry import capture_exception
from pipeline_analytics.obs.tracing import get_tracer
from pipeline_analytics.schemas.analytics import CounterDelta

logger = get_logger(__name__)
tracer = get_tracer(__name__)

# SQLSTATEs / driver messages that mean "try again", not "store is down"
TRANSIENT_PGCODES = {"40001", "40P01"}
TRANSIENT_MESSAGES = ("deadlock detected", "could not serialize", "database is locked")
PERMISSION_PGCODES = {"42501"}


class _DuplicateEvent(Exception):
    pass


def _pgcode(error: DBAPIError) -> Optional[str]:
    return getattr(getattr(error, "orig", None), "pgcode", None)


def is_transient_write_error(error: DBAPIError) -> bool:
    if isinstance(error, IntegrityError):
        return True
    if _pgcode(error) in TRANSIENT_PGCODES:
        return True
    message = str(getattr(error, "orig", error)).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGES)


def translate_read_error(error: Exception) -> Exception:
    """Map a store exception onto Unauthorized or Unavailable."""
    message = str(getattr(error, "orig", error)).lower()
    if isinstance(error, DBAPIError) and (_pgcode(error) in PERMISSION_PGCODES or "permission denied" in message):
        return UnauthorizedError("Metrics store refused the read", {"error_type": type(error).__name__})
    return UnavailableError("Metrics store query failed or timed out", {"error_type": type(error).__name__})


class CounterStore:
    """Durable (tenant, day, actor) counters backed by the `daily_metrics` table."""

    def __init__(
        self,
        db: Session,
        max_retries: Optional[int] = None,
        backoff_base_ms: Optional[int] = None,
        backoff_max_ms: Optional[int] = None,
        query_timeout_ms: Optional[int] = None,
        dedupe_retention_days: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.max_retries = settings.METRICS_WRITE_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_base_ms = settings.METRICS_WRITE_BACKOFF_BASE_MS if backoff_base_ms is None else backoff_base_ms
        self.backoff_max_ms = settings.METRICS_WRITE_BACKOFF_MAX_MS if backoff_max_ms is None else backoff_max_ms
        self.query_timeout_ms = settings.METRICS_QUERY_TIMEOUT_MS if query_timeout_ms is None else query_timeout_ms
        self.dedupe_retention = timedelta(days=(
            settings.EVENT_DEDUPE_RETENTION_DAYS if dedupe_retention_days is None else dedupe_retention_days
        ))
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def apply_delta(
        self,
        tenant_id: str,
        metric_date: str,
        actor_id: str,
        delta: CounterDelta,
        event_id: Optional[str] = None,
        event_kind: str = "activity",
    ) -> Optional[str]:
        """
        Add `delta` to the record for (tenant_id, metric_date, actor_id).

        Does not commit; the caller owns the surrounding transaction.

        Returns:
            "created" or "incremented", or None when `event_id` was already
            applied.

        Raises:
            InvalidInputError: empty delta
            ConflictError: transient conflicts outlasted the retry budget
            UnavailableError: non-transient store failure
        """
        columns = delta.as_columns()
        if not columns:
            raise InvalidInputError("Counter delta has no fields to apply", {"actor_id": actor_id})

        attempt = 0
        while True:
            try:
                with self.db.begin_nested():
                    if event_id:
                        self._claim_event(tenant_id, event_id, event_kind)
                    outcome = self._write_counters(tenant_id, metric_date, actor_id, columns)
            except _DuplicateEvent:
                record_event_deduplicated(event_kind)
                logger.info(
                    "Skipping replayed metrics event",
                    extra={"tenant_id": tenant_id, "event_id": event_id, "actor_id": actor_id},
                )
                return None
            except DBAPIError as e:
                if not is_transient_write_error(e):
                    logger.error(
                        f"Counter write failed: {e.__class__.__name__}",
                        extra={"tenant_id": tenant_id, "actor_id": actor_id, "metric_date": metric_date},
                    )
                    raise UnavailableError(
                        "Metrics store rejected the counter write",
                        {"error_type": type(e).__name__},
                    ) from e

                if attempt >= self.max_retries:
                    record_delta_conflict("exhausted")
                    logger.error(
                        "Counter write conflict persisted after retries",
                        extra={
                            "tenant_id": tenant_id,
                            "actor_id": actor_id,
                            "metric_date": metric_date,
                            "attempt": attempt + 1,
                        },
                    )
                    capture_exception(e, {"tenant_id": tenant_id, "metric_date": metric_date})
                    raise ConflictError(
                        "Concurrent updates to the daily metric record did not settle",
                        {"actor_id": actor_id, "metric_date": metric_date, "attempts": attempt + 1},
                    ) from e

                record_delta_conflict("retried")
                delay_ms = self._backoff_ms(attempt)
                logger.warning(
                    f"Counter write conflict, retrying in {delay_ms}ms",
                    extra={"tenant_id": tenant_id, "actor_id": actor_id, "attempt": attempt + 1},
                )
                self._sleep(delay_ms / 1000.0)
                attempt += 1
                continue
            except SQLAlchemyError as e:
                # pool checkout timeout, closed connection and the like
                logger.error(
                    f"Counter write failed before reaching the store: {e.__class__.__name__}",
                    extra={"tenant_id": tenant_id, "actor_id": actor_id, "metric_date": metric_date},
                )
                raise UnavailableError(
                    "Metrics store unavailable for the counter write",
                    {"error_type": type(e).__name__},
                ) from e

            record_delta_applied(outcome)
            logger.debug(
                f"Counter delta {outcome}: {columns}",
                extra={"tenant_id": tenant_id, "actor_id": actor_id, "metric_date": metric_date},
            )
            return outcome

    def _claim_event(self, tenant_id: str, event_id: str, event_kind: str):
        """Insert the ledger row; an unexpired row for the same id means replay."""
        now = datetime.utcnow()
        # A row past the retention window no longer suppresses the id
        self.db.execute(
            delete(AppliedMetricEvent).where(
                AppliedMetricEvent.tenant_id == tenant_id,
                AppliedMetricEvent.event_id == event_id,
                AppliedMetricEvent.applied_at < now - self.dedupe_retention,
            )
            .execution_options(synchronize_session="fetch")
        )
        self.db.add(AppliedMetricEvent(
            tenant_id=tenant_id,
            event_id=event_id,
            kind=event_kind,
            applied_at=now,
        ))
        try:
            self.db.flush()
        except IntegrityError as e:
            raise _DuplicateEvent() from e

    def _write_counters(self, tenant_id: str, metric_date: str, actor_id: str, columns: dict) -> str:
        table = DailyMetricRecord.__table__
        key = (
            table.c.tenant_id == tenant_id,
            table.c.date == metric_date,
            table.c.actor_id == actor_id,
        )

        result = self.db.execute(
            update(table)
            .where(*key)
            .values({table.c[name]: table.c[name] + value for name, value in columns.items()})
        )
        if result.rowcount:
            return "incremented"

        # First event for this key: seed the record with the delta itself
        values = {name: 0 for name in COUNTER_FIELDS}
        values.update(columns)
        self.db.execute(
            insert(table).values(tenant_id=tenant_id, date=metric_date, actor_id=actor_id, **values)
        )
        return "created"

    def _backoff_ms(self, attempt: int) -> int:
        return min(self.backoff_max_ms, self.backoff_base_ms * (2 ** attempt))

    def purge_applied_events(self, older_than: datetime) -> int:
        """Delete dedupe ledger rows applied before `older_than` and commit."""
        result = self.db.execute(
            delete(AppliedMetricEvent)
            .where(AppliedMetricEvent.applied_at < older_than)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        purged = result.rowcount or 0
        logger.info(f"Purged {purged} applied metric events older than {older_than.isoformat()}")
        return purged

    def purge_expired_events(self, now: Optional[datetime] = None) -> int:
        """Drop ledger rows that fell out of the EVENT_DEDUPE_RETENTION_DAYS window."""
        return self.purge_applied_events((now or datetime.utcnow()) - self.dedupe_retention)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def fetch_range(
        self,
        tenant_id: str,
        start: date,
        end: date,
        actor_id: Optional[str] = None,
    ) -> List[DailyMetricRecord]:
        """
        Return all records for the tenant with start <= date <= end.

        Raises:
            UnauthorizedError: the store refused the read
            UnavailableError: timeout or backend failure
        """
        scope = "actor" if actor_id else "tenant"
        started = time.time()

        with tracer.start_as_current_span("counter_store.fetch_range") as span:
            span.set_attribute("tenant_id", tenant_id)
            span.set_attribute("range.start", start.isoformat())
            span.set_attribute("range.end", end.isoformat())
            try:
                self._apply_statement_timeout()
                query = self.db.query(DailyMetricRecord).filter(
                    DailyMetricRecord.tenant_id == tenant_id,
                    DailyMetricRecord.date >= start.isoformat(),
                    DailyMetricRecord.date <= end.isoformat(),
                )
                if actor_id:
                    query = query.filter(DailyMetricRecord.actor_id == actor_id)
                records = query.order_by(DailyMetricRecord.date, DailyMetricRecord.id).all()
            except (SQLAlchemyError, TimeoutError) as e:
                self.db.rollback()
                translated = translate_read_error(e)
                logger.warning(
                    f"Range query failed: {e.__class__.__name__}",
                    extra={"tenant_id": tenant_id, "error_type": type(translated).__name__},
                )
                raise translated from e
            finally:
                record_range_query(scope, (time.time() - started) * 1000)

        return records

    def _apply_statement_timeout(self):
        if self.query_timeout_ms and self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text(f"SET LOCAL statement_timeout = {int(self.query_timeout_ms)}"))
