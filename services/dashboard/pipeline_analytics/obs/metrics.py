"""
Prometheus metrics for the pipeline analytics service.
Provides metrics for HTTP requests, the counter write path and dashboard reads.
"""
import re
import time
from typing import Optional

from fastapi import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# HTTP Request Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['route', 'method', 'status']
)

http_request_duration_ms = Histogram(
    'http_request_duration_ms',
    'HTTP request duration in milliseconds',
    ['route', 'method'],
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000)
)

# Counter write path
metrics_deltas_applied_total = Counter(
    'metrics_deltas_applied_total',
    'Total number of counter deltas applied to daily metric records',
    ['kind']
)

metrics_delta_conflicts_total = Counter(
    'metrics_delta_conflicts_total',
    'Total number of transient write conflicts on daily metric records',
    ['outcome']
)

metrics_events_rejected_total = Counter(
    'metrics_events_rejected_total',
    'Total number of activity events rejected before any store mutation',
    ['reason']
)

metrics_events_deduplicated_total = Counter(
    'metrics_events_deduplicated_total',
    'Total number of replayed events skipped by the event-id ledger',
    ['kind']
)

# Dashboard read path
analytics_dashboard_requests_total = Counter(
    'analytics_dashboard_requests_total',
    'Total number of dashboard assemblies',
    ['outcome']
)

analytics_range_query_duration_ms = Histogram(
    'analytics_range_query_duration_ms',
    'Daily metric range query duration in milliseconds',
    ['scope'],
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000)
)


class MetricsCollector:
    """Centralized metrics collection and management."""

    def __init__(self):
        self.start_time = time.time()

    def record_http_request(self, route: str, method: str, status_code: int, duration_ms: float):
        """Record HTTP request metrics."""
        normalized_route = self._normalize_route(route)

        http_requests_total.labels(
            route=normalized_route,
            method=method,
            status=str(status_code)
        ).inc()

        http_request_duration_ms.labels(
            route=normalized_route,
            method=method
        ).observe(duration_ms)

    def record_delta_applied(self, kind: str):
        """Record a delta applied (kind: created / incremented)."""
        metrics_deltas_applied_total.labels(kind=kind).inc()

    def record_delta_conflict(self, outcome: str):
        """Record a write conflict (outcome: retried / exhausted)."""
        metrics_delta_conflicts_total.labels(outcome=outcome).inc()

    def record_event_rejected(self, reason: str):
        metrics_events_rejected_total.labels(reason=reason).inc()

    def record_event_deduplicated(self, kind: str):
        metrics_events_deduplicated_total.labels(kind=kind).inc()

    def record_dashboard_request(self, outcome: str):
        """Record a dashboard assembly (outcome: live / demo / error)."""
        analytics_dashboard_requests_total.labels(outcome=outcome).inc()

    def record_range_query(self, scope: str, duration_ms: float):
        analytics_range_query_duration_ms.labels(scope=scope).observe(duration_ms)

    def _normalize_route(self, route: str) -> str:
        """Collapse per-entity path segments so label cardinality stays bounded."""
        route = re.sub(r"(/reps/)[^/]+", r"\1{actor_id}", route)
        route = re.sub(r'/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}', '/{uuid}', route)
        route = re.sub(r'/\d+', '/{id}', route)

        route = re.sub(r'/[a-zA-Z0-9_-]{20,}', '/{hash}', route)

        return route

    def get_metrics_response(self) -> Response:
        """Get Prometheus metrics in text format."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )


# Global metrics collector instance
metrics = MetricsCollector()


# Helper functions for easy metric recording
def record_http_request(route: str, method: str, status_code: int, duration_ms: float):
    """Record HTTP request metrics."""
    metrics.record_http_request(route, method, status_code, duration_ms)


def record_delta_applied(kind: str):
    metrics.record_delta_applied(kind)


def record_delta_conflict(outcome: str):
    metrics.record_delta_conflict(outcome)


def record_event_rejected(reason: str):
    metrics.record_event_rejected(reason)


def record_event_deduplicated(kind: str):
    metrics.record_event_deduplicated(kind)


def record_dashboard_request(outcome: str):
    metrics.record_dashboard_request(outcome)


def record_range_query(scope: str, duration_ms: Optional[float]):
    if duration_ms is not None:
        metrics.record_range_query(scope, duration_ms)
