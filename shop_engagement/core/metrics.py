from __future__ import annotations

from typing import Any

from prometheus_client import Counter, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from shop_engagement.core.config import settings


class _NoOpMetric:
    def labels(self, *args: Any, **kwargs: Any) -> "_NoOpMetric":
        return self

    def inc(self, *_: Any, **__: Any) -> None:
        return None


def _metric_or_noop(metric_factory: Any) -> Any:
    if not settings.METRICS_ENABLED:
        return _NoOpMetric()
    return metric_factory()


EVENTS_TRACKED = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_events_tracked_total",
        "Interaction events appended to the log.",
        ["event_type"],
    )
)

POINTS_AWARDED = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_points_awarded_total",
        "Loyalty points awarded partitioned by activity type.",
        ["activity_type"],
    )
)

STORE_DECODE_FAILURES = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_store_decode_failures_total",
        "Persisted collections that could not be decoded and were read as empty.",
        ["key"],
    )
)

STORE_CONFLICTS = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_store_conflicts_total",
        "Compare-and-swap attempts that lost a race and were retried.",
        ["backend"],
    )
)

RECOMMENDATIONS_SERVED = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_recommendations_total",
        "Recommendation lists produced partitioned by strategy.",
        ["strategy"],
    )
)


def record_decode_failure(key: str) -> None:
    STORE_DECODE_FAILURES.labels(key=key).inc()


def record_store_conflict(backend: str) -> None:
    STORE_CONFLICTS.labels(backend=backend).inc()


def record_event_tracked(event_type: str) -> None:
    EVENTS_TRACKED.labels(event_type=event_type).inc()


def record_points_awarded(activity_type: str, points: int) -> None:
    if points > 0:
        POINTS_AWARDED.labels(activity_type=activity_type).inc(points)


def record_recommendation(strategy: str) -> None:
    RECOMMENDATIONS_SERVED.labels(strategy=strategy).inc()


def export_metrics() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED:
        return b"", "text/plain; charset=utf-8"
    return generate_latest(), CONTENT_TYPE_LATEST
