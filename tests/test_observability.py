# tests/test_observability.py
import json
import logging

from shop_engagement.core.config import settings
from shop_engagement.core.logging import JsonFormatter
from shop_engagement.core.metrics import export_metrics, record_event_tracked


def _record(name: str, msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(name, logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_promotes_engagement_identifiers():
    record = _record(
        "shop_engagement.services.interaction_log",
        "view recorded",
        user_id="u1",
        product_id="手表",
    )

    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "INFO"
    assert payload["component"] == "interaction_log"
    assert payload["message"] == "view recorded"
    assert payload["user_id"] == "u1"
    assert payload["extra"] == {"product_id": "手表"}


def test_json_formatter_keeps_foreign_logger_names():
    payload = json.loads(JsonFormatter().format(_record("seed_demo_activity", "done")))
    assert payload["component"] == "seed_demo_activity"
    assert "extra" not in payload


def test_export_metrics_exposes_counters():
    record_event_tracked("search")
    body, content_type = export_metrics()
    if settings.METRICS_ENABLED:
        assert b"engagement_events_tracked_total" in body
        assert content_type.startswith("text/plain")
    else:
        assert body == b""
