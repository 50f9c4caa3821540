# tests/test_config.py
import pytest
from pydantic import ValidationError

from shop_engagement.core.config import Settings


def test_defaults_are_valid():
    config = Settings()
    assert config.SESSION_TIMEOUT_MINUTES == 30
    assert config.MAX_STORED_EVENTS == 1000
    assert config.timezone.key == "UTC"


def test_env_overrides_are_read(monkeypatch):
    monkeypatch.setenv("ENGAGEMENT_TIMEZONE", "Asia/Shanghai")
    monkeypatch.setenv("MAX_STORED_EVENTS", "50")
    config = Settings()
    assert config.timezone.key == "Asia/Shanghai"
    assert config.MAX_STORED_EVENTS == 50


def test_redis_backend_requires_url():
    with pytest.raises(ValidationError):
        Settings(STORE_BACKEND="redis", REDIS_URL=None)


@pytest.mark.parametrize(
    "overrides",
    [
        {"ENGAGEMENT_TIMEZONE": "Mars/Olympus_Mons"},
        {"MAX_STORED_EVENTS": 0},
        {"SESSION_TIMEOUT_MINUTES": -5},
        {"SEARCH_THRESHOLD": 1.5},
        {"LOGIN_STREAK_BONUS_CAP": -1},
        {"STORE_BACKEND": "mongo"},
    ],
)
def test_invalid_settings_are_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)
