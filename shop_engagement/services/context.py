from __future__ import annotations

import random
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo

from shop_engagement.core.config import settings
from shop_engagement.services.record_store import RecordStore, build_record_store


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class EngagementContext:
    """Caller-owned state threaded through every engine call.

    Holds the record store, the browsing session and the clock, so no engine
    keeps module-level state of its own.
    """

    store: RecordStore
    clock: Callable[[], datetime] = _utcnow
    tz: tzinfo = field(default_factory=lambda: settings.timezone)
    session_timeout: timedelta = field(
        default_factory=lambda: timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)
    )
    max_events: int = field(default_factory=lambda: settings.MAX_STORED_EVENTS)
    rng: random.Random = field(default_factory=random.Random)
    session_id: str | None = None
    session_last_seen: datetime | None = None

    def now(self) -> datetime:
        current = self.clock()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        return current

    def today(self):
        return self.now().astimezone(self.tz).date()

    def start_of_today(self) -> datetime:
        local_now = self.now().astimezone(self.tz)
        return local_now.replace(hour=0, minute=0, second=0, microsecond=0)

    def local_date(self, instant: datetime):
        return instant.astimezone(self.tz).date()

    def current_session_id(self) -> str:
        """Return the active session id, minting a new one after inactivity."""
        now = self.now()
        expired = (
            self.session_id is None
            or self.session_last_seen is None
            or now - self.session_last_seen >= self.session_timeout
        )
        if expired:
            self.session_id = f"session_{int(now.timestamp() * 1000)}_{secrets.token_hex(4)}"
        self.session_last_seen = now
        return self.session_id


def create_context(store: RecordStore | None = None, **overrides) -> EngagementContext:
    """Build a context on the configured store backend."""
    return EngagementContext(store=store or build_record_store(), **overrides)
