from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Persisted instants come back as ISO strings; naive ones are read as UTC.
Instant = Annotated[datetime, AfterValidator(_as_aware)]
