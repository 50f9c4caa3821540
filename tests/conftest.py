# tests/conftest.py
import sys
from pathlib import Path

# --- Path setup ---
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os
import random
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("STORE_BACKEND", "memory")

from shop_engagement.schemas.product import Product
from shop_engagement.services.context import EngagementContext
from shop_engagement.services.record_store import MemoryRecordStore


class FakeClock:
    """Callable clock the tests move forward by hand."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


# ---------- Fixtures ----------
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> MemoryRecordStore:
    return MemoryRecordStore(prefix="test")


@pytest.fixture
def ctx(store: MemoryRecordStore, clock: FakeClock) -> EngagementContext:
    """Fresh context on an empty in-memory store, UTC calendar days."""
    return EngagementContext(store=store, clock=clock, tz=timezone.utc, rng=random.Random(7))


@pytest.fixture
def catalog() -> list[Product]:
    return [
        Product(id="p1", name="Apple Watch", price=399.0, category="Wearables", description="Smart watch"),
        Product(id="p2", name="Fitness Band", price=49.0, category="Wearables", description="Step counter"),
        Product(id="p3", name="Wireless Earbuds", price=99.0, category="Audio", description="Bluetooth earbuds"),
        Product(id="p4", name="Studio Headphones", price=249.0, category="Audio", description="Over-ear"),
        Product(id="p5", name="Budget Phone", price=129.0, category="Phones", description="Entry smartphone"),
        Product(id="p6", name="电话手表", price=199.0, category="Wearables", description="儿童电话手表"),
    ]
