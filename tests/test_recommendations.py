# tests/test_recommendations.py
import random
from datetime import timezone
from math import log

import pytest

from shop_engagement.schemas.product import Product
from shop_engagement.services import interaction_log, recommendation_service
from shop_engagement.services.context import EngagementContext
from shop_engagement.services.exceptions import StoreError
from shop_engagement.services.record_store import MemoryRecordStore
from shop_engagement.services.recommendation_service import (
    get_popular_products,
    get_random_products,
    get_recommended_products,
    similarity,
    time_decay,
)


class UnreachableStore(MemoryRecordStore):
    def read(self, key, *, strict=False):
        raise StoreError("store unavailable")


# ---------- scoring helpers ----------

def test_similarity_weights_category_price_and_name():
    red = Product(id="a", name="Red Shoe", price=100, category="Shoes")
    blue = Product(id="b", name="Blue Shoe", price=100, category="Shoes")
    assert similarity(red, blue) == pytest.approx(0.5 + 0.3 + 0.2 / 3)
    assert similarity(red, red) == 0.0


def test_similarity_handles_free_products():
    a = Product(id="a", name="Sticker", price=0, category="Gifts")
    b = Product(id="b", name="Badge", price=0, category="Misc")
    assert similarity(a, b) == pytest.approx(0.3)


def test_time_decay_floors_recent_interactions_at_one_day():
    assert time_decay(0) == pytest.approx(1 / log(2))
    assert time_decay(0.5) == time_decay(1)
    assert time_decay(30) < time_decay(1)


# ---------- personalized ----------

def test_no_history_returns_random_distinct_products(ctx, catalog):
    picks = get_recommended_products(ctx, "new-user", catalog, limit=3)
    assert len(picks) == 3
    assert len({product.id for product in picks}) == 3
    assert all(product in catalog for product in picks)


def test_recommendations_exclude_interacted_products(ctx, catalog):
    interaction_log.record_view(ctx, "u1", "p1")
    interaction_log.record_purchase(ctx, "u1", "p3")

    picks = get_recommended_products(ctx, "u1", catalog, limit=10)
    ids = [product.id for product in picks]
    assert "p1" not in ids and "p3" not in ids
    assert sorted(ids) == ["p2", "p4", "p5", "p6"]


def test_purchases_weigh_more_than_views(ctx):
    products = [
        Product(id="x", name="Alpha One", price=100, category="A"),
        Product(id="y", name="Beta One", price=100, category="B"),
        Product(id="a2", name="Alpha Two", price=100, category="A"),
        Product(id="b2", name="Beta Two", price=100, category="B"),
    ]
    interaction_log.record_view(ctx, "u1", "x")
    interaction_log.record_purchase(ctx, "u1", "y")

    assert [product.id for product in get_recommended_products(ctx, "u1", products)] == ["b2", "a2"]


def test_recent_views_outweigh_old_ones(ctx, clock):
    products = [
        Product(id="old", name="Old Thing", price=50, category="Old"),
        Product(id="new", name="New Thing", price=50, category="New"),
        Product(id="old-2", name="Old Stuff", price=50, category="Old"),
        Product(id="new-2", name="New Stuff", price=50, category="New"),
    ]
    interaction_log.record_view(ctx, "u1", "old")
    clock.advance(days=60)
    interaction_log.record_view(ctx, "u1", "new")

    assert [product.id for product in get_recommended_products(ctx, "u1", products)] == ["new-2", "old-2"]


def test_history_for_unknown_products_is_ignored(ctx, catalog):
    interaction_log.record_view(ctx, "u1", "discontinued")
    picks = get_recommended_products(ctx, "u1", catalog, limit=2)
    assert len(picks) == 2


def test_empty_user_or_catalog_yields_nothing(ctx, catalog):
    assert get_recommended_products(ctx, "", catalog) == []
    assert get_recommended_products(ctx, "u1", []) == []
    assert get_random_products(ctx, catalog, 0) == []


def test_non_positive_limit_yields_nothing(ctx, catalog):
    interaction_log.record_view(ctx, "u1", "p1")
    interaction_log.record_view(ctx, "u2", "p2")

    assert get_recommended_products(ctx, "u1", catalog, limit=-1) == []
    assert get_recommended_products(ctx, "u1", catalog, limit=0) == []
    assert get_popular_products(ctx, catalog, limit=-1) == []


# ---------- popular ----------

def test_popular_products_rank_by_interactions(ctx, catalog):
    for _ in range(5):
        interaction_log.record_view(ctx, "u1", "p1")
    interaction_log.record_purchase(ctx, "u2", "p1")
    interaction_log.record_view(ctx, "u2", "p2")
    interaction_log.record_view(ctx, "u3", "p4")
    interaction_log.record_view(ctx, "u3", "p4")

    assert [product.id for product in get_popular_products(ctx, catalog)] == ["p1", "p4", "p2"]
    assert [product.id for product in get_popular_products(ctx, catalog, limit=1)] == ["p1"]


def test_popular_products_fall_back_to_random_when_store_fails(ctx, catalog):
    ctx.store = UnreachableStore()
    picks = get_popular_products(ctx, catalog, limit=2)
    assert len(picks) == 2
    assert all(product in catalog for product in picks)


@pytest.mark.parametrize(
    "key, payload",
    [
        ("user_view_history", "{not json"),
        ("user_purchase_history", '[{"user_id": "u1"}]'),
    ],
)
def test_popular_products_fall_back_to_random_on_corrupt_history(clock, catalog, key, payload):
    ctx = EngagementContext(
        store=MemoryRecordStore(initial={key: payload}),
        clock=clock,
        tz=timezone.utc,
        rng=random.Random(3),
    )
    interaction_log.record_view(ctx, "u1", "p1")

    picks = get_popular_products(ctx, catalog, limit=2)
    assert len(picks) == 2
    assert len({product.id for product in picks}) == 2
    assert all(product in catalog for product in picks)


def test_module_is_documented():
    assert recommendation_service.__doc__.startswith("Personalized and popularity-based")
