"""Personalized and popularity-based product recommendations."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from math import log

from shop_engagement.core.logging import get_logger
from shop_engagement.core.metrics import record_recommendation
from shop_engagement.schemas.product import Product
from shop_engagement.services import interaction_log
from shop_engagement.services.context import EngagementContext
from shop_engagement.services.exceptions import StoreError

logger = get_logger(__name__)

CATEGORY_WEIGHT = 0.5
PRICE_WEIGHT = 0.3
NAME_WEIGHT = 0.2

VIEW_AFFINITY = 0.5
PURCHASE_AFFINITY = 1.5

POPULARITY_VIEW_WEIGHT = 1
POPULARITY_PURCHASE_WEIGHT = 5

SECONDS_PER_DAY = 24 * 3600


def similarity(a: Product, b: Product) -> float:
    if a.id == b.id:
        return 0.0

    score = 0.0
    if a.category == b.category:
        score += CATEGORY_WEIGHT

    max_price = max(a.price, b.price)
    price_ratio = 1.0 if max_price <= 0 else 1 - abs(a.price - b.price) / max_price
    score += price_ratio * PRICE_WEIGHT

    tokens_a = set(a.name.lower().split())
    tokens_b = set(b.name.lower().split())
    union = tokens_a | tokens_b
    if union:
        score += len(tokens_a & tokens_b) / len(union) * NAME_WEIGHT

    return score


def time_decay(days: float) -> float:
    return 1 / log(max(days, 1.0) + 1)


def _days_since(now: datetime, then: datetime) -> float:
    return (now - then).total_seconds() / SECONDS_PER_DAY


def get_random_products(ctx: EngagementContext, products: Sequence[Product], limit: int = 5) -> list[Product]:
    if limit <= 0:
        return []
    return ctx.rng.sample(list(products), min(limit, len(products)))


def get_recommended_products(
    ctx: EngagementContext,
    user_id: str,
    all_products: Sequence[Product],
    limit: int = 5,
) -> list[Product]:
    if not user_id or not all_products or limit <= 0:
        return []

    views = interaction_log.get_view_history(ctx, user_id)
    purchases = interaction_log.get_purchase_history(ctx, user_id)

    if not views and not purchases:
        record_recommendation("random")
        return get_random_products(ctx, all_products, limit)

    catalog = {product.id: product for product in all_products}
    interacted = {entry.product_id for entry in views} | {entry.product_id for entry in purchases}
    now = ctx.now()

    # Resolve history against the catalog once; unknown products are skipped.
    viewed = [
        (catalog[entry.product_id], entry.view_count * time_decay(_days_since(now, entry.last_viewed)))
        for entry in views
        if entry.product_id in catalog
    ]
    purchased = [
        (catalog[entry.product_id], entry.purchase_count * time_decay(_days_since(now, entry.last_purchased)))
        for entry in purchases
        if entry.product_id in catalog
    ]

    scored: list[tuple[Product, float]] = []
    for candidate in all_products:
        if candidate.id in interacted:
            continue
        score = 0.0
        for product, weight in viewed:
            score += similarity(candidate, product) * weight * VIEW_AFFINITY
        for product, weight in purchased:
            score += similarity(candidate, product) * weight * PURCHASE_AFFINITY
        scored.append((candidate, score))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    record_recommendation("personalized")
    logger.debug("recommendations user=%s candidates=%s", user_id, len(scored))
    return [product for product, _ in scored[:limit]]


def get_popular_products(ctx: EngagementContext, all_products: Sequence[Product], limit: int = 5) -> list[Product]:
    """Catalog products ranked by interactions across every user."""
    if limit <= 0:
        return []
    try:
        views = interaction_log.get_all_view_history(ctx, strict=True)
        purchases = interaction_log.get_all_purchase_history(ctx, strict=True)
    except StoreError:
        logger.exception("Popularity aggregation failed, falling back to random products")
        record_recommendation("random")
        return get_random_products(ctx, all_products, limit)

    scores: dict[str, float] = defaultdict(float)
    for entry in views:
        scores[entry.product_id] += entry.view_count * POPULARITY_VIEW_WEIGHT
    for entry in purchases:
        scores[entry.product_id] += entry.purchase_count * POPULARITY_PURCHASE_WEIGHT

    ranked = sorted(
        (product for product in all_products if product.id in scores),
        key=lambda product: scores[product.id],
        reverse=True,
    )
    record_recommendation("popular")
    return ranked[:limit]
