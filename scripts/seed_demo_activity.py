"""Seed script for populating the record store with demo engagement data."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH when running as a script.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from shop_engagement.core.config import settings
from shop_engagement.core.logging import setup_logging
from shop_engagement.domain.enums import ActivityType
from shop_engagement.schemas.product import Product
from shop_engagement.services import interaction_log, loyalty_service, recommendation_service
from shop_engagement.services.context import EngagementContext, create_context


DEMO_PRODUCTS: tuple[Product, ...] = (
    Product(id="p-100", name="Apple Watch Series 9", price=399.0, category="Wearables",
            description="Smart watch with health tracking"),
    Product(id="p-101", name="Fitness Band Lite", price=49.0, category="Wearables",
            description="Step counter and sleep monitor"),
    Product(id="p-200", name="华为 手机 Mate", price=899.0, category="Phones",
            description="旗舰智能手机"),
    Product(id="p-201", name="Budget Phone Go", price=129.0, category="Phones",
            description="Entry level smartphone"),
    Product(id="p-300", name="Noise Cancelling Headphones", price=249.0, category="Audio",
            description="Wireless over-ear headphones"),
    Product(id="p-301", name="Wireless Earbuds", price=99.0, category="Audio",
            description="Compact true wireless earbuds"),
)


@dataclass(frozen=True, slots=True)
class DemoInteraction:
    user_id: str
    product_id: str
    views: int = 1
    purchases: int = 0


DEMO_INTERACTIONS: tuple[DemoInteraction, ...] = (
    DemoInteraction(user_id="demo-alice", product_id="p-100", views=5, purchases=1),
    DemoInteraction(user_id="demo-alice", product_id="p-300", views=2),
    DemoInteraction(user_id="demo-bob", product_id="p-100", views=1),
    DemoInteraction(user_id="demo-bob", product_id="p-200", views=3, purchases=2),
    DemoInteraction(user_id="demo-carol", product_id="p-301", views=1),
)


def _catalog() -> dict[str, Product]:
    return {product.id: product for product in DEMO_PRODUCTS}


def seed_demo_activity(ctx: EngagementContext) -> dict[str, int]:
    """Record the demo interactions against ``ctx`` and return what was written."""
    logger = logging.getLogger("seed_demo_activity")
    logger.info("Seeding demo engagement data into the %s store", settings.STORE_BACKEND)

    catalog = _catalog()
    views = 0
    purchases = 0
    users: set[str] = set()

    for interaction in DEMO_INTERACTIONS:
        product = catalog[interaction.product_id]
        if interaction.user_id not in users:
            users.add(interaction.user_id)
            loyalty_service.record_activity(ctx, interaction.user_id, ActivityType.login)

        for _ in range(interaction.views):
            interaction_log.record_view(ctx, interaction.user_id, product.id)
            interaction_log.track_product_view(
                ctx, product.id, product.name, product.category, product.price, interaction.user_id
            )
            views += 1

        if interaction.purchases:
            interaction_log.record_purchase(ctx, interaction.user_id, product.id, interaction.purchases)
            loyalty_service.record_activity(
                ctx,
                interaction.user_id,
                ActivityType.purchase,
                {"amount": product.price * interaction.purchases, "product_ids": [product.id]},
            )
            purchases += interaction.purchases
            logger.debug("Recorded purchase of %s by %s", product.id, interaction.user_id)

    logger.info(
        "Seed completed: %s views, %s purchases, %s users",
        views,
        purchases,
        len(users),
    )
    return {"views": views, "purchases": purchases, "users": len(users)}


def main() -> None:
    ctx = create_context()
    seed_demo_activity(ctx)

    logger = logging.getLogger("seed_demo_activity")
    popular = recommendation_service.get_popular_products(ctx, DEMO_PRODUCTS, limit=3)
    logger.info("Popular products: %s", [product.name for product in popular])
    for user_id in sorted({interaction.user_id for interaction in DEMO_INTERACTIONS}):
        picks = recommendation_service.get_recommended_products(ctx, user_id, DEMO_PRODUCTS, limit=2)
        level = loyalty_service.get_user_level(ctx, user_id)
        logger.info(
            "User %s: level=%s recommended=%s",
            user_id,
            level.name,
            [product.name for product in picks],
        )


if __name__ == "__main__":
    setup_logging()
    try:
        main()
    except KeyboardInterrupt:
        pass
