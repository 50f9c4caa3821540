# tests/test_seed_scripts.py
from scripts import seed_demo_activity
from shop_engagement.services import interaction_log, loyalty_service, recommendation_service


def test_seed_demo_activity_populates_store(ctx):
    summary = seed_demo_activity.seed_demo_activity(ctx)
    assert summary == {"views": 12, "purchases": 3, "users": 3}

    alice = interaction_log.get_view_history(ctx, "demo-alice")
    assert {entry.product_id: entry.view_count for entry in alice} == {"p-100": 5, "p-300": 2}
    assert len(interaction_log.get_user_events(ctx)) == 12

    assert loyalty_service.get_user_level(ctx, "demo-alice").name == "Silver Member"
    assert loyalty_service.get_user_level(ctx, "demo-bob").name == "Gold Member"
    assert loyalty_service.get_user_level(ctx, "demo-carol").name == "Bronze Member"


def test_seeded_popularity_ranking(ctx):
    seed_demo_activity.seed_demo_activity(ctx)

    popular = recommendation_service.get_popular_products(ctx, seed_demo_activity.DEMO_PRODUCTS, limit=3)
    assert [product.id for product in popular] == ["p-200", "p-100", "p-300"]

    picks = recommendation_service.get_recommended_products(ctx, "demo-bob", seed_demo_activity.DEMO_PRODUCTS)
    assert {"p-100", "p-200"}.isdisjoint(product.id for product in picks)
    # Bob bought a phone, so the other phone ranks first.
    assert picks[0].id == "p-201"
