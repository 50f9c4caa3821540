from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Optional

from pydantic import BaseModel

from shop_engagement.core.logging import get_logger
from shop_engagement.core.metrics import record_event_tracked
from shop_engagement.domain.enums import EventType, exhaustive
from shop_engagement.schemas.events import (
    Event,
    EventLogAdapter,
    PurchaseLine,
    build_properties,
    categories_of,
)
from shop_engagement.schemas.history import (
    PurchaseHistoryAdapter,
    PurchaseHistoryEntry,
    ViewHistoryAdapter,
    ViewHistoryEntry,
)
from shop_engagement.services.context import EngagementContext
from shop_engagement.services.exceptions import StoreError
from shop_engagement.services.record_store import read_collection, update_collection

logger = get_logger(__name__)

VIEW_HISTORY_KEY = "user_view_history"
PURCHASE_HISTORY_KEY = "user_purchase_history"
EVENTS_KEY = "user_events"

EVENT_WEIGHTS: dict[EventType, int] = exhaustive(
    EventType,
    {
        EventType.page_view: 1,
        EventType.product_view: 2,
        EventType.add_to_cart: 5,
        EventType.remove_from_cart: -2,
        EventType.begin_checkout: 7,
        EventType.purchase: 20,
        EventType.search: 3,
        EventType.filter: 2,
        EventType.share: 10,
        EventType.wishlist_add: 4,
        EventType.wishlist_remove: -1,
        EventType.review: 15,
        EventType.login: 3,
        EventType.signup: 10,
        EventType.logout: 0,
    },
)

# Only product-bearing events express interest in a category.
INTEREST_WEIGHTS: dict[EventType, int] = {
    EventType.purchase: 10,
    EventType.add_to_cart: 5,
    EventType.wishlist_add: 3,
    EventType.product_view: 1,
}


# --- View / purchase history ---

def record_view(ctx: EngagementContext, user_id: str, product_id: str) -> None:
    if not user_id or not product_id:
        return
    now = ctx.now()

    def _upsert(entries: list[ViewHistoryEntry]) -> ViewHistoryEntry:
        for entry in entries:
            if entry.user_id == user_id and entry.product_id == product_id:
                entry.view_count += 1
                entry.last_viewed = now
                return entry
        entry = ViewHistoryEntry(user_id=user_id, product_id=product_id, view_count=1, last_viewed=now)
        entries.append(entry)
        return entry

    try:
        entry = update_collection(ctx.store, VIEW_HISTORY_KEY, ViewHistoryAdapter, list, _upsert)
    except StoreError:
        logger.exception("Failed to record product view", extra={"user_id": user_id, "product_id": product_id})
        return
    logger.debug("view recorded user=%s product=%s count=%s", user_id, product_id, entry.view_count)


def record_purchase(ctx: EngagementContext, user_id: str, product_id: str, quantity: int = 1) -> None:
    if not user_id or not product_id or quantity <= 0:
        return
    now = ctx.now()

    def _upsert(entries: list[PurchaseHistoryEntry]) -> PurchaseHistoryEntry:
        for entry in entries:
            if entry.user_id == user_id and entry.product_id == product_id:
                entry.purchase_count += quantity
                entry.last_purchased = now
                return entry
        entry = PurchaseHistoryEntry(
            user_id=user_id, product_id=product_id, purchase_count=quantity, last_purchased=now
        )
        entries.append(entry)
        return entry

    try:
        entry = update_collection(ctx.store, PURCHASE_HISTORY_KEY, PurchaseHistoryAdapter, list, _upsert)
    except StoreError:
        logger.exception("Failed to record product purchase", extra={"user_id": user_id, "product_id": product_id})
        return
    logger.debug("purchase recorded user=%s product=%s count=%s", user_id, product_id, entry.purchase_count)


def get_all_view_history(ctx: EngagementContext, *, strict: bool = False) -> list[ViewHistoryEntry]:
    return read_collection(ctx.store, VIEW_HISTORY_KEY, ViewHistoryAdapter, list, strict=strict)


def get_all_purchase_history(ctx: EngagementContext, *, strict: bool = False) -> list[PurchaseHistoryEntry]:
    return read_collection(ctx.store, PURCHASE_HISTORY_KEY, PurchaseHistoryAdapter, list, strict=strict)


def get_view_history(ctx: EngagementContext, user_id: str) -> list[ViewHistoryEntry]:
    return [entry for entry in get_all_view_history(ctx) if entry.user_id == user_id]


def get_purchase_history(ctx: EngagementContext, user_id: str) -> list[PurchaseHistoryEntry]:
    return [entry for entry in get_all_purchase_history(ctx) if entry.user_id == user_id]


# --- Event log ---

def track_event(
    ctx: EngagementContext,
    event_type: EventType | str,
    properties: BaseModel | dict[str, Any] | None = None,
    user_id: str | None = None,
) -> Optional[Event]:
    """Append an event to the capped log and return it, or ``None`` if it was dropped."""
    try:
        event_type = EventType(event_type)
        payload = build_properties(event_type, properties)
    except ValueError:
        logger.warning("Dropping invalid event", extra={"event_type": str(event_type)}, exc_info=True)
        return None

    session_id = ctx.current_session_id()
    now = ctx.now()

    def _append(events: list[Event]) -> Event:
        timestamp = now
        if events and events[-1].timestamp > timestamp:
            timestamp = events[-1].timestamp
        event = Event(
            event_type=event_type,
            user_id=user_id or None,
            session_id=session_id,
            timestamp=timestamp,
            properties=payload,
        )
        events.append(event)
        overflow = len(events) - ctx.max_events
        if overflow > 0:
            del events[:overflow]
        return event

    try:
        event = update_collection(ctx.store, EVENTS_KEY, EventLogAdapter, list, _append)
    except StoreError:
        logger.exception("Failed to track event", extra={"event_type": event_type.value})
        return None

    record_event_tracked(event_type.value)
    return event


def get_user_events(ctx: EngagementContext, user_id: str | None = None) -> list[Event]:
    events = read_collection(ctx.store, EVENTS_KEY, EventLogAdapter, list)
    if user_id:
        return [event for event in events if event.user_id == user_id]
    return events


def get_session_events(ctx: EngagementContext) -> list[Event]:
    if not ctx.session_id:
        return []
    events = read_collection(ctx.store, EVENTS_KEY, EventLogAdapter, list)
    return [event for event in events if event.session_id == ctx.session_id]


def _scoped_events(ctx: EngagementContext, user_id: str | None) -> list[Event]:
    return get_user_events(ctx, user_id) if user_id else get_session_events(ctx)


def calculate_engagement_score(ctx: EngagementContext, user_id: str | None = None) -> int:
    return sum(EVENT_WEIGHTS[event.event_type] for event in _scoped_events(ctx, user_id))


def get_user_interests(ctx: EngagementContext, user_id: str | None = None, limit: int = 3) -> list[str]:
    """Top categories by weighted product interactions of a user or the current session."""
    scores: dict[str, int] = {}
    for event in _scoped_events(ctx, user_id):
        weight = INTEREST_WEIGHTS.get(event.event_type)
        if weight is None:
            continue
        for category in categories_of(event.properties):
            scores[category] = scores.get(category, 0) + weight

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [category for category, _ in ranked[:limit]]


# --- Typed trackers ---

def track_page_view(
    ctx: EngagementContext,
    page_path: str,
    page_title: str,
    user_id: str | None = None,
    *,
    referrer: str | None = None,
    screen_width: int | None = None,
    screen_height: int | None = None,
) -> Optional[Event]:
    return track_event(
        ctx,
        EventType.page_view,
        {
            "page_path": page_path,
            "page_title": page_title,
            "referrer": referrer,
            "screen_width": screen_width,
            "screen_height": screen_height,
        },
        user_id,
    )


def track_product_view(
    ctx: EngagementContext,
    product_id: str,
    product_name: str,
    category: str,
    price: float,
    user_id: str | None = None,
) -> Optional[Event]:
    return track_event(
        ctx,
        EventType.product_view,
        {"product_id": product_id, "product_name": product_name, "category": category, "price": price},
        user_id,
    )


def _track_cart(
    ctx: EngagementContext,
    event_type: EventType,
    product_id: str,
    product_name: str,
    category: str,
    price: float,
    quantity: int,
    user_id: str | None,
) -> Optional[Event]:
    return track_event(
        ctx,
        event_type,
        {
            "product_id": product_id,
            "product_name": product_name,
            "category": category,
            "price": price,
            "quantity": quantity,
        },
        user_id,
    )


def track_add_to_cart(
    ctx: EngagementContext,
    product_id: str,
    product_name: str,
    category: str,
    price: float,
    quantity: int = 1,
    user_id: str | None = None,
) -> Optional[Event]:
    return _track_cart(ctx, EventType.add_to_cart, product_id, product_name, category, price, quantity, user_id)


def track_remove_from_cart(
    ctx: EngagementContext,
    product_id: str,
    product_name: str,
    category: str,
    price: float,
    quantity: int = 1,
    user_id: str | None = None,
) -> Optional[Event]:
    return _track_cart(ctx, EventType.remove_from_cart, product_id, product_name, category, price, quantity, user_id)


def track_purchase(
    ctx: EngagementContext,
    order_id: str,
    products: Iterable[PurchaseLine | dict[str, Any]],
    total_value: float,
    user_id: str | None = None,
) -> Optional[Event]:
    lines = list(products)
    return track_event(
        ctx,
        EventType.purchase,
        {"order_id": order_id, "products": lines, "item_count": len(lines), "total_value": total_value},
        user_id,
    )


def track_search(
    ctx: EngagementContext,
    search_term: str,
    results_count: int,
    user_id: str | None = None,
) -> Optional[Event]:
    return track_event(
        ctx,
        EventType.search,
        {"search_term": search_term, "results_count": results_count},
        user_id,
    )
