# shop_engagement/domain/enums.py
import enum
from collections.abc import Mapping
from typing import TypeVar

V = TypeVar("V")


class EventType(str, enum.Enum):
    page_view = "page_view"
    product_view = "product_view"
    add_to_cart = "add_to_cart"
    remove_from_cart = "remove_from_cart"
    begin_checkout = "begin_checkout"
    purchase = "purchase"
    search = "search"
    filter = "filter"
    share = "share"
    wishlist_add = "wishlist_add"
    wishlist_remove = "wishlist_remove"
    review = "review"
    login = "login"
    signup = "signup"
    logout = "logout"


class ActivityType(str, enum.Enum):
    login = "login"
    purchase = "purchase"
    review = "review"
    share = "share"
    complete_profile = "profile"
    daily_check = "daily_check"
    consecutive_login = "consecutive_login"


def exhaustive(enum_cls: type[enum.Enum], mapping: Mapping[enum.Enum, V]) -> dict[enum.Enum, V]:
    """Return ``mapping`` as a dict, failing at import time if a member is missing."""
    missing = [member.value for member in enum_cls if member not in mapping]
    extra = [key for key in mapping if not isinstance(key, enum_cls)]
    if missing or extra:
        raise RuntimeError(
            f"Incomplete {enum_cls.__name__} table: missing={missing} unexpected={extra}"
        )
    return dict(mapping)
