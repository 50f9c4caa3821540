from __future__ import annotations

from math import floor
from typing import Any, Optional

from pydantic import BaseModel

from shop_engagement.core.config import settings
from shop_engagement.core.logging import get_logger
from shop_engagement.core.metrics import record_points_awarded
from shop_engagement.domain.enums import ActivityType, exhaustive
from shop_engagement.schemas.loyalty import (
    ActivityLogAdapter,
    ActivityRecord,
    LoginStreak,
    NextLevelProgress,
    PointsAdapter,
    PurchaseMetadata,
    StreakMetadata,
    StreaksAdapter,
    UserLevel,
    build_metadata,
)
from shop_engagement.services.context import EngagementContext
from shop_engagement.services.exceptions import StoreError
from shop_engagement.services.record_store import read_collection, update_collection

logger = get_logger(__name__)

ACTIVITIES_KEY = "user_activities"
POINTS_KEY = "user_points"
STREAKS_KEY = "user_login_streaks"

USER_LEVELS: tuple[UserLevel, ...] = (
    UserLevel(level=1, name="Bronze Member", min_points=0, max_points=999, benefits=("Basic shopping features",)),
    UserLevel(
        level=2,
        name="Silver Member",
        min_points=1000,
        max_points=4999,
        benefits=("2% off every order", "Birthday gift"),
    ),
    UserLevel(
        level=3,
        name="Gold Member",
        min_points=5000,
        max_points=19999,
        benefits=("5% off every order", "Birthday gift", "Dedicated support"),
    ),
    UserLevel(
        level=4,
        name="Diamond Member",
        min_points=20000,
        max_points=None,
        benefits=("10% off every order", "Birthday gift", "Dedicated support", "Free shipping"),
    ),
)

ACTIVITY_POINTS: dict[ActivityType, int] = exhaustive(
    ActivityType,
    {
        ActivityType.login: 10,
        ActivityType.purchase: 100,
        ActivityType.review: 50,
        ActivityType.share: 30,
        ActivityType.complete_profile: 200,
        ActivityType.daily_check: 20,
        # Per streak day, see record_activity.
        ActivityType.consecutive_login: 5,
    },
)

POINTS_PER_CURRENCY_UNIT = 10


def _check_levels(levels: tuple[UserLevel, ...]) -> None:
    if not levels or levels[0].min_points != 0:
        raise RuntimeError("Loyalty levels must start at 0 points")
    for current, following in zip(levels, levels[1:]):
        if current.max_points is None or following.min_points != current.max_points + 1:
            raise RuntimeError(f"Loyalty levels {current.level} and {following.level} are not contiguous")
    if levels[-1].max_points is not None:
        raise RuntimeError("The last loyalty level must be unbounded")


_check_levels(USER_LEVELS)


# --- Reads ---

def get_user_activities(ctx: EngagementContext, user_id: str) -> list[ActivityRecord]:
    activities = read_collection(ctx.store, ACTIVITIES_KEY, ActivityLogAdapter, list)
    return [activity for activity in activities if activity.user_id == user_id]


def get_user_points(ctx: EngagementContext, user_id: str) -> int:
    return read_collection(ctx.store, POINTS_KEY, PointsAdapter, dict).get(user_id, 0)


def get_login_streak(ctx: EngagementContext, user_id: str) -> int:
    streak = read_collection(ctx.store, STREAKS_KEY, StreaksAdapter, dict).get(user_id)
    return streak.days if streak else 0


def level_for_points(points: int) -> UserLevel:
    for level in USER_LEVELS:
        if level.contains(points):
            return level
    return USER_LEVELS[0]


def get_user_level(ctx: EngagementContext, user_id: str) -> UserLevel:
    return level_for_points(get_user_points(ctx, user_id))


def get_points_to_next_level(ctx: EngagementContext, user_id: str) -> NextLevelProgress:
    points = get_user_points(ctx, user_id)
    index = USER_LEVELS.index(level_for_points(points))
    if index == len(USER_LEVELS) - 1:
        return NextLevelProgress(next_level=None, points_needed=0)
    next_level = USER_LEVELS[index + 1]
    return NextLevelProgress(next_level=next_level, points_needed=max(next_level.min_points - points, 0))


def has_checked_in_today(ctx: EngagementContext, user_id: str) -> bool:
    start = ctx.start_of_today()
    return any(
        activity.type is ActivityType.daily_check and activity.timestamp >= start
        for activity in get_user_activities(ctx, user_id)
    )


# --- Writes ---

def _advance_login_streak(ctx: EngagementContext, user_id: str) -> int:
    today = ctx.today()

    def _advance(streaks: dict[str, LoginStreak]) -> int:
        current = streaks.get(user_id)
        if current is None:
            streaks[user_id] = LoginStreak(last_login=today, days=1)
            return 1

        gap = (today - current.last_login).days
        if gap == 1:
            days = current.days + 1
        elif gap > 1:
            days = 1
        else:
            # Same day, or a clock that moved backwards.
            days = current.days
        streaks[user_id] = LoginStreak(last_login=max(today, current.last_login), days=days)
        return days

    return update_collection(ctx.store, STREAKS_KEY, StreaksAdapter, dict, _advance)


def _append_activities(ctx: EngagementContext, records: list[ActivityRecord]) -> None:
    update_collection(ctx.store, ACTIVITIES_KEY, ActivityLogAdapter, list, lambda activities: activities.extend(records))


def _add_points(ctx: EngagementContext, user_id: str, points: int) -> tuple[int, int]:
    def _add(totals: dict[str, int]) -> tuple[int, int]:
        previous = totals.get(user_id, 0)
        totals[user_id] = previous + max(points, 0)
        return previous, totals[user_id]

    return update_collection(ctx.store, POINTS_KEY, PointsAdapter, dict, _add)


def _base_points(activity_type: ActivityType, metadata: Optional[BaseModel]) -> int:
    if activity_type is ActivityType.purchase and isinstance(metadata, PurchaseMetadata) and metadata.amount is not None:
        return floor(metadata.amount * POINTS_PER_CURRENCY_UNIT)
    return ACTIVITY_POINTS[activity_type]


def record_activity(
    ctx: EngagementContext,
    user_id: str,
    activity_type: ActivityType | str,
    metadata: BaseModel | dict[str, Any] | None = None,
) -> int:
    """Record an activity, credit its points and return them.

    A login also advances the user's streak; from the second consecutive day on
    it earns a separate ``consecutive_login`` bonus record. The bonus is added
    to the user's total but not to the returned value.
    """
    if not user_id:
        return 0
    try:
        activity_type = ActivityType(activity_type)
        payload = build_metadata(activity_type, metadata)
    except ValueError:
        logger.warning("Ignoring invalid activity", extra={"user_id": user_id}, exc_info=True)
        return 0

    points = _base_points(activity_type, payload)
    now = ctx.now()
    bonus = 0
    records: list[ActivityRecord] = []

    try:
        if activity_type is ActivityType.login:
            streak = _advance_login_streak(ctx, user_id)
            if streak > 1:
                bonus = min(streak * ACTIVITY_POINTS[ActivityType.consecutive_login], settings.LOGIN_STREAK_BONUS_CAP)
                records.append(
                    ActivityRecord(
                        user_id=user_id,
                        type=ActivityType.consecutive_login,
                        points=bonus,
                        timestamp=now,
                        metadata=StreakMetadata(days=streak),
                    )
                )

        records.append(ActivityRecord(user_id=user_id, type=activity_type, points=points, timestamp=now, metadata=payload))
        _append_activities(ctx, records)
        previous, total = _add_points(ctx, user_id, points + bonus)
    except StoreError:
        logger.exception("Failed to record activity", extra={"user_id": user_id, "activity_type": activity_type.value})
        return 0

    record_points_awarded(activity_type.value, points)
    if bonus:
        record_points_awarded(ActivityType.consecutive_login.value, bonus)

    prev_level, new_level = level_for_points(previous), level_for_points(total)
    if prev_level.level != new_level.level:
        logger.info(
            "loyalty upgrade",
            extra={"user_id": user_id, "previous_level": prev_level.name, "new_level": new_level.name, "points": total},
        )
    logger.debug("activity recorded user=%s type=%s points=%s bonus=%s", user_id, activity_type.value, points, bonus)
    return points


def perform_daily_check_in(ctx: EngagementContext, user_id: str) -> Optional[int]:
    """Award the daily check-in once per calendar day; ``None`` if already done."""
    if has_checked_in_today(ctx, user_id):
        return None
    return record_activity(ctx, user_id, ActivityType.daily_check)
