from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from shop_engagement.domain.enums import ActivityType
from shop_engagement.schemas.common import Instant


class PurchaseMetadata(BaseModel):
    kind: Literal["purchase"] = "purchase"
    amount: float | None = Field(default=None, ge=0)
    order_id: str | None = None
    product_ids: list[str] = Field(default_factory=list)


class ReviewMetadata(BaseModel):
    kind: Literal["review"] = "review"
    product_id: str
    rating: int | None = Field(default=None, ge=1, le=5)


class ShareMetadata(BaseModel):
    kind: Literal["share"] = "share"
    product_id: str | None = None
    channel: str | None = None


class StreakMetadata(BaseModel):
    kind: Literal["streak"] = "streak"
    days: int = Field(ge=1)


ActivityMetadata = Annotated[
    Union[PurchaseMetadata, ReviewMetadata, ShareMetadata, StreakMetadata],
    Field(discriminator="kind"),
]

# Activity types absent from this table carry no metadata.
ACTIVITY_METADATA_MODELS: dict[ActivityType, type[BaseModel]] = {
    ActivityType.purchase: PurchaseMetadata,
    ActivityType.review: ReviewMetadata,
    ActivityType.share: ShareMetadata,
    ActivityType.consecutive_login: StreakMetadata,
}


def build_metadata(
    activity_type: ActivityType, metadata: BaseModel | dict[str, Any] | None
) -> Optional[BaseModel]:
    if metadata is None:
        return None
    model = ACTIVITY_METADATA_MODELS.get(activity_type)
    if model is None:
        raise ValueError(f"{activity_type.value} activities do not take metadata")
    if isinstance(metadata, model):
        return metadata
    if isinstance(metadata, BaseModel):
        raise ValueError(f"{type(metadata).__name__} is not valid metadata for {activity_type.value}")
    return model.model_validate(metadata)


class ActivityRecord(BaseModel):
    user_id: str
    type: ActivityType
    points: int
    timestamp: Instant
    metadata: Optional[ActivityMetadata] = None

    @model_validator(mode="after")
    def check_metadata(self) -> "ActivityRecord":
        if self.metadata is None:
            return self
        expected = ACTIVITY_METADATA_MODELS.get(self.type)
        if expected is None or not isinstance(self.metadata, expected):
            raise ValueError(f"{type(self.metadata).__name__} does not belong to {self.type.value} activities")
        return self


class LoginStreak(BaseModel):
    last_login: date
    days: int = Field(ge=1)


class UserLevel(BaseModel):
    level: int
    name: str
    min_points: int = Field(ge=0)
    max_points: int | None = None
    benefits: tuple[str, ...] = ()

    def contains(self, points: int) -> bool:
        if points < self.min_points:
            return False
        return self.max_points is None or points <= self.max_points


class NextLevelProgress(BaseModel):
    next_level: UserLevel | None
    points_needed: int = Field(ge=0)


ActivityLogAdapter = TypeAdapter(list[ActivityRecord])
PointsAdapter = TypeAdapter(dict[str, Annotated[int, Field(ge=0)]])
StreaksAdapter = TypeAdapter(dict[str, LoginStreak])
