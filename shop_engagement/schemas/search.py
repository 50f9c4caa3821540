from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from shop_engagement.core.config import settings

T = TypeVar("T")

PRODUCT_SEARCH_FIELDS = ("name", "description", "category")


class SearchOptions(BaseModel):
    fields: tuple[str, ...] = PRODUCT_SEARCH_FIELDS
    fuzzy: bool = True
    threshold: float = Field(default_factory=lambda: settings.SEARCH_THRESHOLD, ge=0.0, le=1.0)
    limit: int = Field(default_factory=lambda: settings.SEARCH_LIMIT, ge=0)
    sort: bool = True


@dataclass(frozen=True, slots=True)
class SearchResult(Generic[T]):
    item: T
    score: float
    matches: list[str] = field(default_factory=list)
