from __future__ import annotations

from pydantic import BaseModel, Field, TypeAdapter

from shop_engagement.schemas.common import Instant


class ViewHistoryEntry(BaseModel):
    user_id: str
    product_id: str
    view_count: int = Field(ge=1)
    last_viewed: Instant


class PurchaseHistoryEntry(BaseModel):
    user_id: str
    product_id: str
    purchase_count: int = Field(ge=1)
    last_purchased: Instant


ViewHistoryAdapter = TypeAdapter(list[ViewHistoryEntry])
PurchaseHistoryAdapter = TypeAdapter(list[PurchaseHistoryEntry])
