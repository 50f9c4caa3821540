from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from shop_engagement.domain.enums import EventType, exhaustive
from shop_engagement.schemas.common import Instant


class PageViewProperties(BaseModel):
    kind: Literal["page_view"] = "page_view"
    page_path: str
    page_title: str = ""
    referrer: str | None = None
    screen_width: int | None = Field(default=None, ge=0)
    screen_height: int | None = Field(default=None, ge=0)


class ProductProperties(BaseModel):
    kind: Literal["product"] = "product"
    product_id: str
    product_name: str | None = None
    category: str | None = None
    price: float | None = Field(default=None, ge=0)


class CartProperties(BaseModel):
    kind: Literal["cart"] = "cart"
    product_id: str
    product_name: str | None = None
    category: str | None = None
    price: float = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    value: float | None = None

    @model_validator(mode="after")
    def fill_value(self) -> "CartProperties":
        if self.value is None:
            self.value = self.price * self.quantity
        return self


class PurchaseLine(BaseModel):
    product_id: str
    product_name: str | None = None
    category: str | None = None
    price: float = Field(ge=0)
    quantity: int = Field(default=1, ge=1)


class PurchaseProperties(BaseModel):
    kind: Literal["purchase"] = "purchase"
    order_id: str | None = None
    products: list[PurchaseLine] = Field(default_factory=list)
    item_count: int | None = Field(default=None, ge=0)
    total_value: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def fill_totals(self) -> "PurchaseProperties":
        if self.item_count is None:
            self.item_count = len(self.products)
        if self.total_value is None:
            self.total_value = sum(line.price * line.quantity for line in self.products)
        return self


class SearchProperties(BaseModel):
    kind: Literal["search"] = "search"
    search_term: str
    results_count: int = Field(default=0, ge=0)


class GenericProperties(BaseModel):
    kind: Literal["generic"] = "generic"

    model_config = ConfigDict(extra="allow")


EventProperties = Annotated[
    Union[
        PageViewProperties,
        ProductProperties,
        CartProperties,
        PurchaseProperties,
        SearchProperties,
        GenericProperties,
    ],
    Field(discriminator="kind"),
]

EVENT_PROPERTY_MODELS: dict[EventType, type[BaseModel]] = exhaustive(
    EventType,
    {
        EventType.page_view: PageViewProperties,
        EventType.product_view: ProductProperties,
        EventType.add_to_cart: CartProperties,
        EventType.remove_from_cart: CartProperties,
        EventType.begin_checkout: PurchaseProperties,
        EventType.purchase: PurchaseProperties,
        EventType.search: SearchProperties,
        EventType.filter: SearchProperties,
        EventType.share: ProductProperties,
        EventType.wishlist_add: ProductProperties,
        EventType.wishlist_remove: ProductProperties,
        EventType.review: ProductProperties,
        EventType.login: GenericProperties,
        EventType.signup: GenericProperties,
        EventType.logout: GenericProperties,
    },
)


def build_properties(event_type: EventType, properties: BaseModel | dict[str, Any] | None) -> BaseModel:
    """Coerce caller-supplied properties into the payload type of ``event_type``."""
    model = EVENT_PROPERTY_MODELS[event_type]
    if isinstance(properties, model):
        return properties
    if isinstance(properties, BaseModel):
        raise ValueError(
            f"{type(properties).__name__} is not a valid payload for {event_type.value} events"
        )
    return model.model_validate(properties or {})


def categories_of(properties: BaseModel) -> list[str]:
    if isinstance(properties, (ProductProperties, CartProperties)):
        return [properties.category] if properties.category else []
    if isinstance(properties, PurchaseProperties):
        return [line.category for line in properties.products if line.category]
    return []


class Event(BaseModel):
    event_type: EventType
    user_id: str | None = None
    session_id: str
    timestamp: Instant
    properties: EventProperties

    @model_validator(mode="after")
    def check_payload(self) -> "Event":
        expected = EVENT_PROPERTY_MODELS[self.event_type]
        if not isinstance(self.properties, expected):
            raise ValueError(
                f"{self.event_type.value} events carry {expected.__name__}, got {type(self.properties).__name__}"
            )
        return self


EventLogAdapter = TypeAdapter(list[Event])
