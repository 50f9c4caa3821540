from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """Catalog entry as delivered by the product service."""

    id: str = Field(min_length=1)
    name: str
    price: float = Field(ge=0)
    category: str = ""
    description: str = ""

    model_config = ConfigDict(from_attributes=True, frozen=True)
