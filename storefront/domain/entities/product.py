"""Product snapshot entity."""
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Product(BaseModel):
    """Read-only product data embedded in cart lines and favorites at fetch time."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: int = Field(..., description="Product ID")
    name: str = Field(..., description="Display name")
    price: Decimal = Field(..., ge=0, description="Unit price in major currency units")
    image_url: str | None = Field(None, description="Primary image URL")
    stock: int = Field(0, ge=0, description="Units in stock at fetch time")
    category: str | None = Field(None, description="Category slug")
    rating: float | None = Field(None, ge=0, description="Average rating")
    reviews: int = Field(0, ge=0, description="Number of reviews")
