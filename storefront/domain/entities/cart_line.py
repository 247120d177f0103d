"""Cart line entity."""
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .product import Product


class CartLine(BaseModel):
    """One product-quantity pairing in the signed-in user's cart."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: int = Field(..., description="Cart line ID assigned by the remote store")
    product_id: int = Field(..., description="Product ID")
    quantity: int = Field(..., ge=1, description="Units of the product")
    product: Product

    @model_validator(mode="after")
    def _product_matches(self) -> CartLine:
        if self.product.id != self.product_id:
            raise ValueError(
                f"Cart line {self.id} references product {self.product_id} "
                f"but embeds product {self.product.id}"
            )
        return self

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity
