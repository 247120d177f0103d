"""Coupon validation result."""
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CouponQuote(BaseModel):
    """Discount granted by the remote store for a coupon at a given cart total."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    code: str = ""
    valid: bool = True
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    message: str | None = None
