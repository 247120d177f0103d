"""Shared helpers for order totals and quantities."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from storefront.core.constants import MINOR_UNITS_PER_MAJOR, MONEY_QUANT


def to_money(value: Any) -> Decimal:
    """Coerce a number or numeric string to a cent-quantized Decimal."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units (cents)."""
    return int((to_money(amount) * MINOR_UNITS_PER_MAJOR).to_integral_value(rounding=ROUND_HALF_UP))


def calc_items_total(lines: Iterable[Any]) -> Decimal:
    """Sum price x quantity over cart lines, recomputed from scratch every call."""
    total = Decimal("0")
    for line in lines:
        total += Decimal(line.product.price) * int(line.quantity)
    return to_money(total)


def calc_quantity(lines: Iterable[Any]) -> int:
    return sum(int(line.quantity) for line in lines)


def calc_taxes(subtotal: Decimal, tax_rate: Decimal) -> Decimal:
    return to_money(Decimal(subtotal) * Decimal(tax_rate))


@dataclass(frozen=True, slots=True)
class OrderDraft:
    """Derived pricing summary for checkout. Never persisted."""

    subtotal: Decimal
    shipping_cost: Decimal
    tax_rate: Decimal
    taxes: Decimal
    total: Decimal
    discount: Decimal = Decimal("0.00")

    @property
    def total_minor_units(self) -> int:
        return to_minor_units(self.total)


def build_order_draft(
    lines: Iterable[Any],
    *,
    shipping_cost: Decimal,
    tax_rate: Decimal,
    discount: Decimal | None = None,
) -> OrderDraft:
    subtotal = calc_items_total(lines)
    shipping = to_money(shipping_cost)
    taxes = calc_taxes(subtotal, tax_rate)
    applied_discount = max(Decimal("0.00"), min(to_money(discount or 0), subtotal))
    total = to_money(subtotal + shipping + taxes - applied_discount)
    return OrderDraft(
        subtotal=subtotal,
        shipping_cost=shipping,
        tax_rate=Decimal(tax_rate),
        taxes=taxes,
        total=total,
        discount=applied_discount,
    )
