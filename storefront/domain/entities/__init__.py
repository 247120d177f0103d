"""Domain entities package."""

from .cart_line import CartLine
from .coupon import CouponQuote
from .product import Product
from .user import User

__all__ = [
    "User",
    "Product",
    "CartLine",
    "CouponQuote",
]
