"""Engine-wide constants and defaults.

Centralizes magic numbers so pricing and HTTP behaviour are tuned in one place.
"""
from decimal import Decimal

# ============== PRICING ==============
DEFAULT_SHIPPING_COST = Decimal("5.00")
DEFAULT_TAX_RATE = Decimal("0.08")
DEFAULT_CURRENCY = "USD"
MONEY_QUANT = Decimal("0.01")  # cents
MINOR_UNITS_PER_MAJOR = 100

# ============== CART ==============
MIN_QUANTITY = 1
DEFAULT_ADD_QUANTITY = 1

# ============== HTTP ==============
DEFAULT_HTTP_TIMEOUT = 15.0  # seconds
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409

# ============== QUERY KEYS ==============
CART_QUERY_KEY = "/api/cart"
FAVORITES_QUERY_KEY = "/api/favorites"
