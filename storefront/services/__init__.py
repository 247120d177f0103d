"""Engine services: session gate, cart, favorites and checkout."""

from .cart_service import CartService, CartState
from .checkout_service import CheckoutService, CheckoutView, PaymentSession
from .favorites_service import FavoritesService
from .results import MutationResult
from .session_gate import SessionGate

__all__ = [
    "CartService",
    "CartState",
    "CheckoutService",
    "CheckoutView",
    "FavoritesService",
    "MutationResult",
    "PaymentSession",
    "SessionGate",
]
