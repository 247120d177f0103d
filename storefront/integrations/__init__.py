"""Integrations package - remote store client and payment providers."""

from storefront.integrations.payment_providers import (
    CardPaymentProvider,
    CardProcessor,
    KlarnaPaymentProvider,
    Navigator,
    PaymentContext,
    PaymentProvider,
    PaymentResult,
    PayPalPaymentProvider,
    WalletButton,
)
from storefront.integrations.remote_store import RemoteStoreClient

__all__ = [
    "CardPaymentProvider",
    "CardProcessor",
    "KlarnaPaymentProvider",
    "Navigator",
    "PaymentContext",
    "PaymentProvider",
    "PaymentResult",
    "PayPalPaymentProvider",
    "RemoteStoreClient",
    "WalletButton",
]
