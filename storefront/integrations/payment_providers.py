"""
Payment provider variants.

Supports:
- Card (processor confirmation against a payment-session handle)
- PayPal (wallet button callbacks; nothing is polled)
- Klarna (redirect hand-off; completion arrives out of band on the return URL)

Every variant implements the same ``confirm(attempt, context) -> PaymentResult``
contract so the checkout dispatcher never branches on the method itself.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

from storefront.core.exceptions import (
    PaymentConfirmFailed,
    PaymentInitFailed,
    RemoteStoreError,
    StorefrontException,
)
from storefront.core.order_math import OrderDraft
from storefront.domain.payment import PaymentAttempt, PaymentMethod, PaymentStatus
from storefront.integrations.remote_store import RemoteStoreClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentContext:
    """Everything a provider needs to confirm one attempt."""

    draft: OrderDraft
    currency: str
    session_handle: str | None = None
    billing_name: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentResult:
    status: PaymentStatus
    external_reference: str | None = None
    error: StorefrontException | None = None

    @classmethod
    def success(cls, external_reference: str | None = None) -> PaymentResult:
        return cls(PaymentStatus.SUCCEEDED, external_reference)

    @classmethod
    def failure(cls, error: StorefrontException) -> PaymentResult:
        return cls(PaymentStatus.FAILED, error=error)

    @classmethod
    def handed_off(cls, external_reference: str) -> PaymentResult:
        return cls(PaymentStatus.AWAITING_CONFIRMATION, external_reference)

    @property
    def ok(self) -> bool:
        return self.status == PaymentStatus.SUCCEEDED


# ===================== COLLABORATORS =====================


class CardProcessor(ABC):
    """Native card SDK boundary."""

    @abstractmethod
    async def confirm_card_payment(self, client_secret: str, *, billing_name: str) -> dict[str, Any]:
        """Return ``{"status": ..., "id": ...}`` or ``{"error": {"message": ...}}``."""


class WalletButton(ABC):
    """PayPal button boundary. The button reports the outcome through callbacks."""

    @abstractmethod
    def render(
        self,
        *,
        amount: str,
        currency: str,
        on_success: Callable[[str], None],
        on_error: Callable[[str], None],
    ) -> None:
        pass


class Navigator(ABC):
    """Hands navigation to an external URL (browser location or in-app web view)."""

    @abstractmethod
    def open(self, url: str) -> None:
        pass


# ===================== PROVIDERS =====================


class PaymentProvider(ABC):
    method: ClassVar[PaymentMethod]
    requires_session_handle: ClassVar[bool] = False

    @abstractmethod
    async def confirm(self, attempt: PaymentAttempt, context: PaymentContext) -> PaymentResult:
        pass


class CardPaymentProvider(PaymentProvider):
    method = PaymentMethod.CARD
    requires_session_handle = True

    def __init__(self, processor: CardProcessor):
        self._processor = processor

    async def confirm(self, attempt: PaymentAttempt, context: PaymentContext) -> PaymentResult:
        if not context.session_handle:
            return PaymentResult.failure(PaymentInitFailed("Payment system is not ready"))
        if not context.billing_name or not context.billing_name.strip():
            return PaymentResult.failure(PaymentConfirmFailed("Billing name is required"))

        try:
            response = await self._processor.confirm_card_payment(
                context.session_handle, billing_name=context.billing_name.strip()
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Card confirmation raised for attempt %s: %s", attempt.id, e)
            return PaymentResult.failure(PaymentConfirmFailed(str(e) or "Card payment failed"))

        error = response.get("error") if isinstance(response, dict) else None
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            return PaymentResult.failure(PaymentConfirmFailed(message or "A payment error occurred"))

        status = response.get("status") if isinstance(response, dict) else None
        if status == "succeeded":
            return PaymentResult.success(response.get("id"))
        return PaymentResult.failure(
            PaymentConfirmFailed(f"Payment ended in an unexpected state: {status}")
        )


class PayPalPaymentProvider(PaymentProvider):
    method = PaymentMethod.PAYPAL

    def __init__(self, button: WalletButton):
        self._button = button

    async def confirm(self, attempt: PaymentAttempt, context: PaymentContext) -> PaymentResult:
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[PaymentResult] = loop.create_future()

        def _settle(result: PaymentResult) -> None:
            if not outcome.done():
                outcome.set_result(result)

        def on_success(order_id: str) -> None:
            _settle(PaymentResult.success(order_id or None))

        def on_error(message: str) -> None:
            _settle(PaymentResult.failure(PaymentConfirmFailed(message or "PayPal payment failed")))

        try:
            self._button.render(
                amount=str(context.draft.total),
                currency=context.currency,
                on_success=on_success,
                on_error=on_error,
            )
        except Exception as e:
            logger.warning("PayPal button failed to render for attempt %s: %s", attempt.id, e)
            return PaymentResult.failure(PaymentConfirmFailed(str(e) or "PayPal is unavailable"))

        return await outcome


class KlarnaPaymentProvider(PaymentProvider):
    method = PaymentMethod.KLARNA

    def __init__(self, remote: RemoteStoreClient, navigator: Navigator):
        self._remote = remote
        self._navigator = navigator

    async def confirm(self, attempt: PaymentAttempt, context: PaymentContext) -> PaymentResult:
        try:
            url = await self._remote.create_klarna_session(context.draft.total, context.currency)
        except RemoteStoreError as e:
            logger.warning("Klarna session failed for attempt %s: %s", attempt.id, e.message)
            return PaymentResult.failure(PaymentInitFailed(f"Could not start Klarna payment: {e.message}"))

        self._navigator.open(url)
        logger.info("Attempt %s handed off to Klarna", attempt.id)
        return PaymentResult.handed_off(url)
