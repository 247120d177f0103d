"""
Checkout pricing and payment dispatch.

Turns the cart snapshot into an OrderDraft, obtains the card payment-session
handle once per total, and drives one PaymentAttempt at a time through the
selected provider variant. The cart is only mutated on confirmed success.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from storefront.core.config import PricingConfig
from storefront.core.exceptions import (
    PaymentConfirmFailed,
    PaymentInitFailed,
    RemoteStoreError,
    StorefrontException,
)
from storefront.core.notifications import (
    LoggingNotifier,
    Notice,
    Notifier,
    NoticeType,
    failure,
)
from storefront.core.order_math import OrderDraft, build_order_draft
from storefront.core.sentry_integration import capture_exception
from storefront.domain.entities import CartLine
from storefront.domain.payment import PaymentAttempt, PaymentMethod, PaymentStatus
from storefront.integrations.payment_providers import (
    PaymentContext,
    PaymentProvider,
    PaymentResult,
)
from storefront.integrations.remote_store import RemoteStoreClient
from storefront.services.cart_service import CartService

logger = logging.getLogger(__name__)


class CheckoutView(str, Enum):
    EMPTY = "empty"
    PREPARING = "preparing"
    READY = "ready"
    HALTED = "halted"


@dataclass(frozen=True, slots=True)
class PaymentSession:
    """External payment-session handle sized to one total."""

    handle: str
    amount_minor: int


class CheckoutService:
    def __init__(
        self,
        cart: CartService,
        remote: RemoteStoreClient,
        providers: Mapping[PaymentMethod, PaymentProvider],
        *,
        pricing: PricingConfig | None = None,
        notifier: Notifier | None = None,
    ):
        self._cart = cart
        self._remote = remote
        self._providers = dict(providers)
        self._pricing = pricing or PricingConfig()
        self._notifier = notifier or LoggingNotifier()

        self._session: PaymentSession | None = None
        self._session_task: asyncio.Task | None = None
        self._session_task_amount: int | None = None
        self._init_error: PaymentInitFailed | None = None
        self._attempt: PaymentAttempt | None = None
        self._confirm_task: asyncio.Task | None = None

    # ===================== PRICING =====================

    def _draft_for(self, lines: list[CartLine]) -> OrderDraft | None:
        if not lines:
            return None
        return build_order_draft(
            lines,
            shipping_cost=self._pricing.shipping_cost,
            tax_rate=self._pricing.tax_rate,
            discount=self._cart.discount_amount,
        )

    def draft(self) -> OrderDraft | None:
        """OrderDraft for the current cart snapshot, or None for an empty cart."""
        return self._draft_for(self._cart.get_cart())

    async def load_draft(self) -> OrderDraft | None:
        return self._draft_for(await self._cart.load_cart())

    # ===================== STATE =====================

    @property
    def view(self) -> CheckoutView:
        if self._init_error is not None:
            return CheckoutView.HALTED
        if not self._cart.get_cart():
            return CheckoutView.EMPTY
        if self._session is None:
            return CheckoutView.PREPARING
        return CheckoutView.READY

    @property
    def attempt(self) -> PaymentAttempt | None:
        return self._attempt

    @property
    def session(self) -> PaymentSession | None:
        return self._session

    @property
    def init_error(self) -> PaymentInitFailed | None:
        return self._init_error

    @property
    def is_processing(self) -> bool:
        return self._attempt is not None and self._attempt.is_active

    @property
    def available_methods(self) -> list[PaymentMethod]:
        return [method for method in PaymentMethod if method in self._providers]

    # ===================== SESSION HANDLE =====================

    async def prepare(self) -> PaymentSession | None:
        """Obtain the payment-session handle for the current total, at most once per total."""
        if self._init_error is not None:
            return None
        draft = await self.load_draft()
        if draft is None:
            return None
        try:
            return await self._request_session(draft.total_minor_units)
        except PaymentInitFailed:
            return None

    async def _request_session(self, amount_minor: int) -> PaymentSession:
        if self._session is not None and self._session.amount_minor == amount_minor:
            return self._session

        task = self._session_task
        if task is None or task.done() or self._session_task_amount != amount_minor:
            task = asyncio.get_running_loop().create_task(self._create_session(amount_minor))
            self._session_task = task
            self._session_task_amount = amount_minor
        else:
            logger.debug("Joining in-flight payment session request for %s", amount_minor)
        return await asyncio.shield(task)

    async def _create_session(self, amount_minor: int) -> PaymentSession:
        if amount_minor <= 0:
            error = PaymentInitFailed("Order total must be positive to start a payment")
            self._halt(error)
            raise error
        try:
            handle = await self._remote.create_payment_intent(amount_minor)
        except RemoteStoreError as e:
            error = PaymentInitFailed(f"Payment could not be initialized: {e.message}")
            self._halt(error)
            raise error from e

        session = PaymentSession(handle=handle, amount_minor=amount_minor)
        if self._session_task_amount == amount_minor:
            self._session = session
        logger.info("Payment session ready for %s minor units", amount_minor)
        return session

    def _halt(self, error: PaymentInitFailed) -> None:
        self._init_error = error
        logger.error("Checkout halted: %s", error.reason)
        self._notifier.notify(failure(NoticeType.CHECKOUT_UNAVAILABLE, "Checkout unavailable", error.reason))

    # ===================== DISPATCH =====================

    async def submit(self, method: PaymentMethod | str, *, billing_name: str | None = None) -> PaymentAttempt | None:
        """Start a payment attempt with ``method``. Returns None when the cart is empty."""
        method = PaymentMethod.normalize(method)
        draft = await self.load_draft()
        if draft is None:
            logger.info("Checkout submit ignored: cart is empty")
            return None

        attempt = self._start_attempt(method)

        if self._init_error is not None:
            attempt.fail(self._init_error)
            return attempt

        provider = self._providers.get(method)
        if provider is None:
            return self._fail(attempt, PaymentConfirmFailed(f"{method.value} payments are not available"))

        attempt.transition(PaymentStatus.INITIALIZING)
        handle: str | None = None
        if provider.requires_session_handle:
            try:
                session = await self._request_session(draft.total_minor_units)
            except PaymentInitFailed as e:
                attempt.fail(e)
                return attempt
            if attempt is not self._attempt:
                return attempt
            handle = session.handle

        attempt.transition(PaymentStatus.AWAITING_CONFIRMATION)
        context = PaymentContext(
            draft=draft,
            currency=self._pricing.currency,
            session_handle=handle,
            billing_name=billing_name,
        )

        result = await self._confirm(provider, attempt, context)
        if result is None or attempt is not self._attempt:
            logger.info("Discarding result of abandoned payment attempt %s", attempt.id)
            return attempt

        if result.status == PaymentStatus.SUCCEEDED:
            cleared = await self._cart.clear()
            if not cleared.ok:
                logger.warning("Payment %s succeeded but cart clear failed: %s", attempt.id, cleared.reason)
            attempt.succeed(result.external_reference)
            # a confirmed payment session cannot be charged again
            self._drop_session()
            self._notifier.notify(
                Notice(
                    type=NoticeType.PAYMENT_SUCCEEDED,
                    title="Payment successful",
                    description="Your order has been placed",
                    data={"method": method.value, "reference": result.external_reference},
                )
            )
        elif result.status == PaymentStatus.AWAITING_CONFIRMATION:
            # completion is reported out of band (return URL)
            attempt.external_reference = result.external_reference
        else:
            self._fail(attempt, result.error or PaymentConfirmFailed("Payment failed"))
        return attempt

    async def _confirm(
        self, provider: PaymentProvider, attempt: PaymentAttempt, context: PaymentContext
    ) -> PaymentResult | None:
        confirm_task = asyncio.ensure_future(provider.confirm(attempt, context))
        self._confirm_task = confirm_task
        try:
            return await confirm_task
        except asyncio.CancelledError:
            if confirm_task.cancelled() and attempt is not self._attempt:
                return None
            confirm_task.cancel()
            raise
        except Exception as e:
            logger.exception("Payment provider %s raised for attempt %s", provider.method.value, attempt.id)
            capture_exception(e, payment={"method": provider.method.value, "attempt": attempt.id})
            return PaymentResult.failure(PaymentConfirmFailed(str(e) or "Payment failed"))
        finally:
            if self._confirm_task is confirm_task:
                self._confirm_task = None

    def _start_attempt(self, method: PaymentMethod) -> PaymentAttempt:
        previous = self._attempt
        if previous is not None and previous.status != PaymentStatus.SUCCEEDED:
            logger.debug("Replacing payment attempt %s (%s)", previous.id, previous.status.value)
            self._discard(previous)
        attempt = PaymentAttempt(method=method)
        self._attempt = attempt
        return attempt

    def _fail(self, attempt: PaymentAttempt, error: StorefrontException) -> PaymentAttempt:
        attempt.fail(error)
        logger.warning("Payment attempt %s (%s) failed: %s", attempt.id, attempt.method.value, attempt.reason)
        self._notifier.notify(failure(NoticeType.PAYMENT_FAILED, "Payment failed", attempt.reason or ""))
        return attempt

    def _discard(self, attempt: PaymentAttempt) -> None:
        if attempt.is_active:
            attempt.fail(PaymentConfirmFailed("Payment attempt was abandoned"))
        if self._attempt is attempt:
            self._attempt = None
        if self._confirm_task is not None and not self._confirm_task.done():
            self._confirm_task.cancel()

    def abandon(self) -> None:
        """Discard the active attempt when the user leaves checkout. The cart is left as is."""
        if self._attempt is None:
            return
        logger.info("Payment attempt %s abandoned", self._attempt.id)
        self._discard(self._attempt)

    def reset(self) -> None:
        """Start the checkout flow over: new handle, no attempt, halt cleared."""
        self.abandon()
        self._drop_session()
        self._init_error = None
        self._attempt = None

    def _drop_session(self) -> None:
        if self._session_task is not None and not self._session_task.done():
            self._session_task.cancel()
        self._session = None
        self._session_task = None
        self._session_task_amount = None
