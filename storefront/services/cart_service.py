"""
Cart engine - the signed-in user's cart kept consistent with the remote store.

Writes go straight to the remote store and are followed by an invalidation of
the cached cart; the next read refetches. Local state is never patched
optimistically, so the snapshot always mirrors a confirmed remote response.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum

from storefront.core.constants import CART_QUERY_KEY, DEFAULT_ADD_QUANTITY, MIN_QUANTITY
from storefront.core.exceptions import (
    AuthRequired,
    FetchFailed,
    MutationFailed,
    RemoteStoreError,
)
from storefront.core.keyed_lock import KeyedLock
from storefront.core.notifications import (
    LoggingNotifier,
    Notice,
    Notifier,
    NoticeType,
    failure,
    sign_in_required,
)
from storefront.core.order_math import calc_items_total, calc_quantity, to_money
from storefront.core.query_cache import QueryCache
from storefront.domain.entities import CartLine, CouponQuote, Product
from storefront.integrations.remote_store import RemoteStoreClient
from storefront.services.results import MutationResult
from storefront.services.session_gate import SessionGate

logger = logging.getLogger(__name__)


class CartState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class CartService:
    """Owns the cached view of the current user's cart."""

    def __init__(
        self,
        session: SessionGate,
        remote: RemoteStoreClient,
        *,
        cache: QueryCache | None = None,
        notifier: Notifier | None = None,
        bulk_clear: bool = False,
    ):
        self._session = session
        self._remote = remote
        self._cache = cache or QueryCache()
        self._notifier = notifier or LoggingNotifier()
        self._bulk_clear = bulk_clear
        self._line_locks = KeyedLock("cart-line")
        self._coupon: CouponQuote | None = None
        self._coupon_subtotal: Decimal | None = None

    # ===================== READS =====================

    def _key(self) -> str | None:
        user = self._session.current_user()
        if user is None:
            return None
        return f"{CART_QUERY_KEY}:{user.id}"

    @property
    def state(self) -> CartState:
        key = self._key()
        if key is None:
            return CartState.UNAUTHENTICATED
        return CartState(self._cache.entry(key).status.value)

    @property
    def is_loading(self) -> bool:
        return self.state == CartState.LOADING

    @property
    def last_error(self) -> FetchFailed | None:
        key = self._key()
        if key is None:
            return None
        return self._cache.entry(key).error

    def get_cart(self) -> list[CartLine]:
        """Current snapshot; schedules a background refetch when the view is stale."""
        key = self._key()
        if key is None:
            return []
        if self._cache.is_stale(key):
            self._cache.schedule_fetch(key, self._fetch_lines)
        return list(self._cache.snapshot(key, []))

    async def load_cart(self) -> list[CartLine]:
        """Snapshot that reflects every acknowledged write. Fetch failures keep the old view."""
        key = self._key()
        if key is None:
            return []
        try:
            await self._cache.fetch(key, self._fetch_lines)
        except FetchFailed as e:
            logger.warning("Cart refresh failed, keeping last snapshot: %s", e.reason)
        return list(self._cache.snapshot(key, []))

    def _snapshot(self) -> list[CartLine]:
        key = self._key()
        if key is None:
            return []
        return self._cache.snapshot(key, [])

    @property
    def subtotal(self) -> Decimal:
        return calc_items_total(self._snapshot())

    @property
    def item_count(self) -> int:
        return calc_quantity(self._snapshot())

    @property
    def coupon_code(self) -> str | None:
        return self._coupon.code if self._coupon else None

    @property
    def discount_amount(self) -> Decimal:
        if not self._coupon:
            return to_money(0)
        return min(to_money(self._coupon.discount_amount), self.subtotal)

    @property
    def total(self) -> Decimal:
        return max(to_money(0), self.subtotal - self.discount_amount)

    async def _fetch_lines(self) -> list[CartLine]:
        lines = await self._remote.get_cart()
        await self._revalidate_coupon(lines)
        return lines

    # ===================== WRITES =====================

    def _guard(self, action: str) -> MutationResult | None:
        try:
            self._session.require_auth(action)
        except AuthRequired as e:
            self._notifier.notify(sign_in_required(action))
            return MutationResult.failure(e)
        return None

    def _invalidate(self) -> None:
        key = self._key()
        if key is None:
            return
        self._cache.invalidate(key)
        self._cache.schedule_fetch(key, self._fetch_lines)

    def _mutation_failed(self, title: str, error: RemoteStoreError) -> MutationResult:
        self._notifier.notify(failure(NoticeType.CART_UPDATE_FAILED, title, error.message))
        return MutationResult.failure(MutationFailed(error.message))

    async def add_to_cart(self, product: Product, quantity: int = DEFAULT_ADD_QUANTITY) -> MutationResult:
        """Create-or-merge the line for ``product``; the store sums quantities on its side."""
        blocked = self._guard("add items to your cart")
        if blocked:
            return blocked
        if not _is_positive_int(quantity):
            return MutationResult.failure(MutationFailed(f"Invalid quantity: {quantity!r}"))

        try:
            await self._remote.add_cart_item(product.id, quantity)
        except RemoteStoreError as e:
            return self._mutation_failed("Failed to add to cart", e)

        self._invalidate()
        self._notifier.notify(
            Notice(
                type=NoticeType.CART_ITEM_ADDED,
                title="Added to cart",
                description=f"{product.name} has been added to your cart",
            )
        )
        return MutationResult.success()

    async def update_quantity(self, line_id: int, quantity: int) -> MutationResult:
        blocked = self._guard("update your cart")
        if blocked:
            return blocked
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            return MutationResult.failure(MutationFailed(f"Invalid quantity: {quantity!r}"))
        if quantity <= 0:
            return await self.remove_line(line_id)

        async with self._line_locks.hold(line_id):
            # the session may have ended while waiting for the lock
            blocked = self._guard("update your cart")
            if blocked:
                return blocked
            try:
                await self._remote.update_cart_item(line_id, quantity)
            except RemoteStoreError as e:
                return self._mutation_failed("Failed to update cart", e)

        self._invalidate()
        return MutationResult.success()

    async def remove_line(self, line_id: int) -> MutationResult:
        """Remove a line. Removing an already-absent line succeeds."""
        blocked = self._guard("update your cart")
        if blocked:
            return blocked

        async with self._line_locks.hold(line_id):
            blocked = self._guard("update your cart")
            if blocked:
                return blocked
            try:
                await self._remote.remove_cart_item(line_id)
            except RemoteStoreError as e:
                if not e.is_not_found:
                    return self._mutation_failed("Failed to remove item", e)
                logger.debug("Cart line %s already absent", line_id)

        self._invalidate()
        self._notifier.notify(
            Notice(
                type=NoticeType.CART_ITEM_REMOVED,
                title="Removed from cart",
                description="Item has been removed from your cart",
            )
        )
        return MutationResult.success()

    async def clear(self) -> MutationResult:
        """Remove every line. A refetch afterwards is the source of truth, even on partial failure."""
        blocked = self._guard("clear your cart")
        if blocked:
            return blocked

        error: MutationFailed | None = None
        if self._bulk_clear:
            try:
                await self._remote.clear_cart()
            except RemoteStoreError as e:
                logger.warning("Bulk cart clear failed (%s); removing lines one by one", e.message)
                error = await self._clear_line_by_line()
        else:
            error = await self._clear_line_by_line()

        key = self._key()
        if key is not None:
            self._cache.invalidate(key)
            await self.load_cart()

        if error:
            self._notifier.notify(failure(NoticeType.CART_UPDATE_FAILED, "Failed to clear cart", error.reason))
            return MutationResult.failure(error)

        self._drop_coupon()
        self._notifier.notify(
            Notice(
                type=NoticeType.CART_CLEARED,
                title="Cart cleared",
                description="All items have been removed from your cart",
            )
        )
        return MutationResult.success()

    async def _clear_line_by_line(self) -> MutationFailed | None:
        lines = await self.load_cart()
        failed: list[int] = []
        for line in lines:
            async with self._line_locks.hold(line.id):
                if self._key() is None:
                    return MutationFailed("Session ended while clearing the cart")
                try:
                    await self._remote.remove_cart_item(line.id)
                except RemoteStoreError as e:
                    if e.is_not_found:
                        continue
                    logger.warning("Could not remove cart line %s: %s", line.id, e.message)
                    failed.append(line.id)
        if failed:
            return MutationFailed(f"{len(failed)} of {len(lines)} items could not be removed")
        return None

    # ===================== COUPONS =====================

    async def apply_coupon(self, code: str) -> MutationResult:
        blocked = self._guard("apply a coupon")
        if blocked:
            return blocked
        code = (code or "").strip()
        if not code:
            return MutationResult.failure(MutationFailed("Coupon code is required"))

        subtotal = self.subtotal
        try:
            quote = await self._remote.validate_coupon(code, subtotal)
        except RemoteStoreError as e:
            self._notifier.notify(failure(NoticeType.COUPON_REJECTED, "Invalid coupon", e.message))
            return MutationResult.failure(MutationFailed(e.message))
        if not quote.valid:
            reason = quote.message or "Invalid coupon"
            self._notifier.notify(failure(NoticeType.COUPON_REJECTED, "Invalid coupon", reason))
            return MutationResult.failure(MutationFailed(reason))

        self._coupon = quote
        self._coupon_subtotal = subtotal
        self._notifier.notify(
            Notice(
                type=NoticeType.COUPON_APPLIED,
                title="Coupon applied",
                description=f"Coupon {code} applied! Saved {to_money(quote.discount_amount)}",
            )
        )
        return MutationResult.success(quote)

    def remove_coupon(self) -> None:
        self._drop_coupon()

    def _drop_coupon(self) -> None:
        self._coupon = None
        self._coupon_subtotal = None

    async def _revalidate_coupon(self, lines: list[CartLine]) -> None:
        if not self._coupon:
            return
        if not lines:
            self._drop_coupon()
            return
        subtotal = calc_items_total(lines)
        if subtotal == self._coupon_subtotal:
            return
        code = self._coupon.code
        try:
            quote = await self._remote.validate_coupon(code, subtotal)
        except RemoteStoreError as e:
            logger.info("Coupon %s no longer applies: %s", code, e.message)
            self._drop_coupon()
            return
        if not quote.valid:
            self._drop_coupon()
            return
        self._coupon = quote
        self._coupon_subtotal = subtotal

    # ===================== LIFECYCLE =====================

    def reset(self) -> None:
        """Forget everything cached; called at session boundaries."""
        self._drop_coupon()


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= MIN_QUANTITY
