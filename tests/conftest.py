"""Shared pytest fixtures: an in-memory remote store and wired engine services."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import pytest

from storefront.core.config import PricingConfig
from storefront.core.exceptions import RemoteStoreError
from storefront.core.notifications import Notice, Notifier, NoticeType
from storefront.core.query_cache import QueryCache
from storefront.domain.entities import CartLine, CouponQuote, Product, User
from storefront.services.cart_service import CartService
from storefront.services.favorites_service import FavoritesService
from storefront.services.session_gate import SessionGate


def make_product(product_id: int = 1, price: str = "25.00", name: str | None = None) -> Product:
    return Product(
        id=product_id,
        name=name or f"Product {product_id}",
        price=Decimal(price),
        image_url=f"https://img.example/{product_id}.png",
        stock=10,
        category="shoes",
        rating=4.5,
        reviews=12,
    )


@dataclass
class FakeRemoteStore:
    """In-memory stand-in for RemoteStoreClient with per-endpoint call log."""

    products: dict[int, Product] = field(default_factory=dict)
    lines: dict[int, dict[str, int]] = field(default_factory=dict)
    favorites: set[int] = field(default_factory=set)
    coupons: dict[str, Decimal] = field(default_factory=dict)
    calls: list[tuple[str, Any]] = field(default_factory=list)
    fail: dict[str, RemoteStoreError] = field(default_factory=dict)
    has_bulk_clear: bool = True
    payment_handle: str = "pi_test_secret"
    klarna_url: str = "https://klarna.example/pay/abc"
    closed: bool = False
    _next_line_id: int = 100

    @property
    def request_count(self) -> int:
        return len(self.calls)

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def add_products(self, *products: Product) -> None:
        for product in products:
            self.products[product.id] = product

    def _call(self, name: str, arg: Any = None) -> None:
        self.calls.append((name, arg))
        error = self.fail.get(name)
        if error is not None:
            raise error

    async def get_cart(self) -> list[CartLine]:
        self._call("get_cart")
        return [
            CartLine(
                id=line_id,
                product_id=row["product_id"],
                quantity=row["quantity"],
                product=self.products[row["product_id"]],
            )
            for line_id, row in self.lines.items()
        ]

    async def add_cart_item(self, product_id: int, quantity: int) -> None:
        self._call("add_cart_item", (product_id, quantity))
        for row in self.lines.values():
            if row["product_id"] == product_id:
                row["quantity"] += quantity
                return
        self._next_line_id += 1
        self.lines[self._next_line_id] = {"product_id": product_id, "quantity": quantity}

    async def update_cart_item(self, line_id: int, quantity: int) -> None:
        self._call("update_cart_item", (line_id, quantity))
        if quantity < 1:
            raise RemoteStoreError("Quantity must be at least 1", status=400)
        if line_id not in self.lines:
            raise RemoteStoreError("Cart item not found", status=404)
        self.lines[line_id]["quantity"] = quantity

    async def remove_cart_item(self, line_id: int) -> None:
        self._call("remove_cart_item", line_id)
        if self.lines.pop(line_id, None) is None:
            raise RemoteStoreError("Cart item not found", status=404)

    async def clear_cart(self) -> None:
        self._call("clear_cart")
        if not self.has_bulk_clear:
            raise RemoteStoreError("Not Found", status=404)
        self.lines.clear()

    async def validate_coupon(self, code: str, cart_total: Decimal) -> CouponQuote:
        self._call("validate_coupon", (code, cart_total))
        if code not in self.coupons:
            raise RemoteStoreError("Invalid coupon code", status=404)
        return CouponQuote(code=code, valid=True, discount_amount=self.coupons[code])

    async def get_favorites(self) -> list[Product]:
        self._call("get_favorites")
        return [self.products[product_id] for product_id in sorted(self.favorites)]

    async def add_favorite(self, product_id: int) -> None:
        self._call("add_favorite", product_id)
        if product_id in self.favorites:
            raise RemoteStoreError("Favorite already exists", status=409)
        self.favorites.add(product_id)

    async def remove_favorite(self, product_id: int) -> None:
        self._call("remove_favorite", product_id)
        if product_id not in self.favorites:
            raise RemoteStoreError("Favorite not found", status=404)
        self.favorites.discard(product_id)

    async def check_favorite(self, product_id: int) -> bool:
        self._call("check_favorite", product_id)
        return product_id in self.favorites

    async def create_payment_intent(self, amount_minor: int) -> str:
        self._call("create_payment_intent", amount_minor)
        return self.payment_handle

    async def create_klarna_session(self, amount: Decimal, currency: str) -> str:
        self._call("create_klarna_session", (amount, currency))
        return self.klarna_url

    async def close(self) -> None:
        self.closed = True


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)

    def types(self) -> list[NoticeType]:
        return [notice.type for notice in self.notices]


@pytest.fixture()
def user() -> User:
    return User(id=7, username="ayse", email="ayse@example.com")


@pytest.fixture()
def product_a() -> Product:
    return make_product(1, "25.00", "Running Shoe")


@pytest.fixture()
def product_b() -> Product:
    return make_product(2, "10.50", "Sock Pack")


@pytest.fixture()
def remote(product_a: Product, product_b: Product) -> FakeRemoteStore:
    store = FakeRemoteStore()
    store.add_products(product_a, product_b)
    return store


@pytest.fixture()
def session(user: User) -> SessionGate:
    return SessionGate(user)


@pytest.fixture()
def anonymous_session() -> SessionGate:
    return SessionGate()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def cache() -> QueryCache:
    return QueryCache()


@pytest.fixture()
def cart(session: SessionGate, remote: FakeRemoteStore, cache: QueryCache, notifier: RecordingNotifier) -> CartService:
    return CartService(session, remote, cache=cache, notifier=notifier)


@pytest.fixture()
def favorites(
    session: SessionGate, remote: FakeRemoteStore, cache: QueryCache, notifier: RecordingNotifier
) -> FavoritesService:
    return FavoritesService(session, remote, cache=cache, notifier=notifier)


@pytest.fixture()
def pricing() -> PricingConfig:
    return PricingConfig(shipping_cost=Decimal("5.00"), tax_rate=Decimal("0.08"), currency="USD")
