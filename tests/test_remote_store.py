"""RemoteStoreClient against a throwaway aiohttp storefront API."""
from __future__ import annotations

from decimal import Decimal

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from storefront.core.config import RemoteStoreConfig
from storefront.core.exceptions import RemoteStoreError
from storefront.integrations.remote_store import RemoteStoreClient

PRODUCT = {
    "id": 1,
    "name": "Running Shoe",
    "price": "25.00",
    "imageUrl": "https://img.example/1.png",
    "stock": 4,
    "category": "shoes",
}


def _build_app(received: list[tuple[str, str, object]]) -> web.Application:
    async def record(request: web.Request) -> object:
        body = await request.json() if request.can_read_body else None
        received.append((request.method, request.path, body))
        return body

    async def get_cart(request: web.Request) -> web.Response:
        await record(request)
        return web.json_response([{"id": 11, "productId": 1, "quantity": 2, "product": PRODUCT}])

    async def add_cart(request: web.Request) -> web.Response:
        await record(request)
        return web.json_response({"id": 11}, status=201)

    async def update_cart(request: web.Request) -> web.Response:
        body = await record(request)
        if body["quantity"] < 1:
            return web.json_response({"message": "Quantity must be at least 1"}, status=400)
        return web.json_response({"id": int(request.match_info["line_id"])})

    async def delete_cart_line(request: web.Request) -> web.Response:
        await record(request)
        if request.match_info["line_id"] == "404":
            return web.json_response({"message": "Cart item not found"}, status=404)
        return web.Response(status=204)

    async def validate_coupon(request: web.Request) -> web.Response:
        body = await record(request)
        if body["code"] != "SAVE10":
            return web.json_response({"message": "Invalid coupon code"}, status=404)
        return web.json_response({"valid": True, "discountAmount": 10, "message": "ok"})

    async def get_favorites(request: web.Request) -> web.Response:
        await record(request)
        return web.json_response([PRODUCT])

    async def add_favorite(request: web.Request) -> web.Response:
        await record(request)
        return web.json_response({"message": "Favorite already exists"}, status=409)

    async def check_favorite(request: web.Request) -> web.Response:
        await record(request)
        return web.json_response({"isFavorite": request.match_info["product_id"] == "1"})

    async def payment_intent(request: web.Request) -> web.Response:
        body = await record(request)
        return web.json_response({"clientSecret": f"pi_{body['amount']}_secret"})

    async def klarna(request: web.Request) -> web.Response:
        await record(request)
        return web.json_response({"redirect_url": "https://klarna.example/hpp/1"})

    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=500, text="upstream exploded")

    app = web.Application()
    app.router.add_get("/api/cart", get_cart)
    app.router.add_post("/api/cart", add_cart)
    app.router.add_delete("/api/cart", broken)
    app.router.add_post("/api/cart/validate-coupon", validate_coupon)
    app.router.add_put("/api/cart/{line_id}", update_cart)
    app.router.add_delete("/api/cart/{line_id}", delete_cart_line)
    app.router.add_get("/api/favorites", get_favorites)
    app.router.add_post("/api/favorites", add_favorite)
    app.router.add_get("/api/favorites/check/{product_id}", check_favorite)
    app.router.add_post("/api/payment-intent", payment_intent)
    app.router.add_post("/api/klarna/create-session", klarna)
    return app


@pytest.fixture()
def received() -> list[tuple[str, str, object]]:
    return []


@pytest.fixture()
async def client(received):
    server = TestServer(_build_app(received))
    await server.start_server()
    store = RemoteStoreClient(RemoteStoreConfig(base_url=str(server.make_url("/api")), token="tkn"))
    try:
        yield store
    finally:
        await store.close()
        await server.close()


@pytest.mark.asyncio
async def test_get_cart_parses_camel_case_lines(client):
    lines = await client.get_cart()

    assert len(lines) == 1
    assert lines[0].product_id == 1
    assert lines[0].product.price == Decimal("25.00")
    assert lines[0].product.image_url == "https://img.example/1.png"
    assert lines[0].line_total == Decimal("50.00")


@pytest.mark.asyncio
async def test_cart_writes_send_expected_payloads(client, received):
    await client.add_cart_item(1, 2)
    await client.update_cart_item(11, 3)
    await client.remove_cart_item(11)

    assert received == [
        ("POST", "/api/cart", {"productId": 1, "quantity": 2}),
        ("PUT", "/api/cart/11", {"quantity": 3}),
        ("DELETE", "/api/cart/11", None),
    ]
    assert client.request_count == 3


@pytest.mark.asyncio
async def test_error_status_carries_server_message(client):
    with pytest.raises(RemoteStoreError) as exc_info:
        await client.remove_cart_item(404)

    assert exc_info.value.is_not_found
    assert exc_info.value.message == "Cart item not found"

    with pytest.raises(RemoteStoreError) as exc_info:
        await client.update_cart_item(11, 0)
    assert exc_info.value.status == 400


@pytest.mark.asyncio
async def test_error_without_json_body_uses_reason(client):
    with pytest.raises(RemoteStoreError) as exc_info:
        await client.clear_cart()

    assert exc_info.value.status == 500


@pytest.mark.asyncio
async def test_validate_coupon(client, received):
    quote = await client.validate_coupon("SAVE10", Decimal("50.00"))

    assert quote.code == "SAVE10"
    assert quote.discount_amount == Decimal("10")
    assert received[-1][2] == {"code": "SAVE10", "cartTotal": 50.0}

    with pytest.raises(RemoteStoreError):
        await client.validate_coupon("NOPE", Decimal("50.00"))


@pytest.mark.asyncio
async def test_favorites_endpoints(client):
    favorites = await client.get_favorites()

    assert [product.id for product in favorites] == [1]
    assert await client.check_favorite(1) is True
    assert await client.check_favorite(2) is False
    with pytest.raises(RemoteStoreError) as exc_info:
        await client.add_favorite(1)
    assert exc_info.value.is_conflict


@pytest.mark.asyncio
async def test_payment_endpoints(client, received):
    secret = await client.create_payment_intent(5900)
    url = await client.create_klarna_session(Decimal("59.00"), "USD")

    assert secret == "pi_5900_secret"
    assert url == "https://klarna.example/hpp/1"
    assert received[-2][2] == {"amount": 5900}
    assert received[-1][2] == {"amount": 59.0, "currency": "USD"}


@pytest.mark.asyncio
async def test_unreachable_store_raises_remote_error():
    store = RemoteStoreClient(RemoteStoreConfig(base_url="http://127.0.0.1:9/api", timeout=2))
    try:
        with pytest.raises(RemoteStoreError):
            await store.get_cart()
    finally:
        await store.close()
