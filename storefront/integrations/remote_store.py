"""
Remote store client - thin async request layer over the storefront REST API.

Endpoints used by the engine:
- GET/POST /cart, PUT/DELETE /cart/{lineId}, DELETE /cart, POST /cart/validate-coupon
- GET/POST /favorites, DELETE /favorites/{productId}, GET /favorites/check/{productId}
- POST /payment-intent, POST /klarna/create-session

Every non-2xx response or transport error is raised as RemoteStoreError.
"""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any

import aiohttp
from pydantic import TypeAdapter, ValidationError

from storefront.core.config import RemoteStoreConfig
from storefront.core.exceptions import RemoteStoreError
from storefront.domain.entities import CartLine, CouponQuote, Product

logger = logging.getLogger(__name__)

_cart_adapter = TypeAdapter(list[CartLine])
_products_adapter = TypeAdapter(list[Product])


class RemoteStoreClient:
    """
    HTTP client for the storefront backend.

    Example:
    ```python
    client = RemoteStoreClient(RemoteStoreConfig(base_url="http://localhost:5002/api"))
    lines = await client.get_cart()
    await client.close()
    ```
    """

    def __init__(
        self,
        config: RemoteStoreConfig,
        session: aiohttp.ClientSession | None = None,
    ):
        self.config = config
        self._session = session
        self._owns_session = session is None
        self.request_count = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session (cookie jar keeps the login cookie)."""
        if self._session is None or self._session.closed:
            headers = {"Accept": "application/json"}
            if self.config.token:
                headers["Authorization"] = f"Bearer {self.config.token}"
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(headers=headers, timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, *, payload: dict[str, Any] | None = None) -> Any:
        session = await self._get_session()
        self.request_count += 1
        url = self._url(path)
        try:
            async with session.request(method, url, json=payload) as response:
                if response.status == 204:
                    return None
                if response.status >= 400:
                    message = await self._error_message(response)
                    logger.warning("%s %s failed: %s %s", method, path, response.status, message)
                    raise RemoteStoreError(message, status=response.status)
                if response.content_length == 0:
                    return None
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            logger.warning("%s %s unreachable: %s", method, path, e)
            raise RemoteStoreError(f"Remote store unreachable: {e}") from e
        except asyncio.TimeoutError as e:
            logger.warning("%s %s timed out after %ss", method, path, self.config.timeout)
            raise RemoteStoreError("Remote store request timed out") from e

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason or f"HTTP {response.status}"

    @staticmethod
    def _parse(adapter_or_model: Any, data: Any, what: str) -> Any:
        try:
            if isinstance(adapter_or_model, TypeAdapter):
                return adapter_or_model.validate_python(data or [])
            return adapter_or_model.model_validate(data)
        except ValidationError as e:
            logger.error("Malformed %s payload from remote store: %s", what, e)
            raise RemoteStoreError(f"Malformed {what} response") from e

    # ===================== CART =====================

    async def get_cart(self) -> list[CartLine]:
        data = await self._request("GET", "/cart")
        return self._parse(_cart_adapter, data, "cart")

    async def add_cart_item(self, product_id: int, quantity: int) -> None:
        """Create-or-merge keyed on (user, product); the store sums quantities."""
        await self._request("POST", "/cart", payload={"productId": product_id, "quantity": quantity})

    async def update_cart_item(self, line_id: int, quantity: int) -> None:
        await self._request("PUT", f"/cart/{line_id}", payload={"quantity": quantity})

    async def remove_cart_item(self, line_id: int) -> None:
        await self._request("DELETE", f"/cart/{line_id}")

    async def clear_cart(self) -> None:
        await self._request("DELETE", "/cart")

    async def validate_coupon(self, code: str, cart_total: Decimal) -> CouponQuote:
        data = await self._request(
            "POST",
            "/cart/validate-coupon",
            payload={"code": code, "cartTotal": float(cart_total)},
        )
        quote = self._parse(CouponQuote, data or {}, "coupon")
        return quote.model_copy(update={"code": code})

    # ===================== FAVORITES =====================

    async def get_favorites(self) -> list[Product]:
        data = await self._request("GET", "/favorites")
        return self._parse(_products_adapter, data, "favorites")

    async def add_favorite(self, product_id: int) -> None:
        await self._request("POST", "/favorites", payload={"productId": product_id})

    async def remove_favorite(self, product_id: int) -> None:
        await self._request("DELETE", f"/favorites/{product_id}")

    async def check_favorite(self, product_id: int) -> bool:
        data = await self._request("GET", f"/favorites/check/{product_id}")
        return bool(isinstance(data, dict) and data.get("isFavorite"))

    # ===================== PAYMENTS =====================

    async def create_payment_intent(self, amount_minor: int) -> str:
        """Create a card payment session sized to ``amount_minor`` (cents). Returns the client secret."""
        data = await self._request("POST", "/payment-intent", payload={"amount": amount_minor})
        secret = data.get("clientSecret") if isinstance(data, dict) else None
        if not secret:
            raise RemoteStoreError("Payment intent response has no clientSecret")
        return str(secret)

    async def create_klarna_session(self, amount: Decimal, currency: str) -> str:
        """Create a Klarna checkout session. Returns the redirect URL."""
        data = await self._request(
            "POST",
            "/klarna/create-session",
            payload={"amount": float(amount), "currency": currency},
        )
        url = None
        if isinstance(data, dict):
            url = data.get("redirect_url") or data.get("redirectUrl")
        if not url:
            raise RemoteStoreError("Klarna session response has no redirect_url")
        return str(url)
