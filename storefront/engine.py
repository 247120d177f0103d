"""
Engine context - one explicitly constructed instance per client process.

Example:
```python
settings = load_settings()
async with CommerceEngine.create(settings, card_processor=stripe_bridge) as engine:
    engine.session.sign_in(user)
    await engine.cart.add_to_cart(product)
    draft = await engine.checkout.load_draft()
```
"""
from __future__ import annotations

import logging

from storefront.core.config import Settings
from storefront.core.notifications import LoggingNotifier, Notifier
from storefront.core.query_cache import QueryCache
from storefront.core.sentry_integration import init_sentry
from storefront.domain.entities import User
from storefront.domain.payment import PaymentMethod
from storefront.integrations.payment_providers import (
    CardPaymentProvider,
    CardProcessor,
    KlarnaPaymentProvider,
    Navigator,
    PaymentProvider,
    PayPalPaymentProvider,
    WalletButton,
)
from storefront.integrations.remote_store import RemoteStoreClient
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService
from storefront.services.favorites_service import FavoritesService
from storefront.services.session_gate import SessionGate

logger = logging.getLogger(__name__)


class CommerceEngine:
    """Cart, favorites and checkout bound to one session gate and one remote store."""

    def __init__(
        self,
        session: SessionGate,
        remote: RemoteStoreClient,
        settings: Settings,
        *,
        providers: dict[PaymentMethod, PaymentProvider] | None = None,
        notifier: Notifier | None = None,
    ):
        self.session = session
        self.remote = remote
        self.settings = settings
        self.notifier = notifier or LoggingNotifier()
        self.cache = QueryCache()

        self.cart = CartService(
            session,
            remote,
            cache=self.cache,
            notifier=self.notifier,
            bulk_clear=settings.remote.bulk_clear,
        )
        self.favorites = FavoritesService(session, remote, cache=self.cache, notifier=self.notifier)
        self.checkout = CheckoutService(
            self.cart,
            remote,
            providers or {},
            pricing=settings.pricing,
            notifier=self.notifier,
        )

        session.subscribe(self._on_session_changed)

    @classmethod
    def create(
        cls,
        settings: Settings,
        *,
        session: SessionGate | None = None,
        card_processor: CardProcessor | None = None,
        wallet_button: WalletButton | None = None,
        navigator: Navigator | None = None,
        notifier: Notifier | None = None,
    ) -> CommerceEngine:
        """Build an engine with the providers whose collaborators were supplied."""
        init_sentry(settings.sentry_dsn, environment=settings.environment)

        remote = RemoteStoreClient(settings.remote)
        providers: dict[PaymentMethod, PaymentProvider] = {}
        if card_processor is not None:
            providers[PaymentMethod.CARD] = CardPaymentProvider(card_processor)
        if wallet_button is not None:
            providers[PaymentMethod.PAYPAL] = PayPalPaymentProvider(wallet_button)
        if navigator is not None:
            providers[PaymentMethod.KLARNA] = KlarnaPaymentProvider(remote, navigator)

        logger.info(
            "Commerce engine created (payment methods: %s)",
            ", ".join(method.value for method in providers) or "none",
        )
        return cls(
            session or SessionGate(),
            remote,
            settings,
            providers=providers,
            notifier=notifier,
        )

    def _on_session_changed(self, previous: User | None, current: User | None) -> None:
        dropped = self.cache.clear()
        self.cart.reset()
        self.checkout.reset()
        logger.info(
            "Session changed (%s -> %s); dropped %s cached queries",
            previous.id if previous else None,
            current.id if current else None,
            dropped,
        )

    async def close(self) -> None:
        self.checkout.reset()
        self.cache.clear()
        await self.remote.close()

    async def __aenter__(self) -> CommerceEngine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
