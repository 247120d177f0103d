"""Favorites engine - the set of products the signed-in user has saved."""
from __future__ import annotations

import logging

from storefront.core.constants import FAVORITES_QUERY_KEY
from storefront.core.exceptions import (
    AuthRequired,
    FetchFailed,
    MutationFailed,
    RemoteStoreError,
)
from storefront.core.keyed_lock import KeyedLock
from storefront.core.notifications import (
    LoggingNotifier,
    Notifier,
    NoticeType,
    failure,
    sign_in_required,
)
from storefront.core.query_cache import QueryCache
from storefront.domain.entities import Product
from storefront.integrations.remote_store import RemoteStoreClient
from storefront.services.results import MutationResult
from storefront.services.session_gate import SessionGate

logger = logging.getLogger(__name__)


class FavoritesService:
    """Owns the cached favorites list; toggles are serialized per product id."""

    def __init__(
        self,
        session: SessionGate,
        remote: RemoteStoreClient,
        *,
        cache: QueryCache | None = None,
        notifier: Notifier | None = None,
    ):
        self._session = session
        self._remote = remote
        self._cache = cache or QueryCache()
        self._notifier = notifier or LoggingNotifier()
        self._toggle_locks = KeyedLock("favorite")

    def _key(self) -> str | None:
        user = self._session.current_user()
        if user is None:
            return None
        return f"{FAVORITES_QUERY_KEY}:{user.id}"

    def _snapshot(self) -> list[Product]:
        key = self._key()
        if key is None:
            return []
        return self._cache.snapshot(key, [])

    def get_favorites(self) -> list[Product]:
        key = self._key()
        if key is None:
            return []
        if self._cache.is_stale(key):
            self._cache.schedule_fetch(key, self._remote.get_favorites)
        return list(self._snapshot())

    async def load_favorites(self) -> list[Product]:
        key = self._key()
        if key is None:
            return []
        try:
            await self._cache.fetch(key, self._remote.get_favorites)
        except FetchFailed as e:
            logger.warning("Favorites refresh failed, keeping last snapshot: %s", e.reason)
        return list(self._snapshot())

    @property
    def favorite_ids(self) -> frozenset[int]:
        return frozenset(product.id for product in self._snapshot())

    @property
    def is_loading(self) -> bool:
        key = self._key()
        return key is not None and self._cache.entry(key).is_fetching

    def is_favorite(self, product_id: int) -> bool:
        """Membership against the last fetched set. Never touches the network."""
        return product_id in self.favorite_ids

    async def check_favorite(self, product_id: int) -> bool:
        """Authoritative membership straight from the remote store."""
        if self._key() is None:
            return False
        try:
            return await self._remote.check_favorite(product_id)
        except RemoteStoreError as e:
            logger.warning("Favorite check for product %s failed: %s", product_id, e.message)
            return self.is_favorite(product_id)

    def _guard(self) -> MutationResult | None:
        try:
            self._session.require_auth("save favorites")
        except AuthRequired as e:
            self._notifier.notify(sign_in_required("save favorites"))
            return MutationResult.failure(e)
        return None

    async def toggle_favorite(self, product: Product) -> MutationResult:
        """Add when absent, remove when present. Result value is the new membership."""
        blocked = self._guard()
        if blocked:
            return blocked

        async with self._toggle_locks.hold(product.id):
            # the session may have ended while an earlier toggle held the lock
            blocked = self._guard()
            if blocked:
                return blocked
            key = self._key()
            if self._cache.is_stale(key):
                # membership is read from a fresh set, including the outcome of any earlier toggle
                await self.load_favorites()
                if self._key() != key:
                    return self._guard() or MutationResult.failure(
                        MutationFailed("Session changed while loading favorites")
                    )
            was_favorite = self.is_favorite(product.id)

            try:
                if was_favorite:
                    await self._remote.remove_favorite(product.id)
                else:
                    await self._remote.add_favorite(product.id)
            except RemoteStoreError as e:
                converged = e.is_not_found if was_favorite else e.is_conflict
                if not converged:
                    self._notifier.notify(
                        failure(NoticeType.FAVORITES_UPDATE_FAILED, "Failed to update favorites", e.message)
                    )
                    return MutationResult.failure(MutationFailed(e.message))
                logger.debug("Favorite %s already %s remotely", product.id, "absent" if was_favorite else "present")

            self._cache.invalidate(key)
            self._cache.schedule_fetch(key, self._remote.get_favorites)

        return MutationResult.success(not was_favorite)
