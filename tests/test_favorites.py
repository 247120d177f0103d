"""Favorites engine tests."""
from __future__ import annotations

import asyncio

import pytest

from storefront.core.exceptions import AuthRequired, MutationFailed, RemoteStoreError
from storefront.core.notifications import NoticeType
from storefront.services.favorites_service import FavoritesService


@pytest.mark.asyncio
async def test_toggle_adds_then_removes(favorites, remote, product_a):
    added = await favorites.toggle_favorite(product_a)
    await favorites.load_favorites()

    assert added.ok and added.value is True
    assert favorites.is_favorite(product_a.id)

    removed = await favorites.toggle_favorite(product_a)
    await favorites.load_favorites()

    assert removed.ok and removed.value is False
    assert not favorites.is_favorite(product_a.id)
    assert remote.favorites == set()


@pytest.mark.asyncio
async def test_signed_out_toggle_makes_no_network_call(anonymous_session, remote, notifier, product_a):
    favorites = FavoritesService(anonymous_session, remote, notifier=notifier)

    result = await favorites.toggle_favorite(product_a)

    assert result.auth_required
    assert isinstance(result.error, AuthRequired)
    assert remote.request_count == 0
    assert favorites.get_favorites() == []
    assert notifier.types() == [NoticeType.SIGN_IN_REQUIRED]


@pytest.mark.asyncio
async def test_is_favorite_never_touches_network(favorites, remote, product_a):
    remote.favorites.add(product_a.id)
    await favorites.load_favorites()
    calls = remote.request_count

    for _ in range(5):
        assert favorites.is_favorite(product_a.id)
    assert not favorites.is_favorite(999)
    assert remote.request_count == calls


@pytest.mark.asyncio
async def test_add_conflict_counts_as_converged(favorites, remote, product_a):
    await favorites.load_favorites()
    # another device saved it after our last fetch
    remote.favorites.add(product_a.id)

    result = await favorites.toggle_favorite(product_a)
    await favorites.load_favorites()

    assert result.ok
    assert favorites.is_favorite(product_a.id)


@pytest.mark.asyncio
async def test_remove_not_found_counts_as_converged(favorites, remote, product_a):
    remote.favorites.add(product_a.id)
    await favorites.load_favorites()
    remote.favorites.clear()

    result = await favorites.toggle_favorite(product_a)
    await favorites.load_favorites()

    assert result.ok
    assert not favorites.is_favorite(product_a.id)


@pytest.mark.asyncio
async def test_remote_failure_keeps_membership(favorites, remote, notifier, product_a):
    await favorites.load_favorites()
    remote.fail["add_favorite"] = RemoteStoreError("Error adding to favorites", status=500)

    result = await favorites.toggle_favorite(product_a)

    assert isinstance(result.error, MutationFailed)
    assert not favorites.is_favorite(product_a.id)
    assert NoticeType.FAVORITES_UPDATE_FAILED in notifier.types()


@pytest.mark.asyncio
async def test_concurrent_toggles_are_serialized(favorites, remote, product_a):
    results = await asyncio.gather(
        favorites.toggle_favorite(product_a),
        favorites.toggle_favorite(product_a),
    )
    await favorites.load_favorites()

    assert [result.value for result in results] == [True, False]
    assert remote.count("add_favorite") == 1
    assert remote.count("remove_favorite") == 1
    assert not favorites.is_favorite(product_a.id)


@pytest.mark.asyncio
async def test_check_favorite_falls_back_to_snapshot(favorites, remote, product_a):
    remote.favorites.add(product_a.id)
    await favorites.load_favorites()

    assert await favorites.check_favorite(product_a.id) is True

    remote.fail["check_favorite"] = RemoteStoreError("offline")
    assert await favorites.check_favorite(product_a.id) is True


@pytest.mark.asyncio
async def test_get_favorites_schedules_refresh(favorites, remote, product_a, product_b):
    remote.favorites.update({product_a.id, product_b.id})

    assert favorites.get_favorites() == []
    await favorites.load_favorites()

    assert favorites.favorite_ids == frozenset({product_a.id, product_b.id})
    assert remote.count("get_favorites") == 1


@pytest.mark.asyncio
async def test_toggle_waiting_on_lock_stops_after_sign_out(favorites, session, remote, product_a):
    await favorites.load_favorites()
    release = asyncio.Event()
    original_add = remote.add_favorite

    async def slow_add(product_id: int) -> None:
        await release.wait()
        await original_add(product_id)

    remote.add_favorite = slow_add

    first = asyncio.create_task(favorites.toggle_favorite(product_a))
    second = asyncio.create_task(favorites.toggle_favorite(product_a))
    for _ in range(3):
        await asyncio.sleep(0)
    session.sign_out()
    release.set()

    first_result, second_result = await asyncio.gather(first, second)

    assert first_result.ok
    assert second_result.auth_required
    assert remote.count("add_favorite") == 1
    assert remote.count("remove_favorite") == 0
