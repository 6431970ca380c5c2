from __future__ import annotations

import pytest

from ai_engine.config.store import DISABLED_SENTINEL, ConfigCache, ConfigSnapshot, InMemoryConfigStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FlakyStore(InMemoryConfigStore):
    def __init__(self, values: dict[str, str]) -> None:
        super().__init__(values)
        self.fail = False

    async def load(self) -> dict[str, str]:
        if self.fail:
            self.load_count += 1
            raise ConnectionError('db down')
        return dict(await super().load())


def test_provider_enabled_is_fail_open() -> None:
    snapshot = ConfigSnapshot(values={'claude_enabled': DISABLED_SENTINEL, 'gemini_enabled': 'true'})
    assert snapshot.is_provider_enabled('gemini') is True
    assert snapshot.is_provider_enabled('openai') is True  # no flag at all
    assert snapshot.is_provider_enabled('claude') is False


@pytest.mark.parametrize('flag', ['False', '0', 'no', ''])
def test_only_exact_sentinel_disables(flag: str) -> None:
    assert ConfigSnapshot(values={'claude_enabled': flag}).is_provider_enabled('claude') is True


def test_snapshot_values_are_read_only() -> None:
    snapshot = ConfigSnapshot(values={'temperature': 0.5})
    assert snapshot.get('temperature') == '0.5'
    with pytest.raises(TypeError):
        snapshot.values['temperature'] = '1'  # type: ignore[index]


def test_snapshot_typed_getters_fall_back_on_garbage() -> None:
    snapshot = ConfigSnapshot(values={'temperature': 'warm', 'max_tokens_per_request': '2048'})
    assert snapshot.get_float('temperature', 0.3) == 0.3  # noqa: PLR2004
    assert snapshot.get_int('max_tokens_per_request', 4096) == 2048  # noqa: PLR2004
    assert snapshot.get('missing', 'x') == 'x'


@pytest.mark.asyncio
async def test_cache_returns_identical_snapshot_within_ttl() -> None:
    store = InMemoryConfigStore({'primary_provider': 'claude'})
    clock = FakeClock()
    cache = ConfigCache(store, ttl_seconds=30.0, clock=clock)

    first = await cache.get()
    clock.now += 29.0
    second = await cache.get()

    assert first is second
    assert store.load_count == 1


@pytest.mark.asyncio
async def test_cache_refetches_once_after_ttl() -> None:
    store = InMemoryConfigStore({'primary_provider': 'claude'})
    clock = FakeClock()
    cache = ConfigCache(store, ttl_seconds=30.0, clock=clock)

    first = await cache.get()
    await store.update('primary_provider', 'gemini')
    clock.now += 30.0
    second = await cache.get()
    third = await cache.get()

    assert store.load_count == 2  # noqa: PLR2004
    assert second is third
    assert first.get('primary_provider') == 'claude'
    assert second.get('primary_provider') == 'gemini'


@pytest.mark.asyncio
async def test_invalidate_forces_one_refetch() -> None:
    store = InMemoryConfigStore({'gemini_enabled': 'true'})
    cache = ConfigCache(store, clock=FakeClock())

    await cache.get()
    await store.update('gemini_enabled', 'false')
    cache.invalidate()
    snapshot = await cache.get()
    await cache.get()

    assert store.load_count == 2  # noqa: PLR2004
    assert snapshot.is_provider_enabled('gemini') is False


@pytest.mark.asyncio
async def test_failed_refresh_serves_stale_snapshot() -> None:
    store = FlakyStore({'primary_provider': 'claude'})
    cache = ConfigCache(store, clock=FakeClock())

    good = await cache.get()
    store.fail = True
    cache.invalidate()
    stale = await cache.get()

    assert stale is good
    assert stale.get('primary_provider') == 'claude'


@pytest.mark.asyncio
async def test_failed_first_load_yields_empty_snapshot() -> None:
    store = FlakyStore({})
    store.fail = True
    cache = ConfigCache(store, clock=FakeClock())

    snapshot = await cache.get()

    assert dict(snapshot.values) == {}
    assert snapshot.is_provider_enabled('gemini') is True
