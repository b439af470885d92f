"""ポーリング戦略と同期エンジンのユニットテスト"""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from k1s0_remote_config import (
    AutoPollConfigService,
    AutoPollOptions,
    ConfigFetcher,
    InMemoryConfigCache,
    LazyLoadConfigService,
    LazyLoadOptions,
    ManualPollConfigService,
    ManualPollOptions,
    OptionsBase,
    ProjectConfig,
)

API_KEY = "api-key"
BASE_URL = "http://config-cdn:8080"


def manual_options() -> ManualPollOptions:
    return ManualPollOptions(api_key=API_KEY, base_url=BASE_URL)


def auto_options(**kwargs: Any) -> AutoPollOptions:
    return AutoPollOptions(api_key=API_KEY, base_url=BASE_URL, **kwargs)


def make_config(etag: str = "e1", timestamp: float = 0.0) -> ProjectConfig:
    return ProjectConfig(timestamp=timestamp, etag=etag, config_json={"flag": {"Value": etag}})


class CountingFetcher(ConfigFetcher):
    """呼び出し回数を数え、毎回異なる ETag の設定を返すフェッチャー。"""

    def __init__(self, unchanged: bool = False) -> None:
        self.calls = 0
        self.unchanged = unchanged
        self.last_configs: list[ProjectConfig | None] = []

    async def fetch(
        self, options: OptionsBase, last_config: ProjectConfig | None
    ) -> ProjectConfig | None:
        self.calls += 1
        self.last_configs.append(last_config)
        if self.unchanged:
            return None
        return make_config(etag=f"e{self.calls}", timestamp=float(self.calls))


class BlockingFetcher(ConfigFetcher):
    """release されるまで完了しないフェッチャー。"""

    def __init__(self) -> None:
        self.calls = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch(
        self, options: OptionsBase, last_config: ProjectConfig | None
    ) -> ProjectConfig | None:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return make_config(etag="blocked")


# --- manual poll ---


async def test_manual_get_config_never_fetches() -> None:
    """手動ポーリングの get_config はフェッチしないこと。"""
    fetcher = CountingFetcher()
    service = ManualPollConfigService(fetcher, InMemoryConfigCache(), manual_options())
    assert await service.get_config() is None
    assert fetcher.calls == 0


async def test_manual_refresh_writes_cache() -> None:
    """refresh_config で取得した設定がキャッシュされること。"""
    fetcher = CountingFetcher()
    cache = InMemoryConfigCache()
    service = ManualPollConfigService(fetcher, cache, manual_options())
    config = await service.refresh_config()
    assert config is not None
    assert config.etag == "e1"
    assert await cache.get(API_KEY) is config
    assert await service.get_config() is config


async def test_manual_refresh_passes_last_config() -> None:
    """フェッチャーに前回の設定が渡されること。"""
    fetcher = CountingFetcher()
    cache = InMemoryConfigCache()
    cached = make_config("cached")
    await cache.set(API_KEY, cached)
    service = ManualPollConfigService(fetcher, cache, manual_options())
    await service.refresh_config()
    assert fetcher.last_configs == [cached]


async def test_refresh_unchanged_returns_cached_config() -> None:
    """更新なしでも前回の設定を返し、キャッシュに書き込まないこと。"""
    fetcher = CountingFetcher(unchanged=True)
    cache = InMemoryConfigCache()
    cached = make_config("cached")
    await cache.set(API_KEY, cached)
    cache.set = AsyncMock()  # type: ignore[method-assign]
    service = ManualPollConfigService(fetcher, cache, manual_options())
    assert await service.refresh_config() is cached
    cache.set.assert_not_awaited()


async def test_refresh_unchanged_without_cache_returns_none() -> None:
    """一度も取得できていなければ None のまま。"""
    service = ManualPollConfigService(
        CountingFetcher(unchanged=True), InMemoryConfigCache(), manual_options()
    )
    assert await service.refresh_config() is None


async def test_concurrent_refreshes_share_one_fetch() -> None:
    """同時リフレッシュは 1 回のフェッチにまとめられること。"""
    fetcher = BlockingFetcher()
    service = ManualPollConfigService(fetcher, InMemoryConfigCache(), manual_options())
    first = asyncio.create_task(service.refresh_config())
    second = asyncio.create_task(service.refresh_config())
    await fetcher.started.wait()
    fetcher.release.set()
    result1, result2 = await asyncio.gather(first, second)
    assert fetcher.calls == 1
    assert result1 is result2


async def test_sequential_refreshes_fetch_each_time() -> None:
    """逐次リフレッシュは毎回フェッチすること。"""
    fetcher = CountingFetcher()
    service = ManualPollConfigService(fetcher, InMemoryConfigCache(), manual_options())
    await service.refresh_config()
    await service.refresh_config()
    assert fetcher.calls == 2


async def test_closed_service_does_not_fetch() -> None:
    """close 後はフェッチしないこと。"""
    fetcher = CountingFetcher()
    service = ManualPollConfigService(fetcher, InMemoryConfigCache(), manual_options())
    await service.close()
    assert await service.refresh_config() is None
    assert fetcher.calls == 0


# --- lazy load ---


def make_lazy(
    fetcher: ConfigFetcher, cache: InMemoryConfigCache, now: list[float]
) -> LazyLoadConfigService:
    options = LazyLoadOptions(api_key=API_KEY, base_url=BASE_URL, cache_time_to_live_seconds=10)
    return LazyLoadConfigService(fetcher, cache, options, clock=lambda: now[0])


async def test_lazy_fetches_when_empty() -> None:
    """キャッシュが空なら get_config でフェッチすること。"""
    fetcher = CountingFetcher()
    service = make_lazy(fetcher, InMemoryConfigCache(), [0.0])
    config = await service.get_config()
    assert config is not None
    assert fetcher.calls == 1


async def test_lazy_fresh_cache_does_not_fetch() -> None:
    """TTL 内ならフェッチしないこと。"""
    fetcher = CountingFetcher()
    cache = InMemoryConfigCache()
    cached = make_config("cached", timestamp=100.0)
    await cache.set(API_KEY, cached)
    now = [105.0]
    service = make_lazy(fetcher, cache, now)
    assert await service.get_config() is cached
    assert await service.get_config() is cached
    assert fetcher.calls == 0


async def test_lazy_expired_cache_fetches_once_per_call() -> None:
    """TTL 切れなら呼び出しごとに 1 回フェッチすること。"""
    fetcher = CountingFetcher(unchanged=True)
    cache = InMemoryConfigCache()
    cached = make_config("cached", timestamp=100.0)
    await cache.set(API_KEY, cached)
    now = [111.0]
    service = make_lazy(fetcher, cache, now)
    assert await service.get_config() is cached
    assert fetcher.calls == 1
    assert await service.get_config() is cached
    assert fetcher.calls == 2


async def test_lazy_unchanged_origin_refetches_after_ttl() -> None:
    """304 ではタイムスタンプを更新しないため、TTL 切れ後は毎回フェッチすること。"""
    fetcher = CountingFetcher(unchanged=True)
    cache = InMemoryConfigCache()
    cached = make_config("cached", timestamp=100.0)
    await cache.set(API_KEY, cached)
    now = [111.0]
    service = make_lazy(fetcher, cache, now)
    for i in range(1, 6):
        now[0] = 111.0 + i
        assert await service.get_config() is cached
        assert fetcher.calls == i
    stored = await cache.get(API_KEY)
    assert stored is not None
    assert stored.timestamp == 100.0
    assert stored.etag == "cached"
    assert all(last is cached for last in fetcher.last_configs)


async def test_lazy_refresh_ignores_ttl() -> None:
    """refresh_config は TTL に関係なくフェッチすること。"""
    fetcher = CountingFetcher()
    cache = InMemoryConfigCache()
    await cache.set(API_KEY, make_config("cached", timestamp=100.0))
    service = make_lazy(fetcher, cache, [101.0])
    config = await service.refresh_config()
    assert config is not None
    assert config.etag == "e1"
    assert fetcher.calls == 1


def test_lazy_is_expired() -> None:
    """期限判定。"""
    now = [120.0]
    service = make_lazy(CountingFetcher(), InMemoryConfigCache(), now)
    assert service.is_expired(None) is True
    assert service.is_expired(make_config(timestamp=115.0)) is False
    assert service.is_expired(make_config(timestamp=105.0)) is True


# --- auto poll ---


async def test_auto_poll_initial_fetch() -> None:
    """get_config で初回取得を待って設定を返すこと。"""
    fetcher = CountingFetcher()
    service = AutoPollConfigService(
        fetcher, InMemoryConfigCache(), auto_options(poll_interval_seconds=60)
    )
    config = await service.get_config()
    assert config is not None
    assert fetcher.calls == 1
    assert service.running is True
    await service.stop()


async def test_auto_poll_cached_config_without_blocking() -> None:
    """キャッシュがあれば初回取得を待たずに返すこと。"""
    fetcher = BlockingFetcher()
    cache = InMemoryConfigCache()
    cached = make_config("cached")
    await cache.set(API_KEY, cached)
    service = AutoPollConfigService(fetcher, cache, auto_options())
    assert await service.get_config() is cached
    await service.stop()
    fetcher.release.set()
    await asyncio.sleep(0)


async def test_auto_poll_repeats() -> None:
    """一定間隔でリフレッシュを繰り返すこと。"""
    fetcher = CountingFetcher()
    service = AutoPollConfigService(
        fetcher, InMemoryConfigCache(), auto_options(poll_interval_seconds=0.01)
    )
    await service.start()
    await asyncio.sleep(0.1)
    await service.stop()
    assert fetcher.calls >= 2


async def test_auto_poll_no_fetch_after_stop() -> None:
    """stop 後はフェッチしないこと。"""
    fetcher = CountingFetcher()
    service = AutoPollConfigService(
        fetcher, InMemoryConfigCache(), auto_options(poll_interval_seconds=0.01)
    )
    await service.start()
    await asyncio.sleep(0.05)
    await service.stop()
    calls = fetcher.calls
    await asyncio.sleep(0.05)
    await service.refresh_config()
    await service.get_config()
    assert fetcher.calls == calls
    assert service.running is False


async def test_auto_poll_stop_during_inflight_fetch() -> None:
    """フェッチ中に stop しても完了後に再ポーリングしないこと。"""
    fetcher = BlockingFetcher()
    cache = InMemoryConfigCache()
    service = AutoPollConfigService(
        fetcher, cache, auto_options(poll_interval_seconds=0.01)
    )
    await service.start()
    await fetcher.started.wait()
    await service.stop()
    fetcher.release.set()
    await asyncio.sleep(0.05)
    assert fetcher.calls == 1
    cached = await cache.get(API_KEY)
    assert cached is not None
    assert cached.etag == "blocked"


async def test_auto_poll_start_is_idempotent() -> None:
    """start を複数回呼んでもタスクは 1 つ。"""
    service = AutoPollConfigService(
        CountingFetcher(), InMemoryConfigCache(), auto_options()
    )
    await service.start()
    task = service._task
    await service.start()
    assert service._task is task
    await service.stop()


async def test_stop_without_start() -> None:
    """start せずに stop を呼んでも例外が発生しないこと。"""
    service = AutoPollConfigService(
        CountingFetcher(), InMemoryConfigCache(), auto_options()
    )
    await service.stop()
    assert service._task is None


async def test_auto_poll_notifies_config_changed() -> None:
    """設定が変わった時に config_changed が呼ばれること。"""
    callback = MagicMock()
    service = AutoPollConfigService(
        CountingFetcher(),
        InMemoryConfigCache(),
        auto_options(poll_interval_seconds=60, config_changed=callback),
    )
    await service.get_config()
    callback.assert_called_once()
    await service.refresh_config()
    assert callback.call_count == 2
    await service.stop()


async def test_auto_poll_async_config_changed() -> None:
    """非同期コールバックも await されること。"""
    callback = AsyncMock()
    service = AutoPollConfigService(
        CountingFetcher(),
        InMemoryConfigCache(),
        auto_options(poll_interval_seconds=60, config_changed=callback),
    )
    await service.get_config()
    callback.assert_awaited_once()
    await service.stop()


async def test_auto_poll_unchanged_does_not_notify() -> None:
    """更新なしでは config_changed が呼ばれないこと。"""
    callback = MagicMock()
    cache = InMemoryConfigCache()
    await cache.set(API_KEY, make_config("cached"))
    service = AutoPollConfigService(
        CountingFetcher(unchanged=True),
        cache,
        auto_options(poll_interval_seconds=60, config_changed=callback),
    )
    await service.refresh_config()
    callback.assert_not_called()
    await service.stop()


async def test_auto_poll_callback_error_is_logged() -> None:
    """コールバックの例外は送出されずリフレッシュ結果が返ること。"""
    callback = MagicMock(side_effect=RuntimeError("observer failed"))
    service = AutoPollConfigService(
        CountingFetcher(),
        InMemoryConfigCache(),
        auto_options(poll_interval_seconds=60, config_changed=callback),
    )
    config = await service.refresh_config()
    assert config is not None
    callback.assert_called_once()
    await service.stop()


async def test_poll_loop_continues_after_fetch_error() -> None:
    """フェッチャーの例外をログして次回ポーリングを続けること。"""
    fetcher = CountingFetcher()
    original_fetch = fetcher.fetch
    failures = 0

    async def flaky_fetch(options, last_config):
        nonlocal failures
        if failures == 0:
            failures += 1
            raise RuntimeError("transient error")
        return await original_fetch(options, last_config)

    fetcher.fetch = flaky_fetch  # type: ignore[method-assign]
    service = AutoPollConfigService(
        fetcher, InMemoryConfigCache(), auto_options(poll_interval_seconds=0.01)
    )
    await service.start()
    await asyncio.sleep(0.1)
    await service.stop()
    assert failures == 1
    assert fetcher.calls >= 1
