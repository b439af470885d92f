"""TTL 付き遅延ロード戦略"""

from __future__ import annotations

import time
from collections.abc import Callable

from ..cache import ConfigCache
from ..fetcher import ConfigFetcher
from ..logger import ConfigLogger
from ..models import ProjectConfig
from ..options import LazyLoadOptions
from .base import ConfigServiceBase


class LazyLoadConfigService(ConfigServiceBase):
    """キャッシュが TTL を過ぎていれば get_config 時にリフレッシュする。"""

    def __init__(
        self,
        fetcher: ConfigFetcher,
        cache: ConfigCache,
        options: LazyLoadOptions,
        logger: ConfigLogger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(fetcher, cache, options, logger)
        self._ttl = options.cache_time_to_live_seconds
        self._clock = clock

    def is_expired(self, config: ProjectConfig | None) -> bool:
        return config is None or config.timestamp + self._ttl < self._clock()

    async def get_config(self) -> ProjectConfig | None:
        cached = await self._cache.get(self._options.api_key)
        if self.is_expired(cached):
            return await self._refresh_logic_base(cached)
        return cached
