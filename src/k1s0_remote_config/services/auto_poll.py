"""asyncio Task ベースの定期ポーリング戦略"""

from __future__ import annotations

import asyncio
import contextlib
import inspect

from ..cache import ConfigCache
from ..fetcher import ConfigFetcher
from ..logger import ConfigLogger
from ..models import ProjectConfig
from ..options import AutoPollOptions
from .base import ConfigServiceBase


class AutoPollConfigService(ConfigServiceBase):
    """一定間隔で設定をリフレッシュし続けるポーリング戦略。"""

    def __init__(
        self,
        fetcher: ConfigFetcher,
        cache: ConfigCache,
        options: AutoPollOptions,
        logger: ConfigLogger | None = None,
    ) -> None:
        super().__init__(fetcher, cache, options, logger)
        self._interval = options.poll_interval_seconds
        self._config_changed = options.config_changed
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        """ポーリングタスクを開始する。開始済み・停止済みなら何もしない。"""
        if self._task is not None or self._stopped:
            return
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """ポーリングタスクを停止する。

        実行中のフェッチは完了まで進むが、タイマーは再設定されない。
        """
        self._stopped = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def close(self) -> None:
        await self.stop()

    async def get_config(self) -> ProjectConfig | None:
        await self.start()
        cached = await self._cache.get(self._options.api_key)
        if cached is not None or self._stopped:
            return cached
        # 初回取得前は最初のリフレッシュを待つ
        return await self.refresh_config()

    async def _on_config_changed(self, new_config: ProjectConfig) -> None:
        if self._config_changed is None:
            return
        try:
            result = self._config_changed()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._logger.error("config_changed callback failed", error=str(e))

    async def _poll_loop(self) -> None:
        """ポーリングループ。"""
        while not self._stopped:
            try:
                await self.refresh_config()
            except Exception as e:
                self._logger.error("auto poll refresh failed", error=str(e))
            await asyncio.sleep(self._interval)
