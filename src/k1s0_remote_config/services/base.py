"""設定同期エンジン（全ポーリング戦略の共通基盤）"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from ..cache import ConfigCache
from ..fetcher import ConfigFetcher
from ..logger import ConfigLogger, get_logger
from ..models import ProjectConfig
from ..options import OptionsBase


def config_changed(old: ProjectConfig | None, new: ProjectConfig) -> bool:
    """etag かドキュメントが異なれば変更ありとみなす。"""
    if old is None:
        return True
    return old.etag != new.etag or old.config_json != new.config_json


class ConfigServiceBase(ABC):
    """フェッチ・キャッシュ書き込み・結果返却をまとめる同期エンジン。

    同一インスタンス（= 同一 API キー）への同時リフレッシュは 1 回のフェッチに
    まとめられ、全呼び出し元が同じ結果を受け取る。
    """

    def __init__(
        self,
        fetcher: ConfigFetcher,
        cache: ConfigCache,
        options: OptionsBase,
        logger: ConfigLogger | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self._options = options
        self._logger = logger or get_logger(__name__)
        self._inflight: asyncio.Task[ProjectConfig | None] | None = None
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    @abstractmethod
    async def get_config(self) -> ProjectConfig | None:
        """現在の設定を返す。未取得なら None。"""
        ...

    async def refresh_config(self) -> ProjectConfig | None:
        """キャッシュ済み設定を起点に強制リフレッシュする。"""
        last_config = await self._cache.get(self._options.api_key)
        return await self._refresh_logic_base(last_config)

    async def close(self) -> None:
        """以降のフェッチを行わないようにする。"""
        self._stopped = True

    async def _refresh_logic_base(
        self, last_config: ProjectConfig | None
    ) -> ProjectConfig | None:
        if self._stopped:
            return last_config
        if self._inflight is None:
            task = asyncio.ensure_future(self._fetch_and_store(last_config))
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        # 待機側のキャンセルで共有フェッチを中断させない
        return await asyncio.shield(self._inflight)

    async def _fetch_and_store(
        self, last_config: ProjectConfig | None
    ) -> ProjectConfig | None:
        new_config = await self._fetcher.fetch(self._options, last_config)
        if new_config is None:
            return last_config

        await self._cache.set(self._options.api_key, new_config)
        if config_changed(last_config, new_config):
            self._logger.info("config updated", etag=new_config.etag)
            await self._on_config_changed(new_config)
        return new_config

    async def _on_config_changed(self, new_config: ProjectConfig) -> None:
        """変更検知時のフック。"""

    def _clear_inflight(self, task: asyncio.Task[ProjectConfig | None]) -> None:
        if self._inflight is task:
            self._inflight = None
