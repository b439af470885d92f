"""ConfigCache 抽象基底クラスと実装"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol

from .exceptions import RemoteConfigError
from .logger import ConfigLogger, get_logger
from .models import ProjectConfig


class ConfigCache(ABC):
    """API キー単位で ProjectConfig を保持するキャッシュ。"""

    @abstractmethod
    async def get(self, key: str) -> ProjectConfig | None:
        """キーに対応する設定を取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def set(self, key: str, config: ProjectConfig) -> None:
        """キーに設定を保存する。"""
        ...


class InMemoryConfigCache(ConfigCache):
    """プロセス内メモリに保持するキャッシュ。"""

    def __init__(self) -> None:
        self._store: dict[str, ProjectConfig] = {}

    async def get(self, key: str) -> ProjectConfig | None:
        return self._store.get(key)

    async def set(self, key: str, config: ProjectConfig) -> None:
        self._store[key] = config


class _StringStore(Protocol):
    """文字列を保存できる非同期 KVS (k1s0_cache.CacheClient など)。"""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: float | None = None) -> None: ...


class SerializedConfigCache(ConfigCache):
    """(timestamp, etag, document) を JSON 文字列として外部 KVS に保存するキャッシュ。

    壊れたエントリはエラーログを出して未キャッシュとして扱う。
    """

    def __init__(
        self,
        store: _StringStore,
        prefix: str = "remote-config:",
        logger: ConfigLogger | None = None,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._logger = logger or get_logger(__name__)

    async def get(self, key: str) -> ProjectConfig | None:
        entry = await self._store.get(self._prefix + key)
        if entry is None:
            return None
        try:
            return ProjectConfig.from_cache_entry(entry)
        except RemoteConfigError as e:
            self._logger.error("discarding unreadable cache entry", error=str(e))
            return None

    async def set(self, key: str, config: ProjectConfig) -> None:
        await self._store.set(self._prefix + key, config.to_cache_entry())
