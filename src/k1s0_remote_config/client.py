"""RemoteConfigClient とファクトリ関数"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

from .cache import ConfigCache, InMemoryConfigCache
from .evaluator import RolloutEvaluator
from .exceptions import RemoteConfigError, RemoteConfigErrorCodes
from .fetcher import ConfigFetcher
from .logger import ConfigLogger, client_logger
from .models import User
from .options import AutoPollOptions, LazyLoadOptions, ManualPollOptions, OptionsBase
from .services import (
    AutoPollConfigService,
    ConfigServiceBase,
    LazyLoadConfigService,
    ManualPollConfigService,
)


@dataclass
class ClientKernel:
    """クライアントが利用する外部コラボレーター一式。"""

    fetcher: ConfigFetcher
    cache: ConfigCache = field(default_factory=InMemoryConfigCache)


class RemoteConfigClient:
    """リモート設定を取得・キャッシュし、フラグ値を評価するクライアント。"""

    def __init__(
        self,
        options: OptionsBase,
        kernel: ClientKernel,
        logger: ConfigLogger | None = None,
    ) -> None:
        self._options = options
        self._logger = logger or client_logger(options)
        self._evaluator = RolloutEvaluator(self._logger)
        self._service = self._create_service(options, kernel)

    def _create_service(self, options: OptionsBase, kernel: ClientKernel) -> ConfigServiceBase:
        if isinstance(options, AutoPollOptions):
            return AutoPollConfigService(kernel.fetcher, kernel.cache, options, self._logger)
        if isinstance(options, LazyLoadOptions):
            return LazyLoadConfigService(kernel.fetcher, kernel.cache, options, self._logger)
        if isinstance(options, ManualPollOptions):
            return ManualPollConfigService(kernel.fetcher, kernel.cache, options, self._logger)
        raise RemoteConfigError(
            code=RemoteConfigErrorCodes.UNSUPPORTED_MODE,
            message=f"Unsupported options type: {type(options).__name__}",
        )

    @property
    def service(self) -> ConfigServiceBase:
        return self._service

    async def get_value(self, key: str, default_value: Any, user: User | None = None) -> Any:
        """フラグ値を評価して返す。設定やキーがなければ default_value。"""
        config = await self._service.get_config()
        return self._evaluator.evaluate(config, key, default_value, user)

    async def get_all_keys(self) -> list[str]:
        """現在の設定ドキュメントに含まれるフラグキー一覧を返す。"""
        config = await self._service.get_config()
        if config is None or config.config_json is None:
            self._logger.error("config JSON is not present, returning empty key list")
            return []
        return list(config.config_json)

    async def force_refresh(self) -> None:
        """設定を即時リフレッシュする。"""
        await self._service.refresh_config()

    async def close(self) -> None:
        """ポーリングを停止し、以降のフェッチを行わない。"""
        await self._service.close()

    async def __aenter__(self) -> RemoteConfigClient:
        if isinstance(self._service, AutoPollConfigService):
            await self._service.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def create_client_with_auto_poll(
    api_key: str, base_url: str, kernel: ClientKernel, **options: Any
) -> RemoteConfigClient:
    """自動ポーリングモードのクライアントを生成する。"""
    return RemoteConfigClient(
        AutoPollOptions(api_key=api_key, base_url=base_url, **options), kernel
    )


def create_client_with_manual_poll(
    api_key: str, base_url: str, kernel: ClientKernel, **options: Any
) -> RemoteConfigClient:
    """手動ポーリングモードのクライアントを生成する。"""
    return RemoteConfigClient(
        ManualPollOptions(api_key=api_key, base_url=base_url, **options), kernel
    )


def create_client_with_lazy_load(
    api_key: str, base_url: str, kernel: ClientKernel, **options: Any
) -> RemoteConfigClient:
    """遅延ロードモードのクライアントを生成する。"""
    return RemoteConfigClient(
        LazyLoadOptions(api_key=api_key, base_url=base_url, **options), kernel
    )
