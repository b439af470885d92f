"""ConfigFetcher 抽象基底クラスと httpx 実装"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

import httpx

from .exceptions import RemoteConfigError
from .logger import ConfigLogger, get_logger
from .models import ProjectConfig
from .options import OptionsBase

_USER_AGENT = "k1s0-remote-config/0.1.0"


class ConfigFetcher(ABC):
    """設定ドキュメントを 1 回取得するフェッチャー。"""

    @abstractmethod
    async def fetch(
        self, options: OptionsBase, last_config: ProjectConfig | None
    ) -> ProjectConfig | None:
        """新しい設定を返す。更新なし・取得失敗の場合は None。"""
        ...


class HttpConfigFetcher(ConfigFetcher):
    """httpx を使った ETag 条件付き GET フェッチャー。

    リトライは行わない。失敗はログに残して None を返す。
    """

    def __init__(self, logger: ConfigLogger | None = None) -> None:
        self._logger = logger or get_logger(__name__)

    def _make_client(self, options: OptionsBase) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=options.base_url,
            headers={"User-Agent": _USER_AGENT},
            timeout=options.timeout_seconds,
        )

    async def fetch(
        self, options: OptionsBase, last_config: ProjectConfig | None
    ) -> ProjectConfig | None:
        headers: dict[str, str] = {}
        if last_config is not None and last_config.etag:
            headers["If-None-Match"] = last_config.etag
        path = f"/configuration-files/{options.api_key}/config_v2.json"
        try:
            async with self._make_client(options) as client:
                resp = await client.get(path, headers=headers)
        except httpx.HTTPError as e:
            self._logger.error("config fetch failed", error=str(e))
            return None

        if resp.status_code == 304:
            return None
        if resp.status_code != 200:
            self._logger.error(
                "config fetch returned unexpected status",
                status_code=resp.status_code,
                body=resp.text,
            )
            return None
        try:
            return ProjectConfig.from_json(
                time.time(), resp.text, resp.headers.get("ETag", "")
            )
        except RemoteConfigError as e:
            self._logger.error("config fetch returned invalid document", error=str(e))
            return None
