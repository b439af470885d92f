"""手動ポーリング戦略"""

from __future__ import annotations

from ..models import ProjectConfig
from .base import ConfigServiceBase


class ManualPollConfigService(ConfigServiceBase):
    """refresh_config が呼ばれた時だけフェッチする。"""

    async def get_config(self) -> ProjectConfig | None:
        return await self._cache.get(self._options.api_key)
