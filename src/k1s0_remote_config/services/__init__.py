"""ポーリング戦略"""

from .auto_poll import AutoPollConfigService
from .base import ConfigServiceBase
from .lazy_load import LazyLoadConfigService
from .manual_poll import ManualPollConfigService

__all__ = [
    "AutoPollConfigService",
    "ConfigServiceBase",
    "LazyLoadConfigService",
    "ManualPollConfigService",
]
