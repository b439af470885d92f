"""k1s0 remote config library."""

from .cache import ConfigCache, InMemoryConfigCache, SerializedConfigCache
from .client import (
    ClientKernel,
    RemoteConfigClient,
    create_client_with_auto_poll,
    create_client_with_lazy_load,
    create_client_with_manual_poll,
)
from .evaluator import RolloutEvaluator, percentage_bucket
from .exceptions import RemoteConfigError, RemoteConfigErrorCodes
from .fetcher import ConfigFetcher, HttpConfigFetcher
from .logger import ConfigLogger, client_logger, mask_api_key
from .models import (
    Comparator,
    FlagSetting,
    ProjectConfig,
    RolloutPercentageItem,
    RolloutRule,
    User,
)
from .options import (
    AutoPollOptions,
    LazyLoadOptions,
    ManualPollOptions,
    OptionsBase,
    load_options,
)
from .services import (
    AutoPollConfigService,
    ConfigServiceBase,
    LazyLoadConfigService,
    ManualPollConfigService,
)

__all__ = [
    "AutoPollConfigService",
    "AutoPollOptions",
    "ClientKernel",
    "Comparator",
    "ConfigCache",
    "ConfigFetcher",
    "ConfigLogger",
    "ConfigServiceBase",
    "FlagSetting",
    "HttpConfigFetcher",
    "InMemoryConfigCache",
    "LazyLoadConfigService",
    "LazyLoadOptions",
    "ManualPollConfigService",
    "ManualPollOptions",
    "OptionsBase",
    "ProjectConfig",
    "RemoteConfigClient",
    "RemoteConfigError",
    "RemoteConfigErrorCodes",
    "RolloutEvaluator",
    "RolloutPercentageItem",
    "RolloutRule",
    "SerializedConfigCache",
    "User",
    "create_client_with_auto_poll",
    "create_client_with_lazy_load",
    "create_client_with_manual_poll",
    "load_options",
    "client_logger",
    "mask_api_key",
    "percentage_bucket",
]
