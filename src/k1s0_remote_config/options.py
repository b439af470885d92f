"""クライアント設定（pydantic BaseModel）と YAML ローダー"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, ClassVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import RemoteConfigError, RemoteConfigErrorCodes


class OptionsBase(BaseModel):
    """全ポーリングモード共通の設定。"""

    model_config = ConfigDict(frozen=True)

    mode: ClassVar[str] = ""

    api_key: str = Field(min_length=1)
    base_url: str = Field(min_length=1)
    timeout_seconds: float = Field(default=30.0, gt=0)


class AutoPollOptions(OptionsBase):
    """自動ポーリング設定。"""

    mode: ClassVar[str] = "auto"

    poll_interval_seconds: float = Field(default=60.0, gt=0)
    config_changed: Callable[[], Any] | None = None


class ManualPollOptions(OptionsBase):
    """手動ポーリング設定。"""

    mode: ClassVar[str] = "manual"


class LazyLoadOptions(OptionsBase):
    """TTL 付き遅延ロード設定。"""

    mode: ClassVar[str] = "lazy"

    cache_time_to_live_seconds: float = Field(default=60.0, gt=0)


_MODES: dict[str, type[OptionsBase]] = {
    options_type.mode: options_type
    for options_type in (AutoPollOptions, ManualPollOptions, LazyLoadOptions)
}


def load_options(path: Path) -> OptionsBase:
    """YAML ファイルからクライアント設定を読み込む。

    mode キー (auto / manual / lazy) でポーリングモードを選択する。省略時は auto。
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RemoteConfigError(
            code=RemoteConfigErrorCodes.READ_FILE,
            message=f"Failed to read options file: {path}",
            cause=e,
        ) from e
    try:
        data: dict[str, Any] = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise RemoteConfigError(
            code=RemoteConfigErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise RemoteConfigError(
            code=RemoteConfigErrorCodes.VALIDATION,
            message=f"Options file must contain a mapping: {path}",
        )

    mode = data.pop("mode", "auto")
    options_type = _MODES.get(mode)
    if options_type is None:
        raise RemoteConfigError(
            code=RemoteConfigErrorCodes.UNSUPPORTED_MODE,
            message=f"Unsupported polling mode: {mode}",
        )
    try:
        return options_type.model_validate(data)
    except ValidationError as e:
        raise RemoteConfigError(
            code=RemoteConfigErrorCodes.VALIDATION,
            message=f"Options validation failed: {e}",
            cause=e,
        ) from e
