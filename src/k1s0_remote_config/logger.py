"""structlog ベースのロガー"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from .options import OptionsBase


class ConfigLogger(Protocol):
    """ライブラリが要求するロガーのインターフェース。"""

    def info(self, event: str, **kw: Any) -> Any: ...

    def error(self, event: str, **kw: Any) -> Any: ...


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


def mask_api_key(api_key: str) -> str:
    """ログ出力用に API キーの末尾 4 文字以外を伏せる。"""
    if len(api_key) <= 4:
        return "***"
    return f"***{api_key[-4:]}"


def client_logger(options: OptionsBase) -> structlog.stdlib.BoundLogger:
    """API キー（マスク済み）とポーリングモードを束縛したロガーを返す。

    出力形式やレベルは structlog のグローバル設定に従う。
    """
    return get_logger("k1s0_remote_config").bind(
        api_key=mask_api_key(options.api_key),
        mode=options.mode,
    )
