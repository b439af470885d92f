"""remote_config データモデル"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import RemoteConfigError, RemoteConfigErrorCodes


@dataclass(frozen=True)
class ProjectConfig:
    """取得済み設定ドキュメントのスナップショット。

    timestamp はエポック秒。config_json が None のものは「設定未取得」として扱う。
    """

    timestamp: float
    etag: str = ""
    config_json: dict[str, Any] | None = None

    @classmethod
    def from_json(cls, timestamp: float, json_text: str, etag: str = "") -> ProjectConfig:
        """JSON 文字列から ProjectConfig を生成する。"""
        try:
            data = json.loads(json_text)
        except ValueError as e:
            raise RemoteConfigError(
                code=RemoteConfigErrorCodes.PARSE_JSON,
                message=f"Failed to parse config JSON: {e}",
                cause=e,
            ) from e
        if data is not None and not isinstance(data, dict):
            raise RemoteConfigError(
                code=RemoteConfigErrorCodes.PARSE_JSON,
                message=f"Config JSON must be an object, got {type(data).__name__}",
            )
        return cls(timestamp=timestamp, etag=etag, config_json=data)

    def to_cache_entry(self) -> str:
        """(timestamp, etag, document) の三つ組を JSON 文字列にする。"""
        return json.dumps(
            {"timestamp": self.timestamp, "etag": self.etag, "config": self.config_json}
        )

    @classmethod
    def from_cache_entry(cls, entry: str) -> ProjectConfig:
        """to_cache_entry の出力から復元する。"""
        try:
            data: dict[str, Any] = json.loads(entry)
            return cls(
                timestamp=float(data["timestamp"]),
                etag=data.get("etag") or "",
                config_json=data.get("config"),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteConfigError(
                code=RemoteConfigErrorCodes.PARSE_JSON,
                message=f"Invalid cache entry: {e}",
                cause=e,
            ) from e


@dataclass
class User:
    """フラグ評価対象のユーザー。

    identifier はパーセンテージ振り分けのハッシュキーになる。
    """

    identifier: str
    email: str | None = None
    country: str | None = None
    custom: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("identifier cannot be empty")

    def get_attribute(self, name: str) -> str | None:
        """ターゲティングルールの比較属性を解決する。"""
        if name == "Identifier":
            return self.identifier
        if name == "Email":
            return self.email
        if name == "Country":
            return self.country
        return self.custom.get(name)


class Comparator(IntEnum):
    """ターゲティングルールの比較演算子。"""

    IN = 0
    NOT_IN = 1
    CONTAINS = 2
    NOT_CONTAINS = 3


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class RolloutRule(_WireModel):
    """ターゲティングルール。"""

    comparison_attribute: str = Field(alias="ComparisonAttribute")
    # 未知のコードも受け付け、評価時に不一致として扱う
    comparator: int = Field(alias="Comparator")
    comparison_value: str = Field(default="", alias="ComparisonValue")
    value: Any = Field(default=None, alias="Value")

    @field_validator("comparison_value", mode="before")
    @classmethod
    def _none_as_empty_string(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def comparator_kind(self) -> Comparator | None:
        try:
            return Comparator(self.comparator)
        except ValueError:
            return None

    def matches(self, attribute: str) -> bool:
        kind = self.comparator_kind
        if kind is Comparator.IN:
            return attribute in self._tokens()
        if kind is Comparator.NOT_IN:
            return attribute not in self._tokens()
        if kind is Comparator.CONTAINS:
            return self.comparison_value in attribute
        if kind is Comparator.NOT_CONTAINS:
            return self.comparison_value not in attribute
        return False

    def _tokens(self) -> list[str]:
        return [token.strip() for token in self.comparison_value.split(",")]


class RolloutPercentageItem(_WireModel):
    """パーセンテージ振り分けの 1 区画。"""

    percentage: int = Field(alias="Percentage", ge=0, le=100)
    value: Any = Field(default=None, alias="Value")


class FlagSetting(_WireModel):
    """フラグ 1 件分の評価定義。"""

    value: Any = Field(default=None, alias="Value")
    rollout_rules: list[RolloutRule] = Field(default_factory=list, alias="RolloutRules")
    rollout_percentage_items: list[RolloutPercentageItem] = Field(
        default_factory=list, alias="RolloutPercentageItems"
    )

    @field_validator("rollout_rules", "rollout_percentage_items", mode="before")
    @classmethod
    def _none_as_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value
