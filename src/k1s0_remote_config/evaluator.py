"""ロールアウト評価器

設定ドキュメントとユーザーからフラグ値を決定する。評価は純粋関数で、
ドキュメント不在やキー不在は例外にせずログを出して既定値を返す。
未知の比較演算子を持つルールは一致しないものとして読み飛ばす。
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from .logger import ConfigLogger, get_logger
from .models import FlagSetting, ProjectConfig, RolloutPercentageItem, RolloutRule, User

_NO_MATCH = object()


def percentage_bucket(key: str, identifier: str) -> int:
    """key と identifier から 0-99 のバケットを決定的に算出する。"""
    digest = hashlib.sha1(f"{key}{identifier}".encode()).hexdigest()
    return int(digest[:7], 16) % 100


class RolloutEvaluator:
    """ターゲティングルールとパーセンテージ振り分けでフラグ値を評価する。"""

    def __init__(self, logger: ConfigLogger | None = None) -> None:
        self._logger = logger or get_logger(__name__)

    def evaluate(
        self,
        config: ProjectConfig | None,
        key: str,
        default_value: Any,
        user: User | None = None,
    ) -> Any:
        if config is None or config.config_json is None:
            self._logger.error("config JSON is not present, returning default value", key=key)
            return default_value

        if key not in config.config_json:
            self._logger.error("unknown flag key, returning default value", key=key)
            return default_value

        entry = config.config_json[key]
        if not isinstance(entry, Mapping):
            self._logger.error("flag setting is not an object, returning default value", key=key)
            return default_value

        try:
            setting = FlagSetting.model_validate(entry)
        except ValidationError as e:
            # ルールが読めない場合はフラグ自身の値で評価を打ち切る
            self._logger.error(
                "invalid rollout definition, returning flag value", key=key, error=str(e)
            )
            return entry.get("Value")

        if user is None:
            return setting.value

        result = self._evaluate_rules(setting.rollout_rules, user)
        if result is _NO_MATCH:
            result = self._evaluate_percentage_items(setting.rollout_percentage_items, key, user)
        return setting.value if result is _NO_MATCH else result

    def _evaluate_rules(self, rules: list[RolloutRule], user: User) -> Any:
        for rule in rules:
            attribute = user.get_attribute(rule.comparison_attribute)
            if not attribute:
                continue
            if rule.matches(attribute):
                return rule.value
        return _NO_MATCH

    def _evaluate_percentage_items(
        self, items: list[RolloutPercentageItem], key: str, user: User
    ) -> Any:
        if not items:
            return _NO_MATCH
        bucket = percentage_bucket(key, user.identifier)
        cumulative = 0
        for item in items:
            # 累積しきい値を超えた最初の区画を採用する
            cumulative += item.percentage
            if bucket < cumulative:
                return item.value
        return _NO_MATCH
