"""remote_config ライブラリの例外型定義"""

from __future__ import annotations


class RemoteConfigError(Exception):
    """remote_config ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class RemoteConfigErrorCodes:
    """RemoteConfigError のエラーコード定数。"""

    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
    PARSE_JSON: str = "PARSE_JSON_ERROR"
    UNSUPPORTED_MODE: str = "UNSUPPORTED_MODE"
