from __future__ import annotations

from enum import Enum


class ImportErrorKind(str, Enum):
    IMPORT_ERROR = "ImportError"
    INVALID_CONFIG = "InvalidConfig"
    INVALID_SERVER = "InvalidServer"


class ConfigImportError(ValueError):
    def __init__(
        self,
        kind: ImportErrorKind,
        message: str,
        *,
        index: int | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.index = index
        self.field = field


class LauncherError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.retryable = retryable
