import enum
from typing import Optional


class RefCacheErrorType(enum.Enum):
    REPO_INIT_FAILED = enum.auto()
    REPO_NOT_FOUND = enum.auto()
    LOCK_FAILED = enum.auto()
    GIT_COMMAND_FAILED = enum.auto()
    HTTP_REQUEST_FAILED = enum.auto()


class ConfigError(ValueError):
    """Unusable configuration. Fatal for the whole invocation"""


class RefCacheError:
    def __init__(
        self,
        error_type: RefCacheErrorType,
        msg: Optional[str] = None,
        returncode: int = 1,
    ) -> None:
        self.type = error_type
        self.msg = msg
        self.returncode = returncode
        self.ex: Optional[Exception] = None

    @classmethod
    def repo_init_failed(cls, path: str, returncode: int = 1) -> "RefCacheError":
        msg = f"could not create bare repository at {path}"
        return cls(RefCacheErrorType.REPO_INIT_FAILED, msg, returncode)

    @classmethod
    def repo_not_found(cls, url: str) -> "RefCacheError":
        return cls(RefCacheErrorType.REPO_NOT_FOUND, f"not registered in cache: {url}")

    @classmethod
    def lock_failed(cls, cause: Exception) -> "RefCacheError":
        obj = cls(RefCacheErrorType.LOCK_FAILED, f"could not acquire lock: {cause}")
        obj.ex = cause
        return obj

    @classmethod
    def git_command_failed(
        cls, msg: Optional[str] = None, returncode: int = 1
    ) -> "RefCacheError":
        return cls(RefCacheErrorType.GIT_COMMAND_FAILED, msg or "git command failed", returncode)

    @classmethod
    def http_request_failed(cls, cause: Exception) -> "RefCacheError":
        obj = cls(RefCacheErrorType.HTTP_REQUEST_FAILED, f"request failed: {cause}")
        obj.ex = cause
        return obj

    def __str__(self) -> str:
        return self.msg or ""

    def __repr__(self) -> str:
        return f"RefCacheError({self.type}, {self.msg!r}, returncode={self.returncode})"
