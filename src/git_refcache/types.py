import enum
from typing import Literal

FanoutMode = Literal[
    "none",
    "verbatim",
    "basename",
    "basename-fallback",
    "hash",
    "hash-fallback",
    "auto",
]
FANOUT_MODES = [
    "none",
    "verbatim",
    "basename",
    "basename-fallback",
    "hash",
    "hash-fallback",
    "auto",
]

FetchMode = Literal["default", "verbose-sequential", "verbose-parallel"]

RecurseMode = Literal["new", "all"]
RECURSE_MODES = ["new", "all"]


class RegisterStatus(enum.Enum):
    OK = enum.auto()
    SKIP_EXCLUDED = enum.auto()
    SKIP_ALREADY_REGISTERED_THIS_RUN = enum.auto()
    SKIP_ALREADY_REGISTERED_PERSISTED = enum.auto()
    ERROR = enum.auto()

    def is_known(self) -> bool:
        """True if the url ends up registered, whether just now or before"""
        return self in {
            RegisterStatus.OK,
            RegisterStatus.SKIP_ALREADY_REGISTERED_THIS_RUN,
            RegisterStatus.SKIP_ALREADY_REGISTERED_PERSISTED,
        }
