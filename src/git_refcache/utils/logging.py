import logging
import threading
from typing import Optional

TRACE = 5

# -q/--verbose adjust the index into this table, INFO is the default
_LEVELS = (logging.CRITICAL, logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG, TRACE)
_DEFAULT_LEVEL_INDEX = 3


class _Indent(threading.local):
    depth = 0


_indent = _Indent()


def get_indent() -> int:
    return _indent.depth


class LogSection:
    """Logs a title, then indents everything this thread logs inside the block"""

    def __init__(self, title: str, level: int = logging.DEBUG) -> None:
        self.title = title
        self.level = level
        self.logger = logging.getLogger(__name__)

    def __enter__(self) -> None:
        self.logger.log(self.level, self.title)
        _indent.depth += 1

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        _indent.depth = max(0, _indent.depth - 1)


def compute_log_level(verbose_count: int, quiet_count: int) -> int:
    index = _DEFAULT_LEVEL_INDEX + verbose_count - quiet_count
    return _LEVELS[min(max(index, 0), len(_LEVELS) - 1)]


class TimestampedFormatter(logging.Formatter):
    """One line per record, '[ts] msg' for INFO and '[ts] LEVEL: msg' otherwise"""

    default_time_format = "%Y-%m-%d %H:%M:%S"

    def format(self, record: logging.LogRecord) -> str:
        indent = "  " * get_indent()
        stamp = self.formatTime(record, self.datefmt)
        if record.levelno == logging.INFO:
            return f"[{stamp}] {indent}{record.getMessage()}"

        text = f"[{stamp}] {indent}{record.levelname}: {record.getMessage()}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def add_logging_level(level_name: str, level_num: int, method_name: Optional[str] = None) -> None:
    """Registers level_name as a logging level with a logger method of the same name.

    Adapted from https://stackoverflow.com/a/35804945/30199726, but a name that is
    already registered is left alone.
    """
    if not method_name:
        method_name = level_name.lower()

    if hasattr(logging, level_name):
        return

    def log_for_level(self, message, *args, **kwargs):  # noqa: ANN001 ANN202
        if self.isEnabledFor(level_num):
            self._log(level_num, message, args, **kwargs)

    def log_to_root(message, *args, **kwargs):  # noqa: ANN001 ANN202
        logging.log(level_num, message, *args, **kwargs)

    logging.addLevelName(level_num, level_name)
    setattr(logging, level_name, level_num)
    if not hasattr(logging.getLoggerClass(), method_name):
        setattr(logging.getLoggerClass(), method_name, log_for_level)
    if not hasattr(logging, method_name):
        setattr(logging, method_name, log_to_root)


add_logging_level("TRACE", TRACE)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logger(level: int) -> None:
    """Sets up the package logger. Safe to call more than once"""
    package_logger = logging.getLogger(__name__.split(".")[0])
    package_logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(TimestampedFormatter())
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
