import argparse
from typing import Callable

from git_refcache.config import RefCacheConfig
from git_refcache.errors import RefCacheError
from git_refcache.session import Session
from git_refcache.utils.logging import get_logger
from git_refcache.utils.misc import signal_guard
from git_refcache.utils.process_lock import LockWaitTimeoutError, ProcessLock

logger = get_logger(__name__)


def non_empty_string(value: str) -> str:
    if not value.strip():
        raise argparse.ArgumentTypeError(  # noqa: TRY003
            "value cannot be empty or only whitespace"
        )
    return value


def run_in_session(config: RefCacheConfig, action: Callable[[Session], int]) -> int:
    """Runs action holding the cache lock, unless locking is disabled.

    The lock is released on termination signals too.

    Returns:
        the action's exit code, or 1 if the lock could not be had
    """
    logger.debug(config)
    try:
        config.root_dir.mkdir(parents=True, exist_ok=True)
    except OSError as ex:
        logger.error("cannot create %s: %s", config.root_dir, ex)
        return 1

    lock = ProcessLock(config.lock_file if config.use_lock else None, config.lock_wait_timeout)
    with signal_guard():
        try:
            lock.acquire()
        except LockWaitTimeoutError as ex:
            logger.warning(str(RefCacheError.lock_failed(ex)))
            return 1
        except OSError as ex:
            logger.error("cannot lock %s: %s", config.lock_file, ex)
            return 1

        try:
            return action(Session(config))
        finally:
            lock.release()
