"""PID + hostname lock file utils

The lock file holds two lines: the PID of the holder (or the administrative
sentinel) and the hostname it runs on. Liveness of a holder can only be checked
for processes on the current host; holders on other hosts sharing the cache
directory are always waited for.
"""

import os
import time
from types import TracebackType
from typing import Callable, NamedTuple, Optional, Tuple, Type, Union

from git_refcache.constants import defaults

from .logging import get_logger
from .misc import get_hostname, pid_exists

logger = get_logger(__name__)


class LockError(Exception):
    def __init__(self, *args) -> None:  # noqa: ANN002
        super().__init__(*args)


class LockWaitTimeoutError(TimeoutError, LockError):
    def __init__(self) -> None:
        super().__init__("timed out waiting for lock file")


class LockRecord(NamedTuple):
    pid: Optional[int]
    hostname: str
    admin: bool = False

    @classmethod
    def parse(cls, text: str) -> Optional["LockRecord"]:
        """Returns None for an empty lock file"""
        lines = [line.strip() for line in text.splitlines()]
        lines = [line for line in lines if line]
        if not lines:
            return None

        hostname = lines[1] if len(lines) > 1 else ""
        if lines[0] == defaults.ADMIN_LOCK_SENTINEL:
            return cls(None, hostname, admin=True)
        try:
            return cls(int(lines[0]), hostname)
        except ValueError:
            # garbage is as good as nothing
            return None

    def dump(self) -> str:
        first = defaults.ADMIN_LOCK_SENTINEL if self.admin else str(self.pid)
        return f"{first}\n{self.hostname}\n"

    def __str__(self) -> str:
        if self.admin:
            return f"administrative lock set on {self.hostname or 'unknown host'}"
        return f"PID {self.pid} on {self.hostname or 'unknown host'}"


def stale_lock_delay(pid: Optional[int] = None) -> float:
    """Deterministic per-process delay after removing a stale lock.

    Waiters removing the same stale lock each wait a different amount, so they
    don't all race to recreate it at once.
    """
    if pid is None:
        pid = os.getpid()
    return defaults.STALE_LOCK_BASE_DELAY + (pid % 10) / 10


class ProcessLock:
    """
    Cross-invocation lock backed by a PID + hostname file.

    Example:
        with ProcessLock(root_dir / ".gitcache.lock", wait_timeout=60):
            ...
    """

    def __init__(
        self,
        file: Optional[Union[str, "os.PathLike[str]"]],
        wait_timeout: int = -1,
        allow_admin: bool = False,
        poll_interval: float = defaults.LOCK_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Args:
            file: lock file path. None makes every operation a no-op.
            wait_timeout: Number of seconds to wait for the lock.
                          If < 0, wait indefinitely.
                          If 0, try once and fail immediately if not available.
            allow_admin: do not wait on an administrative lock (used by 'unlock').
        """
        self.file = file
        self.wait_timeout = wait_timeout
        self.allow_admin = allow_admin
        self.poll_interval = poll_interval
        self._sleep = sleep
        self.record = LockRecord(os.getpid(), get_hostname())
        self.acquired = False
        self.admin_held = False

    def __enter__(self) -> "ProcessLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.release()

    def _read(self, file: str) -> Tuple[Optional[LockRecord], Optional[os.stat_result]]:
        """The parsed record and the stat of the file it was read from.

        Both are None if there is no lock file. The record alone is None for an
        empty or unreadable file.
        """
        try:
            with open(file) as f:
                stat = os.fstat(f.fileno())
                return LockRecord.parse(f.read()), stat
        except FileNotFoundError:
            return None, None

    def read_record(self) -> Optional[LockRecord]:
        if self.file is None:
            return None
        return self._read(os.fspath(self.file))[0]

    def _try_create(self, file: str) -> bool:
        # write the record aside, then hard link it into place so no other
        # process can ever observe a half written lock file
        tmp_file = f"{file}.{self.record.hostname}.{self.record.pid}.tmp"
        with open(tmp_file, "w") as f:
            f.write(self.record.dump())
        try:
            os.link(tmp_file, file)
        except FileExistsError:
            return False
        finally:
            os.remove(tmp_file)
        return True

    @staticmethod
    def _remove(file: str) -> None:
        try:
            os.remove(file)
        except FileNotFoundError:
            pass

    @staticmethod
    def _remove_if_unchanged(file: str, seen: os.stat_result) -> bool:
        """Removes file only if it is still the one seen, not a lock linked in since"""
        try:
            current = os.stat(file)
        except FileNotFoundError:
            return False
        if (current.st_dev, current.st_ino, current.st_size) != (seen.st_dev, seen.st_ino, seen.st_size):
            return False
        ProcessLock._remove(file)
        return True

    def is_stale(self, holder: LockRecord) -> bool:
        # a bare pid, without hostname, was written on this host
        return (
            not holder.admin
            and holder.pid is not None
            and holder.hostname in ("", self.record.hostname)
            and not pid_exists(holder.pid)
        )

    def acquire(self) -> None:
        """
        Block until the lock is ours.

        This method has no effect if the lock is already acquired.

        Raises:
            LockWaitTimeoutError: if wait_timeout runs out.
            OSError: for file errors other than the lock already existing.
        """
        if self.file is None or self.acquired:
            return
        file = os.fspath(self.file)

        start = time.monotonic()
        last_holder: Optional[LockRecord] = None
        while True:
            if self._try_create(file):
                logger.trace("lock acquired")
                self.acquired = True
                return

            holder, seen = self._read(file)
            if seen is None:
                # released between the two calls
                continue

            if holder is None:
                if self._remove_if_unchanged(file, seen):
                    logger.debug("removed empty lock file %s", file)
                continue

            if holder.admin and self.allow_admin:
                logger.debug("ignoring %s", holder)
                self.acquired = True
                return

            if holder == self.record:
                self.acquired = True
                return

            if self.is_stale(holder):
                if self._remove_if_unchanged(file, seen):
                    logger.info("Removed stale lock held by %s", holder)
                    self._sleep(stale_lock_delay())
                continue

            if self.wait_timeout >= 0 and time.monotonic() - start >= self.wait_timeout:
                raise LockWaitTimeoutError

            if holder != last_holder:
                logger.info("LOCKED by %s, waiting...", holder)
                last_holder = holder
            self._sleep(self.poll_interval)

    def release(self) -> None:
        """
        Remove the lock file if it still holds our record.

        Administrative locks set through hold_admin() are kept.
        This method has no effect if the lock is already released.
        """
        if self.file is None or not self.acquired:
            return

        self.acquired = False
        if self.admin_held:
            logger.debug("keeping administrative lock %s", self.file)
            return

        if self.read_record() == self.record:
            self._remove(os.fspath(self.file))
            logger.trace("lock released")
        else:
            logger.debug("lock file %s no longer ours on release", self.file)

    def hold_admin(self) -> None:
        """Turn an acquired lock into an administrative one, kept after exit"""
        if self.file is None:
            return
        if not self.acquired:
            raise LockError("lock must be acquired before setting an administrative hold")
        admin_record = LockRecord(None, self.record.hostname, admin=True)
        tmp_file = f"{self.file}.{self.record.hostname}.{self.record.pid}.tmp"
        with open(tmp_file, "w") as f:
            f.write(admin_record.dump())
        os.replace(tmp_file, self.file)
        self.admin_held = True

    def clear_admin(self) -> bool:
        """Remove an administrative lock. Returns False if there was none"""
        holder = self.read_record()
        if self.file is None or holder is None or not holder.admin:
            return False
        self._remove(os.fspath(self.file))
        self.acquired = False
        return True
