"""Stale lock files in a shared ccache directory

ccache marks a busy cache entry with a '*.lock' symlink whose target is
'<hostname>:<pid>:<unix-timestamp>'. A build host that dies leaves its locks
behind and every other host waits on them. This module lists those locks and
removes the ones left by a given host.
"""

import datetime
import os
import re
import time
from pathlib import Path
from typing import Dict, List, Mapping, NamedTuple, Optional, Tuple

from git_refcache.constants import defaults
from git_refcache.utils.logging import get_logger
from git_refcache.utils.misc import get_hostname, pid_exists

logger = get_logger(__name__)

NEAREST_DEPTH = 2
LOCK_SUFFIX = ".lock"


class CcacheLock(NamedTuple):
    path: Path
    """relative to the ccache directory"""
    hostname: str
    pid: int
    timestamp: int

    @property
    def target(self) -> str:
        return f"{self.hostname}:{self.pid}:{self.timestamp}"


class HostSummary(NamedTuple):
    count: int
    newest: int
    oldest: int
    oldest_pid: int


class CcacheSettings:
    """Settings taken from CCACHE_DIR, TOO_OLD, CLEANHOST and CHECKPROC"""

    def __init__(
        self,
        ccache_dir: Path,
        too_old: int = defaults.CCACHE_TOO_OLD,
        clean_host: Optional[str] = None,
        check_proc: bool = True,
    ) -> None:
        self.ccache_dir = ccache_dir
        self.too_old = too_old
        self.clean_host = clean_host or re.escape(get_hostname())
        self.check_proc = check_proc

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CcacheSettings":
        env = os.environ if environ is None else environ

        too_old = defaults.CCACHE_TOO_OLD
        value = env.get("TOO_OLD", "").strip()
        if value:
            try:
                too_old = max(0, int(value))
            except ValueError as ex:
                logger.warning("TOO_OLD: %s", ex)

        check_proc = env.get("CHECKPROC", "true").strip().lower() != "false"
        clean_host = env.get("CLEANHOST", "").strip() or None
        if clean_host is not None and clean_host != get_hostname():
            # pids of another host mean nothing here
            check_proc = False

        return cls(
            ccache_dir=Path(env.get("CCACHE_DIR", "").strip() or defaults.CCACHE_DIR),
            too_old=too_old,
            clean_host=clean_host,
            check_proc=check_proc,
        )

    def __repr__(self) -> str:
        return (
            f"CcacheSettings(ccache_dir={self.ccache_dir!r}, too_old={self.too_old!r}, "
            f"clean_host={self.clean_host!r}, check_proc={self.check_proc!r})"
        )


def parse_lock_target(target: str) -> Optional[Tuple[str, int, int]]:
    parts = target.strip().split(":")
    if len(parts) != 3 or not parts[0]:
        return None
    try:
        return parts[0], int(parts[1]), int(parts[2])
    except ValueError:
        return None


def find_locks(ccache_dir: Path, max_depth: Optional[int] = None) -> List[CcacheLock]:
    """Lock symlinks under ccache_dir, nearest first.

    Args:
        ccache_dir:
        max_depth: 1 means only directly in ccache_dir; None for no limit
    """
    locks = []
    for dirpath, dirnames, filenames in os.walk(ccache_dir):
        rel_dir = Path(dirpath).relative_to(ccache_dir)
        depth = len(rel_dir.parts)
        if max_depth is not None and depth + 1 >= max_depth:
            dirnames[:] = []
        dirnames.sort()

        for name in sorted(filenames):
            path = Path(dirpath) / name
            if not name.endswith(LOCK_SUFFIX) or not path.is_symlink():
                continue
            try:
                parsed = parse_lock_target(os.readlink(path))
            except OSError:
                # removed by its owner meanwhile
                continue
            if parsed is None:
                logger.debug("ignoring %s, not a ccache lock", path)
                continue
            locks.append(CcacheLock(rel_dir / name, *parsed))

    locks.sort(key=lambda lock: len(lock.path.parts))
    return locks


def summarize(locks: List[CcacheLock]) -> Dict[str, HostSummary]:
    """Lock count, newest and oldest timestamp per host, ordered by hostname"""
    summary: Dict[str, HostSummary] = {}
    for lock in locks:
        current = summary.get(lock.hostname)
        if current is None:
            summary[lock.hostname] = HostSummary(1, lock.timestamp, lock.timestamp, lock.pid)
            continue
        oldest, oldest_pid = current.oldest, current.oldest_pid
        if lock.timestamp <= oldest:
            oldest, oldest_pid = lock.timestamp, lock.pid
        summary[lock.hostname] = HostSummary(
            current.count + 1, max(current.newest, lock.timestamp), oldest, oldest_pid
        )
    return dict(sorted(summary.items()))


def format_timestamp(timestamp: int) -> str:
    stamp = datetime.datetime.fromtimestamp(timestamp, datetime.timezone.utc)
    return stamp.strftime("%a %b %d %H:%M:%S UTC %Y")


REPORT_HEADER = (
    "  COUNT\tNEWEST-TS\tEXPANDED_NEWEST_TIMESTAMP\tOLDEST-TS\t"
    "EXPANDED_OLDEST_TIMESTAMP\tOLDEST-PID\tCLEANHOST="
)


def lock_report(
    locks: List[CcacheLock], too_old: int, now: Optional[int] = None
) -> Tuple[List[str], int]:
    """Per host summary lines of locks, and the exit code.

    Returns:
        the report lines, and CCACHE_STALE_EXIT_CODE if the newest or the
        oldest lock is older than too_old seconds, else 0
    """
    if not locks:
        return ["ALL OK: No (stale/recent) lock files found"], 0

    if now is None:
        now = int(time.time())

    lines = [REPORT_HEADER, ""]
    for hostname, host in summarize(locks).items():
        lines.append(
            f"{host.count:6d}\t{host.newest}\t{format_timestamp(host.newest)}\t"
            f"{host.oldest}\t{format_timestamp(host.oldest)}\t{host.oldest_pid}\t{hostname}"
        )

    latest = max(lock.timestamp for lock in locks)
    oldest = min(lock.timestamp for lock in locks)
    lines.append("")
    lines.append(f"  NOW:\t{now}\t{format_timestamp(now)}")
    lines.append(f"LATEST:\t{latest}\t{format_timestamp(latest)}\t~{now - latest}")
    lines.append(f"OLDEST:\t{oldest}\t{format_timestamp(oldest)}\t~{now - oldest}")

    if now - latest > too_old or now - oldest > too_old:
        return lines, defaults.CCACHE_STALE_EXIT_CODE
    return lines, 0


def clean_locks(settings: CcacheSettings, locks: List[CcacheLock]) -> int:
    """Removes the locks of hosts matching settings.clean_host.

    With settings.check_proc, locks of a process still running on this host
    are kept.

    Returns:
        the number of removed locks
    """
    pattern = re.compile(settings.clean_host)
    removed = 0
    for lock in locks:
        if not pattern.search(lock.hostname):
            continue
        path = settings.ccache_dir / lock.path
        if settings.check_proc and pid_exists(lock.pid):
            logger.info(
                "SKIP: '%s': process %d still alive on %s", path, lock.pid, lock.hostname
            )
            continue

        logger.info("Removing '%s' (%s)", path, lock.target)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("'%s' already gone", path)
            continue
        removed += 1
    return removed
