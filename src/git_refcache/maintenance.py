"""Compaction of cache repositories and filesystem snapshots"""

import datetime
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List

from git_refcache.fanout import cache_dirs, shard_name
from git_refcache.session import Session
from git_refcache.utils.git import run_command, run_git_in
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)

GC_ARGS = ["--prune=now"]
REPACK_ARGS = ["-A", "-d"]


def _run_in(session: Session, cache_dir: Path, command: str, args: List[str]) -> int:
    shard = shard_name(session.config.root_dir, cache_dir)
    logger.info("Running git %s in %s", command, shard)
    res = run_git_in(cache_dir, command, args)
    if res.returncode != 0:
        logger.warning("FAILED: git %s in %s exited with %d", command, shard, res.returncode)
    else:
        logger.info("OK: git %s in %s", command, shard)
    return res.returncode


def _run_everywhere(session: Session, command: str, args: List[str]) -> int:
    res = 0
    dirs = cache_dirs(session.config.root_dir)
    if not dirs:
        logger.info("No cache repositories under %s", session.config.root_dir)
    for cache_dir in dirs:
        code = _run_in(session, cache_dir, command, args)
        if code != 0:
            res = code
    return res


def gc(session: Session) -> int:
    return _run_everywhere(session, "gc", GC_ARGS)


def repack(session: Session) -> int:
    return _run_everywhere(session, "repack", REPACK_ARGS)


def repack_parallel(session: Session) -> int:
    """Repacks all cache repositories, several at a time"""
    dirs = cache_dirs(session.config.root_dir)
    if not dirs:
        logger.info("No cache repositories under %s", session.config.root_dir)
        return 0

    with ThreadPoolExecutor(max_workers=min(session.config.max_parallel, len(dirs))) as executor:
        codes = list(executor.map(lambda d: _run_in(session, d, "repack", REPACK_ARGS), dirs))

    res = 0
    for code in codes:
        if code != 0:
            res = code
    return res


def snapshot_name(now: datetime.datetime) -> str:
    return "git-refcache-" + now.strftime("%Y%m%dT%H%M%SZ")


def zfs_snapshot(session: Session) -> int:
    """Snapshots the configured ZFS dataset, if any.

    Failure is only warned about; the cache itself is fine either way.
    """
    dataset = session.config.zfs_dataset
    if not dataset:
        return 0

    name = f"{dataset}@{snapshot_name(datetime.datetime.now(datetime.timezone.utc))}"
    try:
        res = run_command(["zfs", "snapshot", name])
    except FileNotFoundError:
        logger.warning("zfs command not found, no snapshot taken")
        return 1

    if res.returncode != 0:
        logger.warning("FAILED: zfs snapshot %s exited with %d", name, res.returncode)
    else:
        logger.info("OK: Created snapshot %s", name)
    return res.returncode
