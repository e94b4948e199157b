"""Fetching registered remotes"""

import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from git_refcache.errors import RefCacheError
from git_refcache.fanout import shard_name
from git_refcache.registry import Registry, Remote, list_remotes
from git_refcache.session import Session
from git_refcache.types import FetchMode
from git_refcache.utils.git import run_git_in
from git_refcache.utils.logging import LogSection, get_logger
from git_refcache.utils.misc import normalize_url

logger = get_logger(__name__)


def select_targets(
    session: Session,
    urls: Optional[Iterable[str]] = None,
    include_excluded: bool = False,
) -> "OrderedDict[Path, List[Remote]]":
    """Remotes to fetch, grouped by cache repository.

    A url is selected once even if it is registered several times, in one or in
    several shards; the first occurrence in cache dir order wins.
    """
    wanted = {normalize_url(u): u for u in urls} if urls is not None else None
    grouped: "OrderedDict[Path, List[Remote]]" = OrderedDict()
    seen = set()
    for remote in list_remotes(session, include_excluded=True):
        key = normalize_url(remote.url)
        if wanted is not None and key not in wanted:
            continue
        if key in seen:
            logger.debug("skipping duplicate registration %s of '%s'", remote.repo_id, remote.url)
            continue
        seen.add(key)
        if not include_excluded and session.is_excluded(remote.url):
            continue
        if session.config.skip_refetch and session.was_fetched(remote.url):
            logger.debug("'%s' already fetched in this run", remote.url)
            continue
        grouped.setdefault(remote.cache_dir, []).append(remote)

    if wanted is not None:
        for key, url in wanted.items():
            if key not in seen:
                logger.warning(str(RefCacheError.repo_not_found(url)))

    return grouped


def _fetch_remote(remote: Remote, capture_output: bool = False) -> int:
    res = run_git_in(
        remote.cache_dir, "fetch", ["--prune", remote.repo_id], capture_output=capture_output
    )
    if res.returncode != 0 and capture_output and res.stderr:
        for line in res.stderr.decode(errors="replace").splitlines():
            logger.debug("%s: %s", remote.repo_id, line)
    return res.returncode


def _report(session: Session, remote: Remote, returncode: int) -> None:
    if returncode != 0:
        logger.warning(
            "FAILED: fetch of %s (%s) in %s exited with %d",
            remote.repo_id,
            remote.url,
            shard_name(session.config.root_dir, remote.cache_dir),
            returncode,
        )
    else:
        session.mark_fetched(remote.url)
        logger.info("OK: Fetched %s (%s)", remote.repo_id, remote.url)


def fetch_sequential(session: Session, targets: Dict[Path, List[Remote]]) -> int:
    res = 0
    for remotes in targets.values():
        for remote in remotes:
            with LogSection(f"=== {remote.repo_id} ({remote.url}):", level=logging.INFO):
                code = _fetch_remote(remote)
            _report(session, remote, code)
            if code != 0:
                res = code
    return res


def fetch_parallel(session: Session, targets: Dict[Path, List[Remote]]) -> int:
    remotes = [r for group in targets.values() for r in group]
    if not remotes:
        return 0

    max_workers = min(session.config.max_parallel, len(remotes))
    logger.info("Fetching %d remotes, up to %d at a time", len(remotes), max_workers)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        codes = list(executor.map(lambda r: _fetch_remote(r, capture_output=True), remotes))

    res = 0
    for remote, code in zip(remotes, codes):
        _report(session, remote, code)
        if code != 0:
            res = code
    return res


def _fetch_batch(session: Session, cache_dir: Path, remotes: List[Remote]) -> int:
    registry = Registry(cache_dir)
    shard = shard_name(session.config.root_dir, cache_dir)
    everything = {r.repo_id for r in remotes} == {r.repo_id for r in registry.remotes()}

    if everything:
        logger.info("Fetching all %d remotes in %s", len(remotes), shard)
        jobs = f"--jobs={session.config.max_parallel}"
        res = run_git_in(cache_dir, "fetch", ["--all", "--prune", jobs])
        if res.returncode != 0:
            # older git without parallel fetch, or a real failure: try once more
            res = run_git_in(cache_dir, "fetch", ["--all", "--prune"])
    else:
        logger.info("Fetching %d remotes in %s", len(remotes), shard)
        ids = [r.repo_id for r in remotes]
        res = run_git_in(cache_dir, "fetch", ["--multiple", "--prune", *ids])

    if res.returncode != 0:
        logger.warning(
            "FAILED: batched fetch in %s exited with %d, remotes: %s",
            shard,
            res.returncode,
            ", ".join(f"{r.repo_id} ({r.url})" for r in remotes),
        )
        return res.returncode

    for remote in remotes:
        session.mark_fetched(remote.url)
    logger.info("OK: Fetched %d remotes in %s", len(remotes), shard)
    return 0


def fetch_batched(session: Session, targets: Dict[Path, List[Remote]]) -> int:
    res = 0
    for cache_dir, remotes in targets.items():
        code = _fetch_batch(session, cache_dir, remotes)
        if code != 0:
            res = code
    return res


def fetch(
    session: Session,
    urls: Optional[Iterable[str]] = None,
    mode: FetchMode = "default",
    include_excluded: bool = False,
) -> int:
    """Fetches all registered remotes, or those matching urls.

    One failing remote never stops the others.

    Args:
        session:
        urls: restrict to these urls (compared normalized); None for all
        mode: 'default' for one batched git call per cache repository,
              'verbose-sequential' or 'verbose-parallel' for one call per remote
        include_excluded: also fetch remotes matching an exclusion pattern

    Returns:
        0, or the exit code of the last failed fetch
    """
    targets = select_targets(session, urls, include_excluded)
    if not targets:
        logger.info("Nothing to fetch")
        return 0

    if mode == "verbose-sequential":
        return fetch_sequential(session, targets)
    if mode == "verbose-parallel":
        return fetch_parallel(session, targets)
    return fetch_batched(session, targets)
