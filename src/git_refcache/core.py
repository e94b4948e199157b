from typing import List, Optional

from git_refcache import maintenance, registry, submodules
from git_refcache.config import RefCacheConfig
from git_refcache.fetch import fetch
from git_refcache.registry import Remote
from git_refcache.session import Session
from git_refcache.types import FetchMode, RecurseMode, RegisterStatus
from git_refcache.utils.logging import get_logger
from git_refcache.utils.process_lock import ProcessLock

logger = get_logger(__name__)


def _snapshot_after(session: Session, res: int) -> int:
    if res == 0:
        maintenance.zfs_snapshot(session)
    return res


# region add


def add_main(session: Session, urls: List[str]) -> int:
    res = 0
    for url in urls:
        if registry.register(session, url) == RegisterStatus.ERROR:
            res = 1
    return _snapshot_after(session, res)


def checkout_main(session: Session, urls: List[str]) -> int:
    """Registers urls and fetches them right away"""
    res = 0
    registered = []
    for url in urls:
        status = registry.register(session, url)
        if status == RegisterStatus.ERROR:
            res = 1
        elif status.is_known():
            registered.append(url)

    if registered:
        code = fetch(session, registered, mode="verbose-sequential")
        if code != 0:
            res = code
    return _snapshot_after(session, res)


def add_recursive_main(session: Session, urls: List[str], mode: RecurseMode = "new") -> int:
    res = submodules.register_recursive(session, urls, mode=mode)
    return _snapshot_after(session, res)


# endregion add

# region delete


def delete_main(session: Session, substrings: List[str]) -> int:
    res = 0
    for substring in substrings:
        code = registry.unregister(session, substring)
        if code != 0:
            res = code
    return _snapshot_after(session, res)


def dedup_main(session: Session, urls: Optional[List[str]] = None) -> int:
    res = registry.dedup(session, urls or None)
    return _snapshot_after(session, res)


# endregion delete

# region list


def list_main(session: Session, urls: Optional[List[str]] = None) -> List[Remote]:
    return registry.list_remotes(session, urls or None)


def list_recursive_main(session: Session, urls: Optional[List[str]] = None) -> List[str]:
    if not urls:
        urls = [r.url for r in registry.list_remotes(session)]
    return submodules.discover_recursive(session, urls)


# endregion list

# region fetch


def fetch_main(
    session: Session,
    urls: Optional[List[str]] = None,
    mode: FetchMode = "default",
    include_excluded: bool = False,
) -> int:
    res = fetch(session, urls or None, mode=mode, include_excluded=include_excluded)
    return _snapshot_after(session, res)


# endregion fetch

# region maintenance


def gc_main(session: Session) -> int:
    return _snapshot_after(session, maintenance.gc(session))


def repack_main(session: Session, parallel: bool = False) -> int:
    if parallel:
        res = maintenance.repack_parallel(session)
    else:
        res = maintenance.repack(session)
    return _snapshot_after(session, res)


# endregion maintenance

# region lock


def lock_main(config: RefCacheConfig) -> int:
    """Sets an administrative lock, blocking every other run until unlock"""
    config.root_dir.mkdir(parents=True, exist_ok=True)
    lock = ProcessLock(config.lock_file, wait_timeout=config.lock_wait_timeout)
    with lock:
        lock.hold_admin()
    logger.info("OK: Locked %s", config.root_dir)
    return 0


def unlock_main(config: RefCacheConfig) -> int:
    if not config.lock_file.exists():
        logger.info("SKIP: %s was not administratively locked", config.root_dir)
        return 0

    lock = ProcessLock(config.lock_file, wait_timeout=config.lock_wait_timeout, allow_admin=True)
    with lock:
        if lock.clear_admin():
            logger.info("OK: Unlocked %s", config.root_dir)
        else:
            logger.info("SKIP: %s was not administratively locked", config.root_dir)
    return 0


# endregion lock
