"""Remote registration in cache repositories

Every registered url is a remote of a bare repository, named
'repo-<unix-timestamp>'. The git remote configuration is the registry; there is
no other metadata store.
"""

import re
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from git_refcache.constants import defaults
from git_refcache.errors import RefCacheError
from git_refcache.fanout import cache_dir_for, cache_dirs
from git_refcache.session import Session
from git_refcache.types import RegisterStatus
from git_refcache.utils.git import is_bare_repo, run_git_in
from git_refcache.utils.logging import get_logger
from git_refcache.utils.misc import normalize_url

logger = get_logger(__name__)

_REMOTE_LINE_RE = re.compile(r"^(\S+)\s+(.*?)\s+\((fetch|push)\)$")
_REPO_ID_RE = re.compile(r"^repo-(\d+)(?:-(\d+))?$")


class Remote(NamedTuple):
    repo_id: str
    url: str
    cache_dir: Path


class Registry:
    """The remotes of one bare cache repository"""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = cache_dir

    def exists(self) -> bool:
        return is_bare_repo(self.cache_dir)

    def ensure_repo(self) -> Optional[RefCacheError]:
        """Creates the bare repository if needed"""
        if self.exists():
            return None

        logger.info("Creating bare repository %s", self.cache_dir)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as ex:
            logger.warning("cannot create %s: %s", self.cache_dir, ex)
            return RefCacheError.repo_init_failed(str(self.cache_dir))

        res = run_git_in(self.cache_dir, "init", ["--bare", "--quiet"])
        if res.returncode != 0:
            return RefCacheError.repo_init_failed(str(self.cache_dir), res.returncode)

        # no gc behind our back while other clones may reference us
        res = run_git_in(self.cache_dir, "config", ["gc.auto", "0"])
        if res.returncode != 0:
            return RefCacheError.repo_init_failed(str(self.cache_dir), res.returncode)
        return None

    def remotes(self) -> List[Remote]:
        if not self.exists():
            return []

        res = run_git_in(self.cache_dir, "remote", ["-v"], capture_output=True)
        if res.returncode != 0:
            logger.warning("cannot list remotes of %s", self.cache_dir)
            return []

        remotes = []
        for line in (res.stdout or b"").decode(errors="replace").splitlines():
            match = _REMOTE_LINE_RE.match(line.strip())
            if match and match.group(3) == "fetch":
                remotes.append(Remote(match.group(1), match.group(2), self.cache_dir))
        return remotes

    def find(self, url: str) -> List[Remote]:
        normalized = normalize_url(url)
        return [r for r in self.remotes() if normalize_url(r.url) == normalized]

    def add_remote(self, repo_id: str, url: str) -> Optional[RefCacheError]:
        """Adds a fetch-only remote. Tags go to the remote's own namespace."""
        steps = [
            ("remote", ["add", repo_id, url]),
            ("remote", ["set-url", "--push", repo_id, defaults.NO_PUSH_URL]),
            ("config", [f"remote.{repo_id}.tagopt", "--no-tags"]),
            (
                "config",
                ["--add", f"remote.{repo_id}.fetch", f"+refs/tags/*:refs/remotes/{repo_id}/tags/*"],
            ),
        ]
        for command, args in steps:
            res = run_git_in(self.cache_dir, command, args)
            if res.returncode != 0:
                if command != "remote" or args[0] != "add":
                    self.remove_remote(repo_id)
                return RefCacheError.git_command_failed(
                    f"could not register {url} as {repo_id}", res.returncode
                )
        return None

    def remove_remote(self, repo_id: str) -> int:
        res = run_git_in(self.cache_dir, "remote", ["remove", repo_id])
        return res.returncode


def registry_for(session: Session, url: str) -> Registry:
    config = session.config
    return Registry(cache_dir_for(config.root_dir, url, config.fanout_mode))


def all_registries(session: Session) -> List[Registry]:
    return [Registry(d) for d in cache_dirs(session.config.root_dir)]


def _log_skip(session: Session, msg: str, *args: object) -> None:
    if session.config.quiet_skip:
        logger.debug(msg, *args)
    else:
        logger.info(msg, *args)


def register(session: Session, url: str) -> RegisterStatus:
    """Registers url as a remote of its cache repository.

    Nothing is created on disk for an excluded url.
    """
    url = url.strip()
    if session.is_excluded(url):
        return RegisterStatus.SKIP_EXCLUDED

    if session.was_registered(url):
        _log_skip(session, "SKIP: Repo '%s' already registered in this run", url)
        return RegisterStatus.SKIP_ALREADY_REGISTERED_THIS_RUN

    registry = registry_for(session, url)
    err = registry.ensure_repo()
    if err:
        logger.warning("ERROR: %s", err)
        return RegisterStatus.ERROR

    existing = registry.find(url)
    if existing:
        session.mark_registered(url, registry.cache_dir)
        _log_skip(
            session, "SKIP: Repo '%s' already registered as %s", url, existing[0].repo_id
        )
        return RegisterStatus.SKIP_ALREADY_REGISTERED_PERSISTED

    taken = {r.repo_id for r in registry.remotes()}
    repo_id = session.new_repo_id(registry.cache_dir, taken)
    err = registry.add_remote(repo_id, url)
    if err:
        logger.warning("ERROR: %s", err)
        return RegisterStatus.ERROR

    session.mark_registered(url, registry.cache_dir)
    logger.info("OK: Registered repo '%s' as %s", url, repo_id)
    return RegisterStatus.OK


def unregister(session: Session, substring: str) -> int:
    """Removes every remote whose url or id contains substring (case-insensitive).

    Returns:
        the last non-zero git exit code, else 0. No match is not an error.
    """
    needle = substring.strip().lower()
    matches = [
        remote
        for registry in all_registries(session)
        for remote in registry.remotes()
        if needle and (needle in remote.url.lower() or needle in remote.repo_id.lower())
    ]
    if not matches:
        _log_skip(session, "SKIP: Repo '%s' not registered", substring)
        return 0

    res = 0
    for remote in matches:
        code = Registry(remote.cache_dir).remove_remote(remote.repo_id)
        if code != 0:
            logger.warning("ERROR: could not remove %s (%s)", remote.repo_id, remote.url)
            res = code
        else:
            logger.info("OK: Unregistered %s (%s)", remote.repo_id, remote.url)
    return res


def list_remotes(
    session: Session,
    urls: Optional[Iterable[str]] = None,
    include_excluded: bool = False,
) -> List[Remote]:
    """Registered remotes of every cache repository, in cache dir order.

    Args:
        urls: if given, only remotes whose url equals one of these, ignoring case
        include_excluded: also return remotes matching an exclusion pattern
    """
    wanted = {u.strip().lower() for u in urls} if urls else None
    result = []
    for registry in all_registries(session):
        for remote in registry.remotes():
            if wanted is not None and remote.url.lower() not in wanted:
                continue
            if not include_excluded and session.exclusion.matching_pattern(remote.url):
                continue
            result.append(remote)
    return result


def _repo_id_age_key(repo_id: str) -> Tuple[int, int]:
    match = _REPO_ID_RE.match(repo_id)
    if not match:
        return (-1, 0)
    return (int(match.group(1)), int(match.group(2) or 0))


def dedup(session: Session, urls: Optional[Iterable[str]] = None) -> int:
    """Drops duplicate registrations of a url, keeping the newest RepoID.

    Duplicates are looked for within each cache repository.
    """
    wanted = {normalize_url(u) for u in urls} if urls else None
    res = 0
    for registry in all_registries(session):
        groups: Dict[str, List[Remote]] = OrderedDict()
        for remote in registry.remotes():
            key = normalize_url(remote.url)
            if wanted is not None and key not in wanted:
                continue
            groups.setdefault(key, []).append(remote)

        for remotes in groups.values():
            if len(remotes) < 2:
                continue
            ordered = sorted(remotes, key=lambda r: _repo_id_age_key(r.repo_id))
            keep = ordered[-1]
            for remote in ordered[:-1]:
                code = registry.remove_remote(remote.repo_id)
                if code != 0:
                    logger.warning("ERROR: could not remove duplicate %s", remote.repo_id)
                    res = code
                else:
                    logger.info(
                        "OK: Removed %s, duplicate of %s for '%s'",
                        remote.repo_id,
                        keep.repo_id,
                        remote.url,
                    )
    return res
