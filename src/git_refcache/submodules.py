"""Submodule url discovery and recursive registration

Submodule urls are read from the .gitmodules file of every commit a remote's
branches and tags point at. Results are cached on disk per commit hash, since
a commit's .gitmodules never changes.
"""

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from git_refcache.constants import filenames
from git_refcache.errors import RefCacheError
from git_refcache.fetch import fetch
from git_refcache.registry import Remote, list_remotes, register
from git_refcache.session import Session
from git_refcache.types import RecurseMode, RegisterStatus
from git_refcache.utils.git import run_git_command, run_git_in
from git_refcache.utils.logging import LogSection, get_logger
from git_refcache.utils.misc import normalize_url, resolve_relative_url, unique_by_normalized

logger = get_logger(__name__)

_HASH_RE = re.compile(r"^[0-9a-f]{40}([0-9a-f]{24})?$")
_MANIFEST_URL_RE = re.compile(r"^\s*url\s*=\s*(.+?)\s*$", re.IGNORECASE)


class ManifestCache:
    """Submodule urls per commit hash, one file per hash.

    An empty file records a commit without a .gitmodules file. Writes go through
    a temporary file and a rename, so concurrent writers of the same hash are
    harmless.
    """

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = cache_dir

    def path(self, commit: str) -> Path:
        return self.cache_dir / commit[:2] / commit

    def get(self, commit: str) -> Optional[List[str]]:
        try:
            text = self.path(commit).read_text()
        except FileNotFoundError:
            return None
        return [line.strip() for line in text.splitlines() if line.strip()]

    def put(self, commit: str, urls: List[str]) -> None:
        path = self.path(commit)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f"{path.name}.{os.getpid()}.tmp")
        tmp_path.write_text("".join(f"{u}\n" for u in urls))
        os.replace(tmp_path, path)


def parse_manifest_urls(text: str) -> List[str]:
    """The 'url = ...' values of a .gitmodules file, in file order"""
    urls = []
    for line in text.splitlines():
        match = _MANIFEST_URL_RE.match(line)
        if match:
            urls.append(match.group(1).strip().strip('"'))
    return urls


def ls_remote_commits(url: str) -> Optional[List[str]]:
    """Distinct commit hashes the branches and tags of url point at.

    Peeled tags ('^{}') stand in for their annotated tag object.

    Returns:
        the hashes, or None if listing the remote failed
    """
    res = run_git_command(
        command="ls-remote", command_args=["--heads", "--tags", url], capture_output=True
    )
    if res.returncode != 0:
        logger.warning("FAILED: could not list refs of '%s' (exit %d)", url, res.returncode)
        return None

    refs: Dict[str, str] = {}
    for line in (res.stdout or b"").decode(errors="replace").splitlines():
        parts = line.split()
        if len(parts) != 2 or not _HASH_RE.match(parts[0]):
            continue
        commit, ref = parts
        if ref.endswith("^{}"):
            refs[ref[:-3]] = commit
        elif ref not in refs:
            refs[ref] = commit

    return list(dict.fromkeys(refs.values()))


def commit_exists(cache_dir: Path, commit: str) -> bool:
    res = run_git_in(cache_dir, "cat-file", ["-e", f"{commit}^{{commit}}"], capture_output=True)
    return res.returncode == 0


def extract_manifest_urls(cache_dir: Path, commit: str) -> Optional[List[str]]:
    """Submodule urls in .gitmodules at commit.

    Returns:
        the raw urls, an empty list if the commit has no .gitmodules, or None
        if the commit is not in the cache repository (yet).
    """
    if not commit_exists(cache_dir, commit):
        return None

    res = run_git_in(
        cache_dir, "show", [f"{commit}:{filenames.GITMODULES}"], capture_output=True
    )
    if res.returncode != 0:
        return []
    return parse_manifest_urls((res.stdout or b"").decode(errors="replace"))


def _commit_submodule_urls(
    cache: ManifestCache, cache_dir: Path, commit: str
) -> List[str]:
    urls = cache.get(commit)
    if urls is not None:
        return urls

    urls = extract_manifest_urls(cache_dir, commit)
    if urls is None:
        logger.debug("commit %s not in %s, not fetched yet?", commit, cache_dir)
        return []

    cache.put(commit, urls)
    return urls


def _locate(session: Session, urls: Iterable[str]) -> List[Remote]:
    by_url: Dict[str, Remote] = {}
    for remote in list_remotes(session, include_excluded=True):
        by_url.setdefault(normalize_url(remote.url), remote)

    located = []
    for url in unique_by_normalized(urls):
        remote = by_url.get(normalize_url(url))
        if remote is None:
            logger.warning("%s, cannot inspect submodules", RefCacheError.repo_not_found(url))
            continue
        located.append(remote)
    return located


def discover_submodule_urls(session: Session, urls: Iterable[str]) -> List[str]:
    """Submodule urls referenced by any branch or tag of the given urls.

    Every url must already be registered (and fetched, for commits to be
    readable). Relative submodule urls are resolved against their parent url.

    Returns:
        the discovered urls, deduplicated, in discovery order
    """
    remotes = _locate(session, urls)
    if not remotes:
        return []

    max_workers = min(session.config.max_parallel, len(remotes))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        listings: List[Tuple[Remote, Optional[List[str]]]] = list(
            zip(remotes, executor.map(lambda r: ls_remote_commits(r.url), remotes))
        )

    cache = ManifestCache(session.config.submodule_cache_dir)
    found: List[str] = []
    for remote, commits in listings:
        if commits is None:
            continue
        logger.debug("%s: %d distinct commits", remote.url, len(commits))
        for commit in commits:
            for raw_url in _commit_submodule_urls(cache, remote.cache_dir, commit):
                found.append(resolve_relative_url(remote.url, raw_url))

    return unique_by_normalized(found)


def discover_recursive(session: Session, urls: Iterable[str]) -> List[str]:
    """Transitive submodule urls, descending only into registered repositories"""
    registered = {normalize_url(r.url) for r in list_remotes(session, include_excluded=True)}
    seen = {normalize_url(u) for u in urls}
    found: List[str] = []
    queue = list(urls)
    while queue:
        discovered = discover_submodule_urls(session, queue)
        queue = []
        for url in discovered:
            key = normalize_url(url)
            if key in seen:
                continue
            seen.add(key)
            found.append(url)
            if key in registered:
                queue.append(url)
    return found


def register_recursive(
    session: Session,
    urls: Iterable[str],
    mode: RecurseMode = "new",
    fetch_first: bool = True,
) -> int:
    """Registers urls and, level by level, the submodule urls they reference.

    Args:
        session:
        urls: starting urls
        mode: 'new' to only descend into urls that were not registered before,
              'all' to descend into every url, catching submodules added on
              new branches of known repositories
        fetch_first: fetch each level before reading its submodules

    Returns:
        0, or the last non-zero result of a failed registration or fetch
    """
    res = 0
    queue = unique_by_normalized(urls)
    level = 0
    while queue:
        candidates = []
        with LogSection(f"submodule level {level}: {len(queue)} urls", level=logging.DEBUG):
            for url in queue:
                key = normalize_url(url)
                if key in session.inspected:
                    continue
                session.inspected.add(key)

                status = register(session, url)
                if status == RegisterStatus.ERROR:
                    res = 1
                    continue
                if status == RegisterStatus.OK or (mode == "all" and status.is_known()):
                    candidates.append(url)

            if not candidates:
                break

            if fetch_first:
                code = fetch(session, candidates, mode="verbose-parallel")
                if code != 0:
                    res = code

            discovered = discover_submodule_urls(session, candidates)

        queue = [u for u in discovered if normalize_url(u) not in session.inspected]
        if queue:
            logger.info("Found %d new submodule urls", len(queue))
        level += 1

    return res
