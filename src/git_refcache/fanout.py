"""Fan-out of the cache over several bare repositories

In fan-out mode each url lives in its own bare repository (a shard) below the
root dir instead of in the root repository itself. The mode decides the shard
directory name:

    verbatim            the url as a relative path, e.g. github.com/user/repo.git
    basename            last url path element, e.g. repo
    hash                sha256 of the normalized url
    auto                an existing hash shard, else an existing basename
                        shard (repo or repo.git), else a new hash shard
    *-fallback          like basename/hash, but use the root repository when the
                        shard does not exist yet
"""

import hashlib
import os
import re
from pathlib import Path
from typing import List, Optional

from git_refcache.constants import filenames
from git_refcache.errors import ConfigError
from git_refcache.types import FANOUT_MODES
from git_refcache.utils.git import is_bare_repo, is_git_repo
from git_refcache.utils.logging import get_logger
from git_refcache.utils.misc import normalize_url, url_basename

logger = get_logger(__name__)

GIT_DIR_ENTRIES = {"objects", "refs", "hooks", "info", "logs", "branches", "worktrees"}
"""directories of a bare repository that never hold shards"""


def url_hash(url: str) -> str:
    return hashlib.sha256(normalize_url(url).encode()).hexdigest()


def url_verbatim_path(url: str) -> str:
    """Relative directory path spelled like the url.

    Examples:
        https://user@github.com/user/repo.git → github.com/user/repo.git
        git@github.com:user/repo.git → github.com/user/repo.git
    """
    path = url.strip()
    path = re.sub(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", "", path)
    # user info
    path = re.sub(r"^[^/@]*@", "", path)
    # scp-like host:path
    path = re.sub(r"^([^/:]+):(?!\d+/)", r"\1/", path)
    parts = [p for p in re.split(r"/+", path) if p not in {"", ".", ".."}]
    return "/".join(parts)


def subrepo_dir(root_dir: Path, url: str, mode: str) -> Optional[Path]:
    """Returns the shard directory for url.

    Args:
        root_dir: top-level cache dir
        url: remote url
        mode: one of FANOUT_MODES

    Returns:
        the shard path, the root_dir for fallback modes without a shard yet, or
        None when fan-out does not apply (mode 'none').

    Raises:
        ConfigError: unsupported mode
    """
    if mode not in FANOUT_MODES:
        raise ConfigError(f"unsupported fan-out mode '{mode}'")

    if mode == "none":
        return None

    if mode == "verbatim":
        return root_dir / url_verbatim_path(url)

    if mode == "auto":
        hashed = root_dir / url_hash(url)
        if is_git_repo(hashed):
            return hashed
        name = url_basename(url)
        for candidate in (root_dir / name, root_dir / f"{name}.git"):
            if is_git_repo(candidate):
                return candidate
        return hashed

    base_mode, _, fallback = mode.partition("-")
    if base_mode == "basename":
        path = root_dir / url_basename(url)
    else:
        path = root_dir / url_hash(url)

    if fallback and not is_git_repo(path):
        logger.debug("no shard at %s, falling back to %s", path, root_dir)
        return root_dir

    return path


def cache_dir_for(root_dir: Path, url: str, mode: str) -> Path:
    """The bare repository a url belongs in under the given mode"""
    path = subrepo_dir(root_dir, url, mode)
    return root_dir if path is None else path


def cache_dirs(root_dir: Path) -> List[Path]:
    """The root repository and every shard below it.

    Shards are sorted by depth, then name. Directories inside a repository and
    the submodule manifest cache are not searched.
    """
    found: List[Path] = []
    root_is_repo = is_bare_repo(root_dir)
    if root_is_repo:
        found.append(root_dir)
    if not root_dir.is_dir():
        return found

    for dirpath, dirnames, _ in os.walk(root_dir):
        current = Path(dirpath)
        if current != root_dir and is_bare_repo(current):
            found.append(current)
            dirnames[:] = []
            continue
        if current == root_dir:
            skipped = {filenames.SUBMODULE_CACHE_DIR}
            if root_is_repo:
                skipped |= GIT_DIR_ENTRIES
            dirnames[:] = [d for d in dirnames if d not in skipped]

    return sorted(found, key=lambda p: (len(p.relative_to(root_dir).parts), str(p)))


def shard_name(root_dir: Path, cache_dir: Path) -> str:
    """Shard path relative to the root, '.' for the root repository"""
    if cache_dir == root_dir:
        return "."
    return str(cache_dir.relative_to(root_dir))
