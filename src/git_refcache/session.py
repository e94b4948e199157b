import threading
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Set

from git_refcache.config import RefCacheConfig
from git_refcache.exclusion import ExclusionFilter
from git_refcache.utils.misc import normalize_url


class Session:
    """State shared by everything done in one invocation.

    Tracks which urls were already registered, inspected for submodules and
    fetched during this run, so repeated or cyclic references are handled once.
    """

    def __init__(
        self,
        config: RefCacheConfig,
        exclusion: Optional[ExclusionFilter] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.exclusion = (
            exclusion
            if exclusion is not None
            else ExclusionFilter.from_file(config.exclude_file, quiet=config.quiet_skip)
        )
        self._clock = clock
        self._lock = threading.Lock()

        self.registered: Dict[str, Path] = {}
        """normalized url -> cache dir it was registered in this run"""
        self.inspected: Set[str] = set()
        """normalized urls already walked for submodules"""
        self.fetched: Set[str] = set()
        """normalized urls fetched this run"""
        self._issued_ids: Dict[Path, Set[str]] = {}

    def is_excluded(self, url: str) -> bool:
        return self.exclusion.is_excluded(url)

    def was_registered(self, url: str) -> bool:
        return normalize_url(url) in self.registered

    def mark_registered(self, url: str, cache_dir: Path) -> None:
        self.registered.setdefault(normalize_url(url), cache_dir)

    def was_fetched(self, url: str) -> bool:
        return normalize_url(url) in self.fetched

    def mark_fetched(self, url: str) -> None:
        with self._lock:
            self.fetched.add(normalize_url(url))

    def new_repo_id(self, cache_dir: Path, taken: Set[str]) -> str:
        """A fresh 'repo-<unix-timestamp>' name unique within cache_dir.

        Names registered in the same second get a '-<n>' suffix.
        """
        with self._lock:
            issued = self._issued_ids.setdefault(cache_dir, set())
            base = f"repo-{int(self._clock())}"
            repo_id = base
            n = 0
            while repo_id in taken or repo_id in issued:
                n += 1
                repo_id = f"{base}-{n}"
            issued.add(repo_id)
            return repo_id
