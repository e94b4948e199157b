"""URL exclusion patterns"""

import fnmatch
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)


class ExclusionFilter:
    """Ordered shell glob patterns vetoing urls.

    Lines starting with '#' and blank lines in the pattern file are ignored.
    Matching is case-insensitive, the first matching pattern wins.
    """

    def __init__(self, patterns: Sequence[str] = (), quiet: bool = False) -> None:
        self._patterns = [p.strip().lower() for p in patterns if p.strip()]
        self.quiet = quiet

    @classmethod
    def from_file(cls, path: Optional[Path], quiet: bool = False) -> "ExclusionFilter":
        if path is None:
            return cls(quiet=quiet)
        try:
            text = path.read_text()
        except FileNotFoundError:
            logger.debug("no exclusion file at %s", path)
            return cls(quiet=quiet)

        patterns = []
        for line in text.splitlines():
            line = line.strip()  # noqa: PLW2901
            if not line or line.startswith("#"):
                continue
            patterns.append(line)

        logger.debug("loaded %d exclusion patterns from %s", len(patterns), path)
        return cls(patterns, quiet=quiet)

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    def matching_pattern(self, url: str) -> Optional[str]:
        url_lc = url.strip().lower()
        for pattern in self._patterns:
            if fnmatch.fnmatchcase(url_lc, pattern):
                return pattern
        return None

    def is_excluded(self, url: str) -> bool:
        pattern = self.matching_pattern(url)
        if pattern is None:
            return False

        level = logging.DEBUG if self.quiet else logging.INFO
        logger.log(level, "SKIP: Repo '%s' excluded by pattern '%s'", url, pattern)
        return True
