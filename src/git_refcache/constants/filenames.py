LOCK = ".gitcache.lock"
"""process lock file name in the root dir"""

EXCLUDE = ".gitcache.exclude"
"""default exclusion pattern file name in the root dir"""

SUBMODULE_CACHE_DIR = ".gitcache.submodules"
"""per-commit .gitmodules url cache"""

GITMODULES = ".gitmodules"
