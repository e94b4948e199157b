from pathlib import Path

ROOT_DIR = str(Path.home() / ".local" / "share" / "git-refcache")
USE_LOCK = True
LOCK_TIMEOUT = -1
QUIET_SKIP = False
MAX_PARALLEL = 8
FANOUT_MODE = "none"
SKIP_REFETCH = False

LOCK_POLL_INTERVAL = 1.0
"""seconds between checks of a held lock"""

STALE_LOCK_BASE_DELAY = 0.5
"""seconds to wait after removing a stale lock, before jitter"""

ADMIN_LOCK_SENTINEL = "ADMIN_LOCK"

NO_PUSH_URL = "no_push"
"""push url set on every registered remote"""

CCACHE_DIR = "/mnt/.ccache/"
CCACHE_TOO_OLD = 120
"""seconds after which a ccache lock counts as stale"""

CCACHE_STALE_EXIT_CODE = 42

JENKINSFILE = "Jenkinsfile"
JENKINS_SETTINGS_FILE = ".jenkinsfile-check"
