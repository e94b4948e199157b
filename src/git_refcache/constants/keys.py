# git config keys
GIT_CONFIG_BASE = "refcache"

GIT_CONFIG_ROOT_DIR = f"{GIT_CONFIG_BASE}.rootdir"
GIT_CONFIG_EXCLUDE_FILE = f"{GIT_CONFIG_BASE}.excludefile"
GIT_CONFIG_USE_LOCK = f"{GIT_CONFIG_BASE}.uselock"
GIT_CONFIG_LOCK_TIMEOUT = f"{GIT_CONFIG_BASE}.locktimeout"
GIT_CONFIG_QUIET_SKIP = f"{GIT_CONFIG_BASE}.quietskip"
GIT_CONFIG_MAX_PARALLEL = f"{GIT_CONFIG_BASE}.maxparallel"
GIT_CONFIG_FANOUT_MODE = f"{GIT_CONFIG_BASE}.fanout"
GIT_CONFIG_SKIP_REFETCH = f"{GIT_CONFIG_BASE}.skiprefetch"
GIT_CONFIG_ZFS_DATASET = f"{GIT_CONFIG_BASE}.zfsdataset"

# environment variables, these take precedence over git config
ENV_ROOT_DIR = "GIT_REFCACHE_DIR"
ENV_EXCLUDE_FILE = "GIT_REFCACHE_EXCLUDE_FILE"
ENV_SKIP_LOCK = "GIT_REFCACHE_SKIP_LOCK"
ENV_LOCK_TIMEOUT = "GIT_REFCACHE_LOCK_TIMEOUT"
ENV_QUIET_SKIP = "GIT_REFCACHE_QUIET_SKIP"
ENV_MAX_PARALLEL = "GIT_REFCACHE_MAX_PARALLEL"
ENV_FANOUT_MODE = "GIT_REFCACHE_FANOUT"
ENV_SKIP_REFETCH = "GIT_REFCACHE_SKIP_REFETCH"
ENV_ZFS_DATASET = "GIT_REFCACHE_ZFS_DATASET"
