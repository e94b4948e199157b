import os
from pathlib import Path
from typing import Any, Optional

from git_refcache.constants import defaults, filenames, keys
from git_refcache.errors import ConfigError
from git_refcache.types import FANOUT_MODES, FanoutMode
from git_refcache.utils.git import get_git_config_value
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)

TRUE_STRINGS = {"true", "1", "y", "yes", "on"}


class RefCacheConfig:
    """Settings for one invocation.

    Every value comes from, in order of precedence: the constructor argument
    (CLI), the environment, git config, the built-in default.
    """

    def __init__(
        self,
        root_dir: Optional[Path] = None,
        use_lock: Optional[bool] = None,
        lock_wait_timeout: Optional[int] = None,
        exclude_file: Optional[Path] = None,
        quiet_skip: Optional[bool] = None,
        max_parallel: Optional[int] = None,
        fanout_mode: Optional[str] = None,
        skip_refetch: Optional[bool] = None,
        zfs_dataset: Optional[str] = None,
    ) -> None:
        self._root_dir = root_dir if root_dir is not None else Path(get_root_dir())
        self._use_lock = use_lock if use_lock is not None else get_use_lock()
        self._lock_wait_timeout = (
            lock_wait_timeout if lock_wait_timeout is not None else get_lock_wait_timeout()
        )
        self._exclude_file = (
            exclude_file if exclude_file is not None else get_exclude_file(self._root_dir)
        )
        self._quiet_skip = quiet_skip if quiet_skip is not None else get_quiet_skip()
        self._max_parallel = max(
            1, max_parallel if max_parallel is not None else get_max_parallel()
        )
        self._fanout_mode = check_fanout_mode(
            fanout_mode if fanout_mode is not None else get_fanout_mode()
        )
        self._skip_refetch = skip_refetch if skip_refetch is not None else get_skip_refetch()
        self._zfs_dataset = zfs_dataset if zfs_dataset is not None else get_zfs_dataset()

    @classmethod
    def from_cli_namespace(cls, args: Any) -> "RefCacheConfig":  # noqa: ANN401
        root_dir = Path(args.root_dir) if getattr(args, "root_dir", None) else None
        return cls(
            root_dir=root_dir,
            use_lock=getattr(args, "use_lock", None),
            lock_wait_timeout=getattr(args, "lock_timeout", None),
            max_parallel=getattr(args, "max_parallel", None),
            fanout_mode=getattr(args, "fanout", None),
        )

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    @property
    def use_lock(self) -> bool:
        return self._use_lock

    @property
    def lock_wait_timeout(self) -> int:
        return self._lock_wait_timeout

    @property
    def lock_file(self) -> Path:
        return self._root_dir / filenames.LOCK

    @property
    def exclude_file(self) -> Path:
        return self._exclude_file

    @property
    def submodule_cache_dir(self) -> Path:
        return self._root_dir / filenames.SUBMODULE_CACHE_DIR

    @property
    def quiet_skip(self) -> bool:
        return self._quiet_skip

    @property
    def max_parallel(self) -> int:
        return self._max_parallel

    @property
    def fanout_mode(self) -> FanoutMode:
        return self._fanout_mode

    @property
    def skip_refetch(self) -> bool:
        return self._skip_refetch

    @property
    def zfs_dataset(self) -> Optional[str]:
        return self._zfs_dataset

    def __eq__(self, value: Any) -> bool:  # noqa: ANN401
        if not isinstance(value, type(self)):
            return NotImplemented
        return vars(self) == vars(value)

    def __repr__(self) -> str:
        type_name = type(self).__name__
        arg_strings = []
        for name, value in list(self.__dict__.items()):
            arg_strings.append(f"{name.lstrip('_')}={value!r}")
        return f"{type_name}({', '.join(arg_strings)})"


def check_fanout_mode(mode: str) -> FanoutMode:
    mode = (mode or defaults.FANOUT_MODE).lower().strip()
    if mode not in FANOUT_MODES:
        raise ConfigError(f"unsupported fan-out mode '{mode}', expected one of {FANOUT_MODES}")
    return mode  # type: ignore


def _parse_bool(value: str) -> bool:
    return value.lower().strip() in TRUE_STRINGS


def _get_env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _get_int(env_name: str, git_key: str) -> Optional[int]:
    for source, value in (("env", _get_env(env_name)), ("git", get_git_config_value(git_key))):
        if not value:
            continue
        try:
            return int(value.strip())
        except ValueError as ex:
            logger.warning("%s: %s", env_name if source == "env" else git_key, ex)
    return None


def _get_bool(env_name: str, git_key: str) -> Optional[bool]:
    value = _get_env(env_name)
    if value is not None:
        return _parse_bool(value)
    value = get_git_config_value(git_key)
    if value is not None:
        return _parse_bool(value)
    return None


def get_root_dir() -> str:
    value = _get_env(keys.ENV_ROOT_DIR)
    if value:
        return value
    value = get_git_config_value(keys.GIT_CONFIG_ROOT_DIR)
    if value and value.strip():
        return value.strip()
    return defaults.ROOT_DIR


def get_exclude_file(root_dir: Path) -> Path:
    value = _get_env(keys.ENV_EXCLUDE_FILE) or get_git_config_value(keys.GIT_CONFIG_EXCLUDE_FILE)
    if value and value.strip():
        return Path(value.strip())
    return root_dir / filenames.EXCLUDE


def get_use_lock() -> bool:
    skip = _get_env(keys.ENV_SKIP_LOCK)
    if skip is not None:
        return not _parse_bool(skip)
    value = get_git_config_value(keys.GIT_CONFIG_USE_LOCK)
    if value is not None:
        return _parse_bool(value)
    return defaults.USE_LOCK


def get_lock_wait_timeout() -> int:
    value = _get_int(keys.ENV_LOCK_TIMEOUT, keys.GIT_CONFIG_LOCK_TIMEOUT)
    return value if value is not None else defaults.LOCK_TIMEOUT


def get_quiet_skip() -> bool:
    value = _get_bool(keys.ENV_QUIET_SKIP, keys.GIT_CONFIG_QUIET_SKIP)
    return value if value is not None else defaults.QUIET_SKIP


def get_max_parallel() -> int:
    value = _get_int(keys.ENV_MAX_PARALLEL, keys.GIT_CONFIG_MAX_PARALLEL)
    return value if value is not None else defaults.MAX_PARALLEL


def get_fanout_mode() -> str:
    """Fan-out mode from the environment, else git config.

    A bad value in git config is only warned about, a bad value in the
    environment is fatal (see check_fanout_mode).
    """
    value = _get_env(keys.ENV_FANOUT_MODE)
    if value is not None:
        return value

    key = keys.GIT_CONFIG_FANOUT_MODE
    value = get_git_config_value(key)
    if value:
        value = value.lower().strip()
        if value in FANOUT_MODES:
            return value
        logger.warning("%s %s not one of %s", key, value, FANOUT_MODES)

    return defaults.FANOUT_MODE


def get_skip_refetch() -> bool:
    value = _get_bool(keys.ENV_SKIP_REFETCH, keys.GIT_CONFIG_SKIP_REFETCH)
    return value if value is not None else defaults.SKIP_REFETCH


def get_zfs_dataset() -> Optional[str]:
    value = _get_env(keys.ENV_ZFS_DATASET) or get_git_config_value(keys.GIT_CONFIG_ZFS_DATASET)
    if value and value.strip():
        return value.strip()
    return None
