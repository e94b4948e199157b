from unittest import mock

import pytest

from git_refcache.config import RefCacheConfig
from git_refcache.constants import filenames, keys
from git_refcache.session import Session

ENV_KEYS = [getattr(keys, name) for name in dir(keys) if name.startswith("ENV_")]


@pytest.fixture(autouse=True)
def patch_get_git_config():
    with mock.patch(
        "git_refcache.utils.git._get_git_config",
        return_value={},
    ):
        yield


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_KEYS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Committer")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "committer@example.com")


@pytest.fixture
def root_dir(tmp_path):
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def tmp_lock_file(tmp_path):
    return tmp_path / filenames.LOCK


@pytest.fixture
def rc_config(root_dir):
    return RefCacheConfig(
        root_dir=root_dir,
        use_lock=False,
        lock_wait_timeout=0,
        quiet_skip=False,
        max_parallel=4,
        fanout_mode="none",
        skip_refetch=False,
        zfs_dataset="",
    )


@pytest.fixture
def session(rc_config):
    return Session(rc_config)
