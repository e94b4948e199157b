import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest import mock

import pytest

from git_refcache import fetch as fetch_module
from git_refcache import registry
from git_refcache.config import RefCacheConfig
from git_refcache.exclusion import ExclusionFilter
from git_refcache.fetch import fetch, select_targets
from git_refcache.registry import Registry
from git_refcache.session import Session
from tests.fixtures import clean_env, patch_get_git_config, rc_config, root_dir, session  # noqa: F401
from tests.t_utils import create_source_repo, file_url, git


@pytest.fixture
def sources(tmp_path):
    src_dir = tmp_path / "src"
    src_dir.mkdir()
    repos = [create_source_repo(src_dir, name) for name in ("one", "two", "three")]
    git("tag", "v1.0", cwd=repos[0])
    return repos


def remote_ref(root_dir, url, ref):
    (remote,) = [r for r in Registry(root_dir).remotes() if r.url == url]
    return git("-C", str(root_dir), "rev-parse", f"refs/remotes/{remote.repo_id}/{ref}").strip()


def head(repo_dir):
    return git("rev-parse", "HEAD", cwd=repo_dir).strip()


def register_all(session, urls):
    for url in urls:
        registry.register(session, url)


@pytest.mark.parametrize("mode", ["default", "verbose-sequential", "verbose-parallel"])
def test_fetch_everything(session, root_dir, sources, mode):
    urls = [file_url(s) for s in sources]
    register_all(session, urls)

    assert fetch(session, mode=mode) == 0

    for source, url in zip(sources, urls):
        assert remote_ref(root_dir, url, "main") == head(source)
        assert session.was_fetched(url)
    assert remote_ref(root_dir, urls[0], "tags/v1.0") == head(sources[0])


@pytest.mark.parametrize("mode", ["verbose-sequential", "verbose-parallel"])
def test_one_failure_does_not_stop_the_others(session, root_dir, sources, tmp_path, mode):
    good = [file_url(sources[0]), file_url(sources[2])]
    bad = file_url(tmp_path / "missing")
    register_all(session, [good[0], bad, good[1]])

    assert fetch(session, mode=mode) != 0

    assert remote_ref(root_dir, good[0], "main") == head(sources[0])
    assert remote_ref(root_dir, good[1], "main") == head(sources[2])
    assert not session.was_fetched(bad)


def test_injected_failure_is_reported(session, sources):
    urls = [file_url(s) for s in sources]
    register_all(session, urls)
    failing = Registry(session.config.root_dir).find(urls[1])[0]

    real_run_git_in = fetch_module.run_git_in

    def fail_one(repo_dir, command, command_args=None, capture_output=False):
        if command == "fetch" and command_args and failing.repo_id in command_args:
            return mock.Mock(returncode=7, stderr=b"")
        return real_run_git_in(repo_dir, command, command_args, capture_output)

    with mock.patch("git_refcache.fetch.run_git_in", side_effect=fail_one), mock.patch.object(
        fetch_module.logger, "warning"
    ) as mocked_warning:
        assert fetch(session, mode="verbose-sequential") == 7

    mocked_warning.assert_called_once()
    assert failing.repo_id in mocked_warning.call_args[0]
    assert urls[1] in mocked_warning.call_args[0]
    assert session.was_fetched(urls[0])
    assert session.was_fetched(urls[2])


def test_selected_urls_use_multiple(session, sources):
    urls = [file_url(s) for s in sources]
    register_all(session, urls)
    wanted = Registry(session.config.root_dir).find(urls[1])[0]

    real_run_git_in = fetch_module.run_git_in
    with mock.patch("git_refcache.fetch.run_git_in", wraps=real_run_git_in) as mocked:
        assert fetch(session, [urls[1] + "/"]) == 0

    mocked.assert_called_once_with(
        session.config.root_dir, "fetch", ["--multiple", "--prune", wanted.repo_id]
    )
    assert session.was_fetched(urls[1])
    assert not session.was_fetched(urls[0])


def test_fetch_all_uses_jobs(session, sources):
    register_all(session, [file_url(s) for s in sources])

    real_run_git_in = fetch_module.run_git_in
    with mock.patch("git_refcache.fetch.run_git_in", wraps=real_run_git_in) as mocked:
        assert fetch(session) == 0

    mocked.assert_called_once_with(
        session.config.root_dir, "fetch", ["--all", "--prune", "--jobs=4"]
    )


def test_excluded_remotes_are_skipped(rc_config, sources):
    urls = [file_url(s) for s in sources]
    register_all(Session(rc_config), urls)

    session = Session(rc_config, exclusion=ExclusionFilter(["*/two"]))
    targets = select_targets(session)
    assert sorted(r.url for group in targets.values() for r in group) == sorted(
        [urls[0], urls[2]]
    )

    targets = select_targets(session, include_excluded=True)
    assert len([r for group in targets.values() for r in group]) == 3


def test_duplicate_registrations_fetched_once(session, root_dir, sources):
    url = file_url(sources[0])
    reg = Registry(root_dir)
    reg.ensure_repo()
    reg.add_remote("repo-1", url)
    reg.add_remote("repo-2", url + "/")

    targets = select_targets(session, [url])
    assert [r.repo_id for group in targets.values() for r in group] == ["repo-1"]


def test_skip_refetch(root_dir, sources):
    config = RefCacheConfig(root_dir=root_dir, use_lock=False, skip_refetch=True, zfs_dataset="")
    session = Session(config)
    url = file_url(sources[0])
    registry.register(session, url)

    assert fetch(session, [url], mode="verbose-sequential") == 0
    with mock.patch("git_refcache.fetch.run_git_in") as mocked:
        assert fetch(session, [url], mode="verbose-sequential") == 0
    mocked.assert_not_called()


def test_nothing_registered(session):
    assert fetch(session) == 0


@pytest.fixture
def fanout_session(root_dir):
    config = RefCacheConfig(
        root_dir=root_dir, use_lock=False, max_parallel=4, fanout_mode="basename", zfs_dataset=""
    )
    return Session(config)


def test_one_batched_fetch_per_shard(fanout_session, root_dir, sources):
    urls = [file_url(s) for s in sources]
    register_all(fanout_session, urls)

    real_run_git_in = fetch_module.run_git_in
    with mock.patch("git_refcache.fetch.run_git_in", wraps=real_run_git_in) as mocked:
        assert fetch(fanout_session) == 0

    assert mocked.call_args_list == [
        mock.call(root_dir / name, "fetch", ["--all", "--prune", "--jobs=4"])
        for name in ("one", "three", "two")
    ]
    for source, url in zip(sources, urls):
        (remote,) = [r for r in registry.list_remotes(fanout_session) if r.url == url]
        assert remote.cache_dir == root_dir / source.name
        assert fanout_session.was_fetched(url)


def test_url_in_several_shards_fetched_once(fanout_session, root_dir, sources):
    one, two = file_url(sources[0]), file_url(sources[1])
    first, second = Registry(root_dir / "s1"), Registry(root_dir / "s2")
    for reg in (first, second):
        reg.ensure_repo()
    first.add_remote("repo-1", one)
    first.add_remote("repo-2", two)
    second.add_remote("repo-3", one)

    real_run_git_in = fetch_module.run_git_in
    with mock.patch("git_refcache.fetch.run_git_in", wraps=real_run_git_in) as mocked:
        assert fetch(fanout_session) == 0

    mocked.assert_called_once_with(root_dir / "s1", "fetch", ["--all", "--prune", "--jobs=4"])
    assert fanout_session.was_fetched(one)
    assert fanout_session.was_fetched(two)


@pytest.mark.parametrize(("max_parallel", "workers"), [(2, 2), (8, 3)])
def test_parallel_fetch_pool_size(root_dir, sources, max_parallel, workers):
    config = RefCacheConfig(
        root_dir=root_dir, use_lock=False, max_parallel=max_parallel, zfs_dataset=""
    )
    session = Session(config)
    register_all(session, [file_url(s) for s in sources])

    with mock.patch("git_refcache.fetch.ThreadPoolExecutor", wraps=ThreadPoolExecutor) as pool:
        assert fetch(session, mode="verbose-parallel") == 0

    pool.assert_called_once_with(max_workers=workers)


def test_parallel_fetch_overlap_is_bounded(root_dir, sources):
    config = RefCacheConfig(root_dir=root_dir, use_lock=False, max_parallel=2, zfs_dataset="")
    session = Session(config)
    register_all(session, [file_url(s) for s in sources])

    guard = threading.Lock()
    running = [0]
    peak = [0]

    def slow_fetch(remote, capture_output=False):
        with guard:
            running[0] += 1
            peak[0] = max(peak[0], running[0])
        time.sleep(0.05)
        with guard:
            running[0] -= 1
        return 0

    with mock.patch("git_refcache.fetch._fetch_remote", side_effect=slow_fetch) as mocked:
        assert fetch(session, mode="verbose-parallel") == 0

    assert mocked.call_count == 3
    assert peak[0] <= 2


def test_unregistered_url_is_reported(session, sources):
    register_all(session, [file_url(sources[0])])

    with mock.patch.object(fetch_module.logger, "warning") as mocked_warning:
        assert fetch(session, ["https://h/unknown.git"]) == 0

    mocked_warning.assert_called_once_with("not registered in cache: https://h/unknown.git")


def test_excluded_selection_is_logged_not_missing(rc_config, sources):
    url = file_url(sources[1])
    register_all(Session(rc_config), [url])
    session = Session(rc_config, exclusion=ExclusionFilter(["*/two"]))

    with mock.patch("git_refcache.exclusion.logger") as mocked_logger, mock.patch.object(
        fetch_module.logger, "warning"
    ) as mocked_warning:
        assert select_targets(session, [url]) == {}

    mocked_logger.log.assert_called_once()
    assert url in mocked_logger.log.call_args[0]
    mocked_warning.assert_not_called()
