import os
from unittest import mock

import pytest

from git_refcache.utils.misc import get_hostname
from git_refcache.utils.process_lock import (
    LockError,
    LockRecord,
    LockWaitTimeoutError,
    ProcessLock,
    stale_lock_delay,
)
from tests.fixtures import clean_env, patch_get_git_config, tmp_lock_file  # noqa: F401

DEAD_PID = 999999999


def write_record(path, record):
    path.write_text(record.dump())


def test_record_parse():
    assert LockRecord.parse("123\nhost\n") == LockRecord(123, "host")
    assert LockRecord.parse("ADMIN_LOCK\nhost\n") == LockRecord(None, "host", admin=True)
    assert LockRecord.parse("123") == LockRecord(123, "")
    assert LockRecord.parse("") is None
    assert LockRecord.parse("\n\n") is None
    assert LockRecord.parse("garbage\nhost") is None


def test_stale_lock_delay():
    assert stale_lock_delay(10) == pytest.approx(0.5)
    assert stale_lock_delay(17) == pytest.approx(1.2)


def test_acquire_and_release(tmp_lock_file):
    with ProcessLock(tmp_lock_file) as lock:
        assert lock.acquired
        assert LockRecord.parse(tmp_lock_file.read_text()) == LockRecord(os.getpid(), get_hostname())
    assert not tmp_lock_file.exists()
    assert not list(tmp_lock_file.parent.glob("*.tmp"))


def test_no_file_is_a_noop():
    with ProcessLock(None) as lock:
        assert not lock.acquired


def test_stale_lock_is_removed(tmp_lock_file):
    write_record(tmp_lock_file, LockRecord(DEAD_PID, get_hostname()))
    sleep = mock.Mock()

    with ProcessLock(tmp_lock_file, wait_timeout=0, sleep=sleep) as lock:
        assert lock.acquired
        assert LockRecord.parse(tmp_lock_file.read_text()).pid == os.getpid()

    sleep.assert_called_once_with(stale_lock_delay())


def test_empty_lock_file_is_replaced(tmp_lock_file):
    tmp_lock_file.touch()
    with ProcessLock(tmp_lock_file, wait_timeout=0) as lock:
        assert lock.acquired


def test_live_holder_times_out(tmp_lock_file):
    # pid 1 always exists
    write_record(tmp_lock_file, LockRecord(1, get_hostname()))
    lock = ProcessLock(tmp_lock_file, wait_timeout=0, sleep=mock.Mock())

    with pytest.raises(LockWaitTimeoutError):
        lock.acquire()
    assert LockRecord.parse(tmp_lock_file.read_text()).pid == 1


def test_other_host_is_never_stale(tmp_lock_file):
    write_record(tmp_lock_file, LockRecord(DEAD_PID, "some-other-host"))
    lock = ProcessLock(tmp_lock_file, wait_timeout=0, sleep=mock.Mock())

    with pytest.raises(LockWaitTimeoutError):
        lock.acquire()


def test_waits_until_released(tmp_lock_file):
    write_record(tmp_lock_file, LockRecord(1, get_hostname()))

    def release_on_first_poll(_seconds):
        tmp_lock_file.unlink()

    sleep = mock.Mock(side_effect=release_on_first_poll)
    with ProcessLock(tmp_lock_file, wait_timeout=-1, poll_interval=0.25, sleep=sleep) as lock:
        assert lock.acquired
    sleep.assert_called_once_with(0.25)


def test_admin_lock_survives_release(tmp_lock_file):
    with ProcessLock(tmp_lock_file) as lock:
        lock.hold_admin()

    assert LockRecord.parse(tmp_lock_file.read_text()).admin

    waiter = ProcessLock(tmp_lock_file, wait_timeout=0, sleep=mock.Mock())
    with pytest.raises(LockWaitTimeoutError):
        waiter.acquire()

    with ProcessLock(tmp_lock_file, wait_timeout=0, allow_admin=True) as unlocker:
        assert unlocker.clear_admin()
        assert not unlocker.clear_admin()
    assert not tmp_lock_file.exists()


def test_hold_admin_requires_acquired_lock(tmp_lock_file):
    with pytest.raises(LockError):
        ProcessLock(tmp_lock_file).hold_admin()


def test_release_keeps_foreign_lock(tmp_lock_file):
    lock = ProcessLock(tmp_lock_file)
    lock.acquire()
    write_record(tmp_lock_file, LockRecord(1, "elsewhere"))
    lock.release()
    assert tmp_lock_file.exists()


def test_bare_pid_lock_is_local(tmp_lock_file):
    tmp_lock_file.write_text(f"{DEAD_PID}\n")
    with ProcessLock(tmp_lock_file, wait_timeout=0, sleep=mock.Mock()) as lock:
        assert lock.acquired


def test_lock_linked_in_after_read_is_kept(tmp_lock_file):
    tmp_lock_file.touch()
    other_waiter = LockRecord(4242, "other-host")
    original_read = ProcessLock._read  # noqa: SLF001
    swapped = []

    def read_then_swap(lock, file):
        result = original_read(lock, file)
        if not swapped:
            # the empty file goes away and another waiter links its lock in
            os.remove(file)
            write_record(tmp_lock_file, other_waiter)
            swapped.append(file)
        return result

    with mock.patch.object(ProcessLock, "_read", autospec=True, side_effect=read_then_swap):
        lock = ProcessLock(tmp_lock_file, wait_timeout=0, sleep=mock.Mock())
        with pytest.raises(LockWaitTimeoutError):
            lock.acquire()

    assert not lock.acquired
    assert LockRecord.parse(tmp_lock_file.read_text()) == other_waiter


def test_stale_lock_replaced_after_read_is_kept(tmp_lock_file):
    write_record(tmp_lock_file, LockRecord(DEAD_PID, get_hostname()))
    other_waiter = LockRecord(4242, "x" * (len(get_hostname()) + 10))
    original_read = ProcessLock._read  # noqa: SLF001
    swapped = []

    def read_then_swap(lock, file):
        result = original_read(lock, file)
        if not swapped:
            os.remove(file)
            write_record(tmp_lock_file, other_waiter)
            swapped.append(file)
        return result

    sleep = mock.Mock()
    with mock.patch.object(ProcessLock, "_read", autospec=True, side_effect=read_then_swap):
        with pytest.raises(LockWaitTimeoutError):
            ProcessLock(tmp_lock_file, wait_timeout=0, sleep=sleep).acquire()

    assert LockRecord.parse(tmp_lock_file.read_text()) == other_waiter
    sleep.assert_not_called()


def test_lock_released_before_read(tmp_lock_file):
    write_record(tmp_lock_file, LockRecord(1, get_hostname()))
    original_read = ProcessLock._read  # noqa: SLF001

    def release_then_read(lock, file):
        if os.path.exists(file):
            os.remove(file)
        return original_read(lock, file)

    with mock.patch.object(ProcessLock, "_read", autospec=True, side_effect=release_then_read):
        lock = ProcessLock(tmp_lock_file, wait_timeout=0, sleep=mock.Mock())
        lock.acquire()

    assert lock.acquired
    assert LockRecord.parse(tmp_lock_file.read_text()).pid == os.getpid()
