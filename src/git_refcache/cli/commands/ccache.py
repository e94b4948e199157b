"""find and clean stale ccache lock files

A build host that dies while compiling leaves '*.lock' symlinks in a shared
ccache directory, and every other host stalls on them.

  ls, ls-all        print the lock files, nearest levels or all levels
  list, list-all    summarize lock files per host, exit 42 if any is older
                    than TOO_OLD seconds
  clean-two, clean  remove lock files of CLEANHOST (a regex, default this
                    host), nearest levels or all levels. With CHECKPROC,
                    locks of processes still running here are kept

Settings come from the environment: CCACHE_DIR (default /mnt/.ccache/),
TOO_OLD (default 120), CLEANHOST and CHECKPROC (default true).
"""

import argparse
from typing import List, Optional

from git_refcache.ccache import (
    NEAREST_DEPTH,
    CcacheSettings,
    clean_locks,
    find_locks,
    lock_report,
)
from git_refcache.cli.arguments import CLIArgumentNamespace
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)

ACTIONS = {
    "ls": "ls",
    "ls-two": "ls",
    "ls-all": "ls-all",
    "list": "list",
    "list-two": "list",
    "find": "list",
    "show": "list",
    "list-all": "list-all",
    "find-all": "list-all",
    "show-all": "list-all",
    "clean-two": "clean-two",
    "clean": "clean",
    "clean-all": "clean",
}


def add_subparser(subparsers, parents: List[argparse.ArgumentParser]) -> argparse.ArgumentParser:  # noqa: ANN001
    parser = subparsers.add_parser(
        "ccache-locks",
        help="find and clean stale ccache lock files",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main)
    parser.add_argument(
        "ccache_action",
        nargs="?",
        default="clean",
        choices=sorted(ACTIONS),
        metavar="action",
        help="one of: ls, ls-all, list, list-all, clean-two, clean (the default)",
    )
    return parser


def setup(subparsers, parents: List[argparse.ArgumentParser]) -> None:  # noqa: ANN001
    add_subparser(subparsers, parents)


def print_listing(settings: CcacheSettings, max_depth: Optional[int] = NEAREST_DEPTH) -> None:
    for lock in find_locks(settings.ccache_dir, max_depth):
        print(f"./{lock.path} -> {lock.target}")


def print_summary(settings: CcacheSettings, levels: str, all_levels: bool) -> int:
    print("If a hostname is reported more than a couple times, likely a stale file blocks others")
    print(f"Looking for existing lock files in {levels} subdir levels ...")
    print("")
    locks = find_locks(settings.ccache_dir, None if all_levels else NEAREST_DEPTH)
    lines, res = lock_report(locks, settings.too_old)
    for line in lines:
        print(line)

    if locks:
        if res == 0:
            print(
                "ALL OK: Some stale/recent lock files were found, "
                f"but none were older than {settings.too_old} sec"
            )
        else:
            logger.warning(
                "FAILED: Some stale/recent lock files were found to be older than %d sec",
                settings.too_old,
            )
    return res


def clean(settings: CcacheSettings, all_levels: bool) -> int:
    logger.info(
        "Cleaning for builder %s (with CHECKPROC=%s) in nearest levels...",
        settings.clean_host,
        str(settings.check_proc).lower(),
    )
    removed = clean_locks(settings, find_locks(settings.ccache_dir, NEAREST_DEPTH))
    if all_levels:
        logger.info("Cleaning for builder %s in all levels...", settings.clean_host)
        removed += clean_locks(settings, find_locks(settings.ccache_dir))
    logger.info("OK: Removed %d lock files", removed)
    return 0


def cli_main(args: CLIArgumentNamespace) -> int:
    action = ACTIONS[args.ccache_action]
    logger.debug("running ccache-locks %s", action)

    settings = CcacheSettings.from_env()
    logger.debug(settings)
    if not settings.ccache_dir.is_dir():
        logger.error("ccache directory %s not found", settings.ccache_dir)
        return 1

    if action in ("ls", "ls-all"):
        print("Listing all lock-files in nearest levels first...")
        print_listing(settings)
        if action == "ls-all":
            print("Listing all lock-files in all levels...")
            print_listing(settings, max_depth=None)
        return 0

    if action in ("list", "list-all"):
        all_levels = action == "list-all"
        return print_summary(settings, "all" if all_levels else "nearest", all_levels)

    return clean(settings, all_levels=action == "clean")
