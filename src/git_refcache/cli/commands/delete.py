"""unregister repositories

Every registered remote whose url or id contains one of the given substrings
(ignoring case) is removed. Nothing matching is not an error.
"""

import argparse
from typing import List

from git_refcache.cli.arguments import CLIArgumentNamespace
from git_refcache.cli.utils import non_empty_string, run_in_session
from git_refcache.config import RefCacheConfig
from git_refcache.core import dedup_main, delete_main
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)


def add_subparser(subparsers, parents: List[argparse.ArgumentParser]) -> argparse.ArgumentParser:  # noqa: ANN001
    parser = subparsers.add_parser(
        "del",
        aliases=["delete", "remove", "rm"],
        help="unregister repositories",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main)
    parser.add_argument("urls", type=non_empty_string, nargs="+", metavar="substring")
    return parser


def add_dedup_subparser(subparsers, parents: List[argparse.ArgumentParser]) -> argparse.ArgumentParser:  # noqa: ANN001
    parser = subparsers.add_parser(
        "dedup-references",
        help="drop duplicate registrations of a url, keeping the newest",
        description="drop duplicate registrations of a url, keeping the newest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=dedup_cli_main)
    parser.add_argument("urls", type=non_empty_string, nargs="*", metavar="url")
    return parser


def setup(subparsers, parents: List[argparse.ArgumentParser]) -> None:  # noqa: ANN001
    add_subparser(subparsers, parents)
    add_dedup_subparser(subparsers, parents)


def cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running del subcommand")

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(config, lambda session: delete_main(session, args.urls))


def dedup_cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running dedup-references subcommand")

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(config, lambda session: dedup_main(session, args.urls))
