"""fetch registered repositories

Without urls every registered, non-excluded remote is fetched. By default each
cache repository is fetched with one git call; -v/-vs fetches remote by remote
showing git's output, -vp does that several remotes at a time.
"""

import argparse
from typing import List

from git_refcache.cli.arguments import CLIArgumentNamespace
from git_refcache.cli.utils import non_empty_string, run_in_session
from git_refcache.config import RefCacheConfig
from git_refcache.core import fetch_main
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)


def add_parser_arguments(parser: argparse.ArgumentParser) -> None:
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "-v",
        "-vs",
        action="store_const",
        const="verbose-sequential",
        dest="fetch_mode",
        help="fetch one remote at a time, with git's output",
    )
    mode_group.add_argument(
        "-vp",
        action="store_const",
        const="verbose-parallel",
        dest="fetch_mode",
        help="fetch remotes one by one, several at a time",
    )
    parser.set_defaults(fetch_mode="default")


def add_subparser(subparsers, parents: List[argparse.ArgumentParser]) -> argparse.ArgumentParser:  # noqa: ANN001
    parser = subparsers.add_parser(
        "fetch",
        aliases=["up", "update", "pull"],
        help="fetch registered repositories",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main, include_excluded=False)
    add_parser_arguments(parser)
    parser.add_argument("urls", type=non_empty_string, nargs="*", metavar="url")
    return parser


def add_fetch_all_subparser(
    subparsers,  # noqa: ANN001
    parents: List[argparse.ArgumentParser],
) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "fetch-all",
        aliases=["up-all"],
        help="fetch every registered repository, excluded ones too",
        description="fetch every registered repository, including those matching "
        "an exclusion pattern",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main, include_excluded=True, urls=[])
    add_parser_arguments(parser)
    return parser


def setup(subparsers, parents: List[argparse.ArgumentParser]) -> None:  # noqa: ANN001
    add_subparser(subparsers, parents)
    add_fetch_all_subparser(subparsers, parents)


def cli_main(args: CLIArgumentNamespace) -> int:
    """CLI entry point for the 'fetch' and 'fetch-all' commands.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success, else the code of the last failed fetch).
    """
    logger.debug("running fetch subcommand")

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(
        config,
        lambda session: fetch_main(
            session,
            urls=args.urls,
            mode=args.fetch_mode,
            include_excluded=args.include_excluded,
        ),
    )
