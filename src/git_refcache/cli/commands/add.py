"""register repositories in the cache

Each url becomes a remote of the cache repository. Urls matching an exclusion
pattern are skipped, as are urls already registered.
"""

import argparse
from typing import List

from git_refcache.cli.arguments import CLIArgumentNamespace
from git_refcache.cli.utils import non_empty_string, run_in_session
from git_refcache.config import RefCacheConfig
from git_refcache.core import add_main, checkout_main
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)


def add_parser_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("urls", type=non_empty_string, nargs="+", metavar="url")


def add_subparser(subparsers, parents: List[argparse.ArgumentParser]) -> argparse.ArgumentParser:  # noqa: ANN001
    """Creates a subparser for the 'add' command.

    Args:
        subparsers: The subparsers object to add the 'add' command to.
    """
    parser = subparsers.add_parser(
        "add",
        help="register repositories",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main)
    add_parser_arguments(parser)
    return parser


def add_checkout_subparser(
    subparsers,  # noqa: ANN001
    parents: List[argparse.ArgumentParser],
) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "co",
        aliases=["clone", "checkout"],
        help="register repositories and fetch them right away",
        description="register repositories in the cache and fetch them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=checkout_cli_main)
    add_parser_arguments(parser)
    return parser


def setup(subparsers, parents: List[argparse.ArgumentParser]) -> None:  # noqa: ANN001
    add_subparser(subparsers, parents)
    add_checkout_subparser(subparsers, parents)


def cli_main(args: CLIArgumentNamespace) -> int:
    """CLI entry point for the 'add' command.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success, 1 if any url failed).
    """
    logger.debug("running add subcommand")

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(config, lambda session: add_main(session, args.urls))


def checkout_cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running co subcommand")

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(config, lambda session: checkout_main(session, args.urls))
