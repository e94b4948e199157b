"""register repositories and, recursively, their submodules

Submodule urls are read from .gitmodules at every branch and tag of a
repository. In 'new' mode (the default) only newly registered repositories are
inspected, 'all' also inspects repositories registered before.

A leading 'new' or 'all' argument selects the mode too.
"""

import argparse
from typing import List

from git_refcache.cli.arguments import CLIArgumentNamespace
from git_refcache.cli.utils import non_empty_string, run_in_session
from git_refcache.config import RefCacheConfig
from git_refcache.core import add_recursive_main
from git_refcache.types import RECURSE_MODES
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)


def add_parser_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--mode",
        choices=RECURSE_MODES,
        dest="recurse_mode",
        default=None,
        help="which repositories to inspect for submodules. default is 'new'",
    )
    parser.add_argument("urls", type=non_empty_string, nargs="+", metavar="url")


def add_subparser(subparsers, parents: List[argparse.ArgumentParser]) -> argparse.ArgumentParser:  # noqa: ANN001
    parser = subparsers.add_parser(
        "add-recursive",
        help="register repositories and their submodules",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main)
    add_parser_arguments(parser)
    return parser


def setup(subparsers, parents: List[argparse.ArgumentParser]) -> None:  # noqa: ANN001
    add_subparser(subparsers, parents)


def split_mode(args: CLIArgumentNamespace) -> None:
    """Moves a leading 'new' or 'all' url argument to recurse_mode"""
    urls = list(args.urls)
    if urls and urls[0] in RECURSE_MODES:
        mode = urls.pop(0)
        if args.recurse_mode is None:
            args.recurse_mode = mode  # type: ignore
    if args.recurse_mode is None:
        args.recurse_mode = "new"
    args.urls = urls


def cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running add-recursive subcommand")

    split_mode(args)
    if not args.urls:
        logger.error("no urls given")
        return 1

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(
        config, lambda session: add_recursive_main(session, args.urls, args.recurse_mode)
    )
