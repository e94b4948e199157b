"""manage a cache of git reference repositories

Registered urls are remotes of one bare repository (or of a few, with
--fanout), which clones and builds can point 'git clone --reference' at.

One subcommand runs per call. Fetching selected urls does not garbage collect
the cache afterwards, run 'git-refcache gc' for that.

To see usage info for a specific subcommand, run git-refcache <subcommand> -h
"""

import argparse
import sys
from typing import List, Optional

from git_refcache.cli.arguments import (
    CLIArgumentNamespace,
    DefaultSubcommandArgParse,
    get_log_level_options_parser,
    get_standard_options_parser,
)
from git_refcache.cli.commands import (
    add,
    add_recursive,
    ccache,
    delete,
    fetch,
    jenkinsfile,
    listing,
    lock,
    maintenance,
)
from git_refcache.errors import ConfigError
from git_refcache.utils.logging import compute_log_level, configure_logger, get_logger

logger = get_logger(__name__)

DEFAULT_SUBCOMMAND = "add"


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(
        argv if argv is not None else sys.argv[1:], namespace=CLIArgumentNamespace()
    )

    configure_logger(compute_log_level(args.verbose, args.quiet))
    logger.debug("Received args: %s", argv)
    logger.debug("Program args: %s", args)

    if "func" not in vars(args):
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except ConfigError as ex:
        logger.error(str(ex))
        return 1


def create_parser() -> argparse.ArgumentParser:
    parser = DefaultSubcommandArgParse(
        description=__doc__,
        prog="git-refcache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(help="subcommand help")

    log_level_parser = get_log_level_options_parser()
    parents = [get_standard_options_parser(), log_level_parser]

    add.setup(subparsers, parents)
    add_recursive.setup(subparsers, parents)
    delete.setup(subparsers, parents)
    listing.setup(subparsers, parents)
    fetch.setup(subparsers, parents)
    maintenance.setup(subparsers, parents)
    lock.setup(subparsers, parents)
    ccache.setup(subparsers, [log_level_parser])
    jenkinsfile.setup(subparsers, [log_level_parser])

    help_parser = subparsers.add_parser("help", help="show this help message and exit")
    help_parser.set_defaults(func=lambda _args: print_help(parser))

    parser.set_default_subparser(DEFAULT_SUBCOMMAND)

    return parser


def print_help(parser: argparse.ArgumentParser) -> int:
    parser.print_help()
    return 0
