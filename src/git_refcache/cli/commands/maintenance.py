"""compact the cache repositories"""

import argparse
from typing import List

from git_refcache.cli.arguments import CLIArgumentNamespace
from git_refcache.cli.utils import run_in_session
from git_refcache.config import RefCacheConfig
from git_refcache.core import gc_main, repack_main
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)


def setup(subparsers, parents: List[argparse.ArgumentParser]) -> None:  # noqa: ANN001
    parser = subparsers.add_parser(
        "gc",
        help="run 'git gc --prune=now' in every cache repository",
        description=__doc__,
        parents=parents,
    )
    parser.set_defaults(func=gc_cli_main)

    parser = subparsers.add_parser(
        "repack",
        help="run 'git repack -A -d' in every cache repository",
        description=__doc__,
        parents=parents,
    )
    parser.set_defaults(func=repack_cli_main, parallel=False)

    parser = subparsers.add_parser(
        "repack-parallel",
        help="like repack, several repositories at a time",
        description=__doc__,
        parents=parents,
    )
    parser.set_defaults(func=repack_cli_main, parallel=True)


def gc_cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running gc subcommand")

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(config, gc_main)


def repack_cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running repack subcommand")

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(config, lambda session: repack_main(session, parallel=args.parallel))
