"""list registered repositories

Prints one line per registered remote: its id, its url and, when urls are
spread over sub-repositories, the sub-repository. Excluded urls are not listed.
"""

import argparse
from typing import List

from git_refcache.cli.arguments import CLIArgumentNamespace
from git_refcache.cli.utils import non_empty_string, run_in_session
from git_refcache.config import RefCacheConfig
from git_refcache.core import list_main, list_recursive_main
from git_refcache.fanout import shard_name
from git_refcache.session import Session
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)


def add_subparser(subparsers, parents: List[argparse.ArgumentParser]) -> argparse.ArgumentParser:  # noqa: ANN001
    parser = subparsers.add_parser(
        "list",
        aliases=["ls"],
        help="list registered repositories",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main)
    parser.add_argument("urls", type=non_empty_string, nargs="*", metavar="url")
    return parser


def add_recursive_subparser(
    subparsers,  # noqa: ANN001
    parents: List[argparse.ArgumentParser],
) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "list-recursive",
        aliases=["ls-recursive"],
        help="list submodule urls of registered repositories",
        description="list submodule urls referenced by registered repositories, recursively",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=recursive_cli_main)
    parser.add_argument("urls", type=non_empty_string, nargs="*", metavar="url")
    return parser


def setup(subparsers, parents: List[argparse.ArgumentParser]) -> None:  # noqa: ANN001
    add_subparser(subparsers, parents)
    add_recursive_subparser(subparsers, parents)


def print_remotes(session: Session, urls: List[str]) -> int:
    show_shard = session.config.fanout_mode != "none"
    for remote in list_main(session, urls):
        fields = [remote.repo_id, remote.url]
        if show_shard:
            fields.append(shard_name(session.config.root_dir, remote.cache_dir))
        print("\t".join(fields))
    return 0


def print_submodule_urls(session: Session, urls: List[str]) -> int:
    for url in list_recursive_main(session, urls):
        print(url)
    return 0


def cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running list subcommand")

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(config, lambda session: print_remotes(session, args.urls))


def recursive_cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running list-recursive subcommand")

    config = RefCacheConfig.from_cli_namespace(args)
    return run_in_session(config, lambda session: print_submodule_urls(session, args.urls))
