"""set or clear the administrative lock

An administrative lock stays in place after 'lock' exits, keeping every other
git-refcache run waiting until 'unlock'.
"""

import argparse
from typing import List

from git_refcache.cli.arguments import CLIArgumentNamespace
from git_refcache.config import RefCacheConfig
from git_refcache.core import lock_main, unlock_main
from git_refcache.errors import RefCacheError
from git_refcache.utils.logging import get_logger
from git_refcache.utils.process_lock import LockWaitTimeoutError

logger = get_logger(__name__)


def setup(subparsers, parents: List[argparse.ArgumentParser]) -> None:  # noqa: ANN001
    parser = subparsers.add_parser(
        "lock",
        help="set the administrative lock",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main, unlock=False)

    parser = subparsers.add_parser(
        "unlock",
        help="clear the administrative lock",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main, unlock=True)


def cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running %s subcommand", "unlock" if args.unlock else "lock")

    config = RefCacheConfig.from_cli_namespace(args)
    try:
        if args.unlock:
            return unlock_main(config)
        return lock_main(config)
    except LockWaitTimeoutError as ex:
        logger.warning(str(RefCacheError.lock_failed(ex)))
        return 1
    except OSError as ex:
        logger.error("cannot %s %s: %s", "unlock" if args.unlock else "lock", config.root_dir, ex)
        return 1
