import argparse
import sys
from typing import Callable, List, NoReturn, Optional

from git_refcache.constants import defaults
from git_refcache.types import FANOUT_MODES, FetchMode, RecurseMode
from git_refcache.utils.misc import looks_like_url


class DefaultSubcommandArgParse(argparse.ArgumentParser):
    """Parser that runs a default subcommand for arguments that look like urls.

    'git-refcache https://host/repo.git' is the same as
    'git-refcache add https://host/repo.git'. Usage errors exit with status 1.
    """

    __default_subparser: Optional[str] = None

    def set_default_subparser(self, name: str) -> None:
        self.__default_subparser = name

    def _parse_known_args(self, arg_strings, *args, **kwargs):  # noqa: ANN001 ANN202
        in_args = set(arg_strings)
        d_sp = self.__default_subparser
        if (
            d_sp is not None
            and not {"-h", "--help"}.intersection(in_args)
            and any(looks_like_url(a) for a in arg_strings)
        ):
            for x in self._subparsers._actions:  # noqa: SLF001
                subparser_found = isinstance(
                    x,
                    argparse._SubParsersAction,  # noqa: SLF001
                ) and in_args.intersection(x._name_parser_map.keys())  # noqa: SLF001
                if subparser_found:
                    break
            else:
                # insert default in first position, this implies no
                # global options without a sub_parsers specified
                arg_strings = [d_sp, *arg_strings]
        return super(__class__, self)._parse_known_args(arg_strings, *args, **kwargs)

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"ERROR: {message}\n")


def get_standard_options_parser() -> argparse.ArgumentParser:
    standard_options_parser = argparse.ArgumentParser(add_help=False)
    standard_options_parser.add_argument(
        "--root-dir",
        metavar="PATH",
        help=f"directory of the cache repository. default is '{defaults.ROOT_DIR}'",
    )
    lock_group = standard_options_parser.add_mutually_exclusive_group()
    lock_group.add_argument(
        "--use-lock", action="store_true", help="use the lock file (default)", dest="use_lock"
    )
    lock_group.add_argument(
        "--no-use-lock", action="store_false", help="do not use the lock file", dest="use_lock"
    )
    standard_options_parser.set_defaults(use_lock=None)
    standard_options_parser.add_argument(
        "--lock-timeout",
        type=int,
        metavar="SECONDS",
        help="maximum time (in seconds) to wait for the lock, -1 to wait forever",
    )
    standard_options_parser.add_argument(
        "--max-parallel",
        type=int,
        metavar="N",
        help=f"maximum number of concurrent git processes. default is {defaults.MAX_PARALLEL}",
    )
    standard_options_parser.add_argument(
        "--fanout",
        choices=FANOUT_MODES,
        help="how urls are spread over sub-repositories. default is 'none'",
    )
    return standard_options_parser


def get_log_level_options_parser() -> argparse.ArgumentParser:
    log_level_parser = argparse.ArgumentParser(add_help=False)
    log_level_parser.add_argument(
        "--verbose",
        action="count",
        default=0,
        help="be more verbose",
    )
    log_level_parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="be more quiet",
    )
    return log_level_parser


class CLIArgumentNamespace(argparse.Namespace):
    # log level, only used in main cli func
    verbose: int = 0
    quiet: int = 0

    # config options
    root_dir: Optional[str] = None
    use_lock: Optional[bool] = None
    lock_timeout: Optional[int] = None
    max_parallel: Optional[int] = None
    fanout: Optional[str] = None

    # add, co, del, list, fetch, add-recursive, dedup-references
    urls: List[str]

    # add-recursive
    recurse_mode: RecurseMode

    # fetch, fetch-all
    fetch_mode: FetchMode
    include_excluded: bool

    # repack, repack-parallel
    parallel: bool

    # lock, unlock
    unlock: bool

    # ccache-locks
    ccache_action: str

    # jenkinsfile-check
    output: str
    file: Optional[str]

    func: Callable[["CLIArgumentNamespace"], int]
