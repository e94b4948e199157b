"""validate a Jenkinsfile with a Jenkins server

The pipeline script is posted to the declarative pipeline linter of the server
configured in ~/.jenkinsfile-check or ./.jenkinsfile-check (KEY="value" lines,
overridden by environment variables): JENKINS_USER, JENKINS_PASS,
JENKINS_HOST, JENKINS_PORT, JENKINS_ROOT or JENKINS_BASEURL, and JENKINSFILE.

  (default)  print the raw response
  -j         print only the reported errors, exit 1 if there are any
  -b         if the script is valid, git add and commit it
"""

import argparse
from pathlib import Path
from typing import List

import requests

from git_refcache.cli.arguments import CLIArgumentNamespace
from git_refcache.errors import RefCacheError
from git_refcache.jenkinsfile import (
    JenkinsValidator,
    base_url,
    commit_script,
    extract_errors,
    is_success,
    load_settings,
)
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)


def add_subparser(subparsers, parents: List[argparse.ArgumentParser]) -> argparse.ArgumentParser:  # noqa: ANN001
    parser = subparsers.add_parser(
        "jenkinsfile-check",
        help="validate a Jenkinsfile with a Jenkins server",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=parents,
    )
    parser.set_defaults(func=cli_main)
    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument(
        "-j",
        action="store_const",
        const="errors",
        dest="output",
        help="print only the reported errors",
    )
    output_group.add_argument(
        "-b",
        action="store_const",
        const="bump",
        dest="output",
        help="git commit the script if it is valid",
    )
    parser.set_defaults(output="raw")
    parser.add_argument(
        "--file",
        metavar="PATH",
        help="pipeline script to check. default is $JENKINSFILE or 'Jenkinsfile'",
    )
    return parser


def setup(subparsers, parents: List[argparse.ArgumentParser]) -> None:  # noqa: ANN001
    add_subparser(subparsers, parents)


def cli_main(args: CLIArgumentNamespace) -> int:
    logger.debug("running jenkinsfile-check subcommand")

    settings = load_settings()
    path = args.file or settings["JENKINSFILE"]
    try:
        script = Path(path).read_text()
    except OSError as ex:
        logger.error("cannot read %s: %s", path, ex)
        return 1

    validator = JenkinsValidator(base_url(settings))
    try:
        text = validator.validate(script).text
    except requests.RequestException as ex:
        logger.error(str(RefCacheError.http_request_failed(ex)))
        return 1

    if args.output == "errors":
        errors = extract_errors(text)
        for error in errors:
            print(error)
        return 1 if errors else 0

    if args.output == "bump":
        if not is_success(text):
            print(text)
            logger.error("VALIDATION FAILED")
            return 1
        err = commit_script(path)
        if err:
            logger.error(str(err))
            return err.returncode
        logger.info("COMMITTED OK, you can 'git push' any time now")
        return 0

    print(text)
    return 0
