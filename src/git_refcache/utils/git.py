import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from .logging import get_logger

logger = get_logger(__name__)


def run_command(
    cmd: List[str], capture_output: bool = False
) -> "subprocess.CompletedProcess[bytes]":
    logger.trace("running '%s'", " ".join(cmd))
    return subprocess.run(cmd, check=False, capture_output=capture_output)  # noqa: S603


def run_git_command(
    git_args: Optional[List[str]] = None,
    command: Optional[str] = None,
    command_args: Optional[List[str]] = None,
    capture_output: bool = False,
) -> "subprocess.CompletedProcess[bytes]":
    git_cmd = ["git"]

    if git_args:
        git_cmd += git_args

    if command:
        git_cmd.append(command)

    if command_args:
        git_cmd += command_args

    return run_command(git_cmd, capture_output=capture_output)


def run_git_in(
    repo_dir: Path,
    command: str,
    command_args: Optional[List[str]] = None,
    capture_output: bool = False,
) -> "subprocess.CompletedProcess[bytes]":
    """Runs a git command with '-C repo_dir'"""
    return run_git_command(["-C", str(repo_dir)], command, command_args, capture_output)


def is_bare_repo(path: Path) -> bool:
    """Cheap on-disk check for a bare repository layout, no git call"""
    return (path / "HEAD").is_file() and (path / "objects").is_dir() and (path / "refs").is_dir()


def is_git_repo(path: Path) -> bool:
    return is_bare_repo(path) or (path / ".git").exists()


_git_config_cache: Optional[Dict[str, str]] = None


def _parse_null_config(output: bytes) -> Dict[str, str]:
    """Parses 'git config --list --null' output, keys lower-cased.

    Entries end with NUL and the key is split from the value by the first
    newline, so values may themselves span lines. Later entries win.
    """
    config = {}
    for entry in output.decode(errors="replace").split("\0"):
        if not entry:
            continue
        key, _, value = entry.partition("\n")
        config[key.lower()] = value
    return config


def _get_git_config() -> Dict[str, str]:
    global _git_config_cache  # noqa: PLW0603

    if _git_config_cache is None:
        try:
            output = subprocess.check_output(  # noqa: S603
                ["git", "config", "--list", "--null"],  # noqa: S607
                stderr=subprocess.DEVNULL,
            )
        except (subprocess.CalledProcessError, FileNotFoundError):
            logger.debug("no git config available")
            output = b""
        _git_config_cache = _parse_null_config(output)

    return _git_config_cache


def get_git_config() -> Dict[str, str]:
    return _get_git_config()


def get_git_config_value(key: str) -> Optional[str]:
    """Gets the value of a Git configuration key.

    Args:
        key: The Git configuration key to retrieve.

    Returns:
        The value of the Git configuration key, or None if not found.
    """
    return get_git_config().get(key.lower())
