import os
import re
import signal
import socket
from contextlib import contextmanager
from types import FrameType
from typing import Generator, Iterable, List, NoReturn, Optional

from .logging import get_logger

logger = get_logger(__name__)

URL_PREFIXES = ("git@", "ssh://", "https://", "http://", "git://", "file://")

TERMINATION_SIGNALS = ("SIGHUP", "SIGINT", "SIGQUIT", "SIGTERM")


def normalize_url(url: str) -> str:
    """Normalizes a remote URL for comparison.

    Examples:
        https://GitHub.com/User/Repo.git → https://github.com/user/repo
        git@github.com:user/repo.git/ → git@github.com:user/repo
    """
    url = url.strip().lower().rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]
    return url


def looks_like_url(value: str) -> bool:
    return value.startswith(URL_PREFIXES)


def url_basename(url: str) -> str:
    """Last path element of a URL without a '.git' suffix.

    Example:
        git@github.com:user/Repo.git → Repo
    """
    stripped = url.strip().rstrip("/")
    name = re.split(r"[/:]", stripped)[-1]
    if name.endswith(".git"):
        name = name[:-4]
    return name


def resolve_relative_url(base_url: str, relative: str) -> str:
    """Resolves a submodule url such as '../other.git' against its parent url.

    Non-relative urls are returned unchanged. Like git, each leading '../'
    removes one path element of the base, and './' keeps the base.
    """
    if not relative.startswith(("./", "../")):
        return relative

    base = base_url.rstrip("/")
    scheme_end = base.find("://")
    floor = scheme_end + 3 if scheme_end >= 0 else 0
    scp_colon = base.find(":") if scheme_end < 0 else -1

    rest = relative
    while rest.startswith(("./", "../")):
        if rest.startswith("./"):
            rest = rest[2:]
            continue
        rest = rest[3:]
        cut = base.rfind("/")
        if cut >= floor and cut > scp_colon:
            base = base[:cut]
        elif scp_colon >= 0:
            # git@host:repo.git, keep the colon
            base = base[: scp_colon + 1]

    if not rest:
        return base
    if base.endswith(":"):
        return f"{base}{rest}"
    return f"{base}/{rest}"


def unique_by_normalized(urls: Iterable[str]) -> List[str]:
    """Drops urls that normalize to one already seen, keeping order"""
    seen = set()
    result = []
    for url in urls:
        key = normalize_url(url)
        if key in seen:
            continue
        seen.add(key)
        result.append(url)
    return result


def get_hostname() -> str:
    return socket.gethostname()


def pid_exists(pid: int) -> bool:
    """Whether a process with this pid runs on the local host"""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists, owned by someone else
        return True
    except OverflowError:
        return False
    return True


@contextmanager
def signal_guard(signal_names: Iterable[str] = TERMINATION_SIGNALS) -> Generator[None, None, None]:
    """Turns termination signals into SystemExit so cleanup code runs.

    Signals unknown to the platform are ignored. The previous handlers are
    restored on exit.
    """

    def exit_handler(signum: int, frame: Optional[FrameType]) -> NoReturn:  # noqa: ARG001
        logger.debug("caught signal %s", signum)
        raise SystemExit(128 + signum)

    original_handlers = {}
    for name in signal_names:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        try:
            original_handlers[signum] = signal.signal(signum, exit_handler)
        except ValueError:
            # not the main thread
            continue

    try:
        yield
    finally:
        for signum, handler in original_handlers.items():
            signal.signal(signum, handler)
