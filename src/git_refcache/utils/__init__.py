from .git import get_git_config_value, run_git_command, run_git_in
from .misc import normalize_url, signal_guard

__all__ = [
    "run_git_command",
    "run_git_in",
    "get_git_config_value",
    "normalize_url",
    "signal_guard",
]
