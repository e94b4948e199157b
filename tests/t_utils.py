import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple


def git(*args: str, cwd: Optional[Path] = None) -> str:
    return subprocess.check_output(["git", *args], cwd=cwd).decode()


def create_source_repo(
    parent_dir: Path,
    name: str,
    files: Optional[Dict[str, str]] = None,
    submodules: Optional[List[Tuple[str, str]]] = None,
) -> Path:
    """A non-bare repository with one commit on 'main'.

    Args:
        submodules: (path, url) pairs written to .gitmodules. No gitlinks are
                    added, only the manifest matters to the cache.
    """
    repo_dir = parent_dir / name
    subprocess.check_call(["git", "init", "--quiet", "-b", "main", str(repo_dir)])
    for path, content in (files or {"README": f"{name}\n"}).items():
        (repo_dir / path).write_text(content)
    if submodules:
        (repo_dir / ".gitmodules").write_text(gitmodules_text(submodules))
    git("add", "-A", cwd=repo_dir)
    git("commit", "--quiet", "-m", "initial", cwd=repo_dir)
    return repo_dir


def gitmodules_text(submodules: List[Tuple[str, str]]) -> str:
    lines = []
    for path, url in submodules:
        lines.append(f'[submodule "{path}"]')
        lines.append(f"\tpath = {path}")
        lines.append(f"\turl = {url}")
    return "\n".join(lines) + "\n"


def commit_file(repo_dir: Path, path: str, content: str, branch: Optional[str] = None) -> str:
    if branch:
        git("checkout", "--quiet", "-b", branch, cwd=repo_dir)
    (repo_dir / path).write_text(content)
    git("add", "-A", cwd=repo_dir)
    git("commit", "--quiet", "-m", f"update {path}", cwd=repo_dir)
    return git("rev-parse", "HEAD", cwd=repo_dir).strip()


def file_url(path: Path) -> str:
    return f"file://{path}"


def remote_names(repo_dir: Path) -> List[str]:
    return git("-C", str(repo_dir), "remote").split()


def craft_options(**kwargs) -> List[str]:
    args: List[str] = []
    for key, val in kwargs.items():
        if isinstance(val, bool):
            if val:
                args.append(f"--{key.replace('_', '-')}")
            else:
                args.append(f"--no-{key.replace('_', '-')}")

        elif val is not None:
            args.extend((f"--{key.replace('_', '-')}", str(val)))

    return args
