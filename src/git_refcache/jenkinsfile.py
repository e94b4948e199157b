"""Jenkinsfile syntax validation against a Jenkins server

Settings are 'KEY="value"' lines in ~/.jenkinsfile-check and
./.jenkinsfile-check (the latter wins), overridden by environment variables of
the same name.
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests

from git_refcache.constants import defaults
from git_refcache.errors import RefCacheError
from git_refcache.utils.git import run_git_command
from git_refcache.utils.logging import get_logger

logger = get_logger(__name__)

SETTING_NAMES = (
    "JENKINS_USER",
    "JENKINS_PASS",
    "JENKINS_HOST",
    "JENKINS_PORT",
    "JENKINS_ROOT",
    "JENKINS_BASEURL",
    "JENKINSFILE",
)

DEFAULT_SETTINGS = {
    "JENKINS_USER": "username",
    "JENKINS_PASS": "my%2Fpass",
    "JENKINS_HOST": "localhost",
    "JENKINS_PORT": "8080",
    "JENKINS_ROOT": "jenkins",
    "JENKINSFILE": defaults.JENKINSFILE,
}

REQUEST_TIMEOUT = 30

_SETTING_LINE_RE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(.*?)\s*$")


def parse_settings(text: str) -> Dict[str, str]:
    """Reads KEY=value lines, ignoring comments and anything that is not one"""
    settings = {}
    for line in text.splitlines():
        if line.lstrip().startswith("#"):
            continue
        match = _SETTING_LINE_RE.match(line)
        if not match:
            continue
        value = match.group(2)
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        settings[match.group(1)] = value
    return settings


def settings_files() -> List[Path]:
    return [Path.home() / defaults.JENKINS_SETTINGS_FILE, Path(defaults.JENKINS_SETTINGS_FILE)]


def load_settings(
    files: Optional[Iterable[Path]] = None, environ: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    settings = dict(DEFAULT_SETTINGS)
    for path in settings_files() if files is None else files:
        try:
            text = path.read_text()
        except FileNotFoundError:
            continue
        logger.debug("reading settings from %s", path)
        settings.update(
            {k: v for k, v in parse_settings(text).items() if k in SETTING_NAMES}
        )

    env = os.environ if environ is None else environ
    for name in SETTING_NAMES:
        if env.get(name):
            settings[name] = env[name]
    return settings


def base_url(settings: Mapping[str, str]) -> str:
    if settings.get("JENKINS_BASEURL"):
        return settings["JENKINS_BASEURL"].rstrip("/")
    return "http://{}:{}@{}:{}/{}".format(
        settings["JENKINS_USER"],
        settings["JENKINS_PASS"],
        settings["JENKINS_HOST"],
        settings["JENKINS_PORT"],
        settings["JENKINS_ROOT"],
    ).rstrip("/")


class JenkinsValidator:
    """Posts a pipeline script to the declarative pipeline linter"""

    def __init__(self, url: str, http: Optional[requests.Session] = None) -> None:
        self.url = url
        self.http = http or requests.Session()

    def crumb_header(self) -> Dict[str, str]:
        """The CSRF protection header, empty if the server hands out none"""
        try:
            response = self.http.get(f"{self.url}/crumbIssuer/api/json", timeout=REQUEST_TIMEOUT)
        except requests.RequestException as ex:
            logger.debug("no crumb: %s", ex)
            return {}
        if response.status_code != 200:
            logger.debug("no crumb: HTTP %d", response.status_code)
            return {}
        try:
            data = response.json()
            return {data["crumbRequestField"]: data["crumb"]}
        except (ValueError, KeyError, TypeError):
            logger.debug("no crumb in %r", response.text)
            return {}

    def validate(self, script: str) -> requests.Response:
        response = self.http.post(
            f"{self.url}/pipeline-model-converter/validateJenkinsfile",
            headers=self.crumb_header(),
            data={"jenkinsfile": script},
            timeout=REQUEST_TIMEOUT,
        )
        logger.debug("validation response: HTTP %d", response.status_code)
        return response


def _payload(text: str) -> Optional[Dict[str, Any]]:
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def is_success(text: str) -> bool:
    payload = _payload(text)
    if payload is None:
        return False
    data = payload.get("data")
    return isinstance(data, dict) and data.get("result") == "success"


def extract_errors(text: str) -> List[str]:
    """Error messages of a validation response.

    A response that is not JSON at all counts as one error.
    """
    payload = _payload(text)
    if payload is None:
        return [text.strip() or "empty response"]

    data = payload.get("data")
    if not isinstance(data, dict):
        return []

    messages = []
    for entry in data.get("errors") or []:
        error = entry.get("error") if isinstance(entry, dict) else entry
        if isinstance(error, list):
            messages.extend(str(e) for e in error)
        elif error:
            messages.append(str(error))
    return messages


def commit_script(path: str) -> Optional[RefCacheError]:
    res = run_git_command(command="add", command_args=[path])
    if res.returncode != 0:
        return RefCacheError.git_command_failed(f"git add {path} failed", res.returncode)
    res = run_git_command(command="commit", command_args=["-m", f"Bump {path} pipeline script"])
    if res.returncode != 0:
        return RefCacheError.git_command_failed(f"git commit of {path} failed", res.returncode)
    return None
