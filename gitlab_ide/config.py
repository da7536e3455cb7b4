"""Shared configuration for gitlab-ide."""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_data_dir

from gitlab_ide import git
from gitlab_ide.errors import GitError, ResolutionError

DATA_DIR = Path(user_data_dir("gitlab-ide"))
CONFIG_FILE = DATA_DIR / "config.json"
LOG_FILE = DATA_DIR / "gitlab-ide.log"

DEFAULT_REMOTE = "origin"

# Checked in order before the config file's token
TOKEN_ENV_VARS = ("GITLAB_TOKEN", "GITLAB_PAT")

CONFIG_KEYS = ("remote", "gitlab_url", "token")


def load_config() -> dict[str, str]:
    """Load user config from config.json.

    Returns:
        Config dict, empty if file doesn't exist.
    """
    if not CONFIG_FILE.exists():
        return {}
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (json.JSONDecodeError, OSError):
        return {}


def save_config(config: dict[str, str]) -> None:
    """Save user config to config.json.

    Args:
        config: Config dict to save.
    """
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    tmp = CONFIG_FILE.with_suffix(".tmp")
    tmp.write_text(json.dumps(config, indent=2) + "\n")
    tmp.replace(CONFIG_FILE)


@dataclass
class Settings:
    """Startup settings: config file values with command-line overrides."""

    remote: str = DEFAULT_REMOTE
    gitlab_url: str | None = None  # None: detect from the remote URL
    token: str | None = None

    @classmethod
    def load(cls, **overrides: str | None) -> "Settings":
        """Build settings from config.json, then apply non-None overrides."""
        config = load_config()
        values = {key: config.get(key) or None for key in CONFIG_KEYS}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(
            remote=values["remote"] or DEFAULT_REMOTE,
            gitlab_url=values["gitlab_url"],
            token=values["token"],
        )


@dataclass(frozen=True)
class ApiContext:
    """Where and as whom API calls are made."""

    base_url: str
    token: str
    project_path: str


def resolve_token(settings: Settings) -> str | None:
    """Resolve the API token: GITLAB_TOKEN, then GITLAB_PAT, then config."""
    for var in TOKEN_ENV_VARS:
        token = os.environ.get(var)
        if token:
            return token
    return settings.token or None


def resolve_context(settings: Settings, repo_dir: str | None = None) -> tuple[ApiContext, str]:
    """Resolve the API context and branch for a checkout.

    Args:
        settings: Startup settings.
        repo_dir: Repository directory (default: working directory).

    Returns:
        (ApiContext, branch name).

    Raises:
        ResolutionError: With the message to show the user.
    """
    try:
        branch = git.current_branch(repo_dir)
        url = git.remote_url(settings.remote, repo_dir)
        path = git.project_path(url)
        base_url = git.gitlab_base_url(url, settings.gitlab_url)
    except GitError as e:
        raise ResolutionError(str(e)) from e

    token = resolve_token(settings)
    if not token:
        raise ResolutionError(
            "No GitLab token found. Set GITLAB_TOKEN or GITLAB_PAT, "
            "or run: gitlab-ide config token <token>"
        )
    return ApiContext(base_url=base_url, token=token, project_path=path), branch
