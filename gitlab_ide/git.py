# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Git utilities for resolving the GitLab project of a checkout."""

import logging
import re
import subprocess

from gitlab_ide.errors import GitError

logger = logging.getLogger(__name__)

_SCP_URL = re.compile(r"^[\w.-]+@([^:/]+):(.+)$")
_SSH_URL = re.compile(r"^ssh://(?:[^@/]+@)?([^/:]+)(?::\d+)?/(.+)$")
_HTTP_URL = re.compile(r"^https?://(?:[^@/]+@)?([^/]+)/(.+)$")


def _git(args: list[str], repo_dir: str | None) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=repo_dir,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        logger.error("git command not found")
        raise GitError("git command not found") from None
    except subprocess.SubprocessError as e:
        raise GitError(f"git {args[0]} failed: {e}") from e


def current_branch(repo_dir: str | None = None) -> str:
    """Get the current branch name of a git repo.

    Args:
        repo_dir: Path to the git repository (default: working directory).

    Returns:
        Branch name.

    Raises:
        GitError: Not a repository, git missing, or detached HEAD.
    """
    result = _git(["rev-parse", "--abbrev-ref", "HEAD"], repo_dir)
    if result.returncode != 0:
        raise GitError("Not a git repository or git command failed")
    branch = result.stdout.strip()
    if not branch:
        raise GitError("Could not determine current branch")
    if branch == "HEAD":
        raise GitError("Detached HEAD; check out a branch first")
    return branch


def remote_url(remote: str, repo_dir: str | None = None) -> str:
    """Get the URL of a git remote.

    Raises:
        GitError: If the remote does not exist.
    """
    result = _git(["remote", "get-url", remote], repo_dir)
    if result.returncode != 0:
        logger.warning(f"git remote get-url {remote} failed: {result.stderr.strip()}")
        raise GitError(f"Remote '{remote}' not found")
    url = result.stdout.strip()
    if not url:
        raise GitError("Could not get remote URL")
    return url


def _strip_git_suffix(path: str) -> str:
    path = path.rstrip("/")
    return path[: -len(".git")] if path.endswith(".git") else path


def project_path(url: str) -> str:
    """Parse a GitLab remote URL into a project path.

    Handles SSH and HTTPS URLs:
        git@gitlab.com:group/project.git -> group/project
        ssh://git@gitlab.com:2222/group/project.git -> group/project
        https://gitlab.com/group/subgroup/project.git -> group/subgroup/project

    Raises:
        GitError: If the URL is not in a recognized form.
    """
    if not url:
        raise GitError("Empty URL")
    for pattern in (_SCP_URL, _SSH_URL, _HTTP_URL):
        match = pattern.match(url)
        if match:
            path = _strip_git_suffix(match.group(2))
            if path:
                return path
    raise GitError(f"Could not parse GitLab project path from URL: {url}")


def detect_host(url: str) -> str:
    """Detect the GitLab host from a remote URL."""
    if not url:
        raise GitError("Empty URL")
    for pattern in (_SCP_URL, _SSH_URL, _HTTP_URL):
        match = pattern.match(url)
        if match:
            return match.group(1)
    raise GitError(f"Could not detect GitLab host from URL: {url}")


def gitlab_base_url(url: str, override: str | None = None) -> str:
    """Get the GitLab base URL for API calls.

    Args:
        url: Remote URL used for host auto-detection.
        override: Explicit GitLab URL; wins when set.

    Returns:
        Base URL without a trailing slash, e.g. "https://gitlab.com".
    """
    if override:
        return override.rstrip("/")
    return f"https://{detect_host(url)}"
