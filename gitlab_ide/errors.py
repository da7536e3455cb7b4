# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Error types shared across gitlab-ide.

Every error carries a single user-facing message; callers surface it with
str(exc) and never inspect anything else.
"""


class ApiError(Exception):
    """A GitLab API call failed."""


class NotFoundError(ApiError):
    """The project does not exist or is not visible to the token."""


class NoPipelinesError(ApiError):
    """The project has no pipeline for the requested ref."""


class TransportError(ApiError):
    """The HTTP request itself failed (DNS, connect, timeout)."""


class ProtocolError(ApiError):
    """The response was empty, malformed, or reported an error."""


class GitError(Exception):
    """Local repository metadata could not be resolved."""


class ResolutionError(Exception):
    """The view cannot be opened: branch, remote, project or token is missing."""
