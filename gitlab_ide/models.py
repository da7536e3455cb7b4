# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Pipeline, stage and job records decoded from the GitLab GraphQL API."""

import re
from dataclasses import dataclass, field

from gitlab_ide.errors import ProtocolError

# Stage pane lines: header, rule, then one line per job
JOB_LINE_OFFSET = 2

_GID_ID = re.compile(r"(\d+)$")


def extract_numeric_id(gid: str) -> str:
    """Extract the numeric ID from a GitLab global ID.

    Args:
        gid: Global ID such as "gid://gitlab/Ci::Build/12345".

    Returns:
        The trailing digits, e.g. "12345".

    Raises:
        ProtocolError: If the ID has no trailing number.
    """
    match = _GID_ID.search(gid or "")
    if not match:
        raise ProtocolError(f"Invalid GitLab ID: {gid!r}")
    return match.group(1)


def _require(node: dict, key: str, kind: str):
    if not isinstance(node, dict):
        raise ProtocolError(f"Malformed {kind} in API response")
    value = node.get(key)
    if value is None:
        raise ProtocolError(f"Missing {kind} field '{key}' in API response")
    return value


def _nodes(node: dict, key: str, kind: str) -> list:
    """Unwrap a GraphQL connection ({"nodes": [...]}) into a list."""
    connection = _require(node, key, kind)
    nodes = connection.get("nodes") if isinstance(connection, dict) else None
    if not isinstance(nodes, list):
        raise ProtocolError(f"Missing {kind} field '{key}.nodes' in API response")
    return nodes


def _status(value) -> str:
    # Stage statuses come back lowercase, job and pipeline statuses uppercase.
    return str(value).upper() if value else ""


@dataclass(frozen=True)
class Job:
    """A single CI job."""

    id: str  # global ID, e.g. gid://gitlab/Ci::Build/123
    name: str
    status: str
    web_path: str | None = None

    @classmethod
    def from_node(cls, node: dict) -> "Job":
        return cls(
            id=str(_require(node, "id", "job")),
            name=str(_require(node, "name", "job")),
            status=_status(_require(node, "status", "job")),
            web_path=node.get("webPath"),
        )


@dataclass(frozen=True)
class Stage:
    """A pipeline stage and its jobs, in execution order."""

    name: str
    status: str
    jobs: tuple[Job, ...] = field(default_factory=tuple)

    @classmethod
    def from_node(cls, node: dict) -> "Stage":
        return cls(
            name=str(_require(node, "name", "stage")),
            status=_status(node.get("status")),
            jobs=tuple(Job.from_node(j) for j in _nodes(node, "jobs", "stage")),
        )

    def job_at_line(self, line: int) -> Job | None:
        """Get the job rendered on a given pane line, or None for non-job lines."""
        index = line - JOB_LINE_OFFSET
        if 0 <= index < len(self.jobs):
            return self.jobs[index]
        return None


@dataclass(frozen=True)
class Pipeline:
    """The latest pipeline for a ref. Replaced wholesale on every fetch."""

    id: str  # global ID, e.g. gid://gitlab/Ci::Pipeline/456
    iid: str  # project-scoped display number
    status: str
    created_at: str | None
    stages: tuple[Stage, ...] = field(default_factory=tuple)

    @classmethod
    def from_node(cls, node: dict) -> "Pipeline":
        """Decode a GraphQL pipeline node.

        Raises:
            ProtocolError: If any required field is missing.
        """
        return cls(
            id=str(_require(node, "id", "pipeline")),
            iid=str(_require(node, "iid", "pipeline")),
            status=_status(_require(node, "status", "pipeline")),
            created_at=node.get("createdAt"),
            stages=tuple(Stage.from_node(s) for s in _nodes(node, "stages", "pipeline")),
        )

    @property
    def created_date(self) -> str:
        """Date part of the creation timestamp, or 'unknown'."""
        if not self.created_at:
            return "unknown"
        return self.created_at.split("T", 1)[0]


class CancelToken:
    """Marks the lifetime of a view or log session.

    Deferred work captures the token when it starts and checks it before
    touching any pane; teardown cancels the token, turning late completions
    into no-ops.
    """

    __slots__ = ("cancelled",)

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
