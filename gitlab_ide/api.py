# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""GitLab GraphQL and REST client.

Every call is a single attempt; failures are raised as ApiError subclasses
carrying the message to show the user.
"""

import logging

import httpx

from gitlab_ide.errors import (
    NoPipelinesError,
    NotFoundError,
    ProtocolError,
    TransportError,
)
from gitlab_ide.models import Pipeline, extract_numeric_id

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

PIPELINE_QUERY = """
query($fullPath: ID!, $ref: String) {
  project(fullPath: $fullPath) {
    pipelines(ref: $ref, first: 1) {
      nodes {
        id
        iid
        status
        createdAt
        stages {
          nodes {
            name
            status
            jobs {
              nodes {
                id
                name
                status
                webPath
              }
            }
          }
        }
      }
    }
  }
}
"""


def url_encode_path(path: str) -> str:
    """URL-encode a project path for REST endpoints ("group/project" -> "group%2Fproject")."""
    return path.replace("/", "%2F")


class GitLabClient:
    """Async client bound to one GitLab instance, token and project."""

    def __init__(
        self,
        base_url: str,
        token: str,
        project_path: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url
        self.token = token
        self.project_path = project_path
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_context(cls, ctx, transport: httpx.AsyncBaseTransport | None = None) -> "GitLabClient":
        """Build a client from an ApiContext."""
        return cls(ctx.base_url, ctx.token, ctx.project_path, transport=transport)

    async def _send(
        self, method: str, endpoint: str, headers: dict[str, str], json: dict | None = None
    ) -> httpx.Response:
        logger.debug(f"{method} {endpoint}")
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as http:
                return await http.request(method, endpoint, headers=headers, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {endpoint} failed: {e}")
            raise TransportError(f"API request failed: {e}") from e

    async def graphql(self, query: str, variables: dict) -> dict:
        """Run a GraphQL query and return its data object."""
        response = await self._send(
            "POST",
            "/api/graphql",
            {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"},
            json={"query": query, "variables": variables},
        )
        text = response.text
        if not text:
            raise ProtocolError("Empty response from GitLab API")
        try:
            payload = response.json()
        except ValueError:
            raise ProtocolError(f"Failed to parse API response: {text}") from None
        if not isinstance(payload, dict):
            raise ProtocolError(f"Failed to parse API response: {text}")

        errors = payload.get("errors")
        if errors:
            messages = [
                (e.get("message") if isinstance(e, dict) else None) or "Unknown error"
                for e in errors
            ]
            raise ProtocolError("GraphQL errors: " + ", ".join(messages))
        if response.is_error:
            detail = payload.get("message") or payload.get("error") or text
            raise ProtocolError(f"API error ({response.status_code}): {detail}")
        return payload.get("data") or {}

    async def rest(self, method: str, endpoint: str, raw: bool = False):
        """Make a REST request.

        Args:
            method: HTTP method.
            endpoint: Path under the base URL, e.g. "/api/v4/projects/...".
            raw: Return the body as text instead of decoding JSON.

        Returns:
            Decoded JSON, or the body text when raw is set.
        """
        response = await self._send(method, endpoint, {"PRIVATE-TOKEN": self.token})
        text = response.text
        if raw and response.is_success:
            return text
        if not text:
            raise ProtocolError("Empty response from GitLab API")
        try:
            payload = response.json()
        except ValueError:
            if response.is_error:
                raise ProtocolError(f"API error ({response.status_code}): {text}") from None
            raise ProtocolError(f"Failed to parse API response: {text}") from None
        if isinstance(payload, dict) and payload.get("message"):
            raise ProtocolError(f"API error: {payload['message']}")
        if response.is_error:
            raise ProtocolError(f"API error ({response.status_code})")
        return payload

    def _project_endpoint(self, suffix: str) -> str:
        return f"/api/v4/projects/{url_encode_path(self.project_path)}/{suffix}"

    async def fetch_pipeline(self, ref: str) -> Pipeline:
        """Fetch the latest pipeline for a ref.

        Raises:
            NotFoundError: Project not visible.
            NoPipelinesError: No pipeline exists for the ref.
            TransportError, ProtocolError: Request or response failures.
        """
        data = await self.graphql(PIPELINE_QUERY, {"fullPath": self.project_path, "ref": ref})
        project = data.get("project")
        if not project:
            raise NotFoundError(f"Project not found: {self.project_path}")
        pipelines = project.get("pipelines") or {}
        nodes = pipelines.get("nodes") or []
        if not nodes:
            raise NoPipelinesError(f"No pipelines found for branch: {ref}")
        pipeline = Pipeline.from_node(nodes[0])
        logger.debug(f"fetched pipeline #{pipeline.iid} status={pipeline.status}")
        return pipeline

    async def fetch_job_log(self, job_gid: str) -> str:
        """Fetch a job's raw trace text."""
        job_id = extract_numeric_id(job_gid)
        return await self.rest("GET", self._project_endpoint(f"jobs/{job_id}/trace"), raw=True)

    async def cancel_job(self, job_gid: str) -> dict:
        job_id = extract_numeric_id(job_gid)
        return await self.rest("POST", self._project_endpoint(f"jobs/{job_id}/cancel"))

    async def retry_job(self, job_gid: str) -> dict:
        job_id = extract_numeric_id(job_gid)
        return await self.rest("POST", self._project_endpoint(f"jobs/{job_id}/retry"))

    async def cancel_pipeline(self, pipeline_gid: str) -> dict:
        pipeline_id = extract_numeric_id(pipeline_gid)
        return await self.rest("POST", self._project_endpoint(f"pipelines/{pipeline_id}/cancel"))

    async def retry_pipeline(self, pipeline_gid: str) -> dict:
        """Retry the failed jobs of a pipeline."""
        pipeline_id = extract_numeric_id(pipeline_gid)
        return await self.rest("POST", self._project_endpoint(f"pipelines/{pipeline_id}/retry"))
