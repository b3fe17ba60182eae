"""Buildkite GraphQL adapter."""

from __future__ import annotations

from typing import Any

import httpx

from ..config import BuildSpec
from ..exceptions import BuildkiteAPIError
from .models import (
    BuildHandle,
    BuildSnapshot,
    JobSnapshot,
    normalise_state,
    parse_timestamp,
)

GRAPHQL_ENDPOINT = "https://graphql.buildkite.com/v1"
JOBS_PAGE_SIZE = 100

BUILD_CREATE_MUTATION = """
mutation($input: BuildCreateInput!) {
  buildCreate(input: $input) {
    build {
      url
      number
      organization { slug }
      pipeline { slug }
    }
  }
}
"""

BUILD_QUERY = """
query($buildSlug: ID!, $jobs: Int!) {
  build(slug: $buildSlug) {
    number
    url
    state
    createdAt
    scheduledAt
    startedAt
    finishedAt
    jobs(first: $jobs) {
      edges {
        node {
          ... on JobTypeCommand {
            state
            runnableAt
            startedAt
            finishedAt
          }
        }
      }
    }
  }
}
"""


class GraphQLClient:
    """Creates and reads builds through the GraphQL API."""

    def __init__(self, client: httpx.Client, endpoint: str = GRAPHQL_ENDPOINT) -> None:
        self._client = client
        self._endpoint = endpoint

    def create_build(self, spec: BuildSpec) -> BuildHandle:
        data = self.execute(
            BUILD_CREATE_MUTATION,
            {
                "input": {
                    "pipelineID": spec.pipeline,
                    "commit": spec.commit,
                    "branch": spec.branch,
                    "message": spec.message,
                }
            },
        )
        try:
            build = data["buildCreate"]["build"]
            return BuildHandle(
                org=build["organization"]["slug"],
                pipeline=build["pipeline"]["slug"],
                number=int(build["number"]),
                url=build["url"],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise BuildkiteAPIError("unexpected buildCreate response shape") from exc

    def get_build(self, handle: BuildHandle) -> BuildSnapshot:
        data = self.execute(BUILD_QUERY, {"buildSlug": handle.slug, "jobs": JOBS_PAGE_SIZE})
        build = data.get("build")
        if not isinstance(build, dict):
            raise BuildkiteAPIError(f"build {handle.slug} not found")

        jobs = []
        for edge in (build.get("jobs") or {}).get("edges") or []:
            node = (edge or {}).get("node") or {}
            # non-command jobs (wait, trigger, block) come back as empty nodes
            if not node:
                continue
            jobs.append(
                JobSnapshot(
                    state=normalise_state(node.get("state")),
                    runnable_at=parse_timestamp(node.get("runnableAt")),
                    started_at=parse_timestamp(node.get("startedAt")),
                    finished_at=parse_timestamp(node.get("finishedAt")),
                )
            )

        return BuildSnapshot(
            number=int(build.get("number") or handle.number),
            state=normalise_state(build.get("state")),
            created_at=parse_timestamp(build.get("createdAt")),
            scheduled_at=parse_timestamp(build.get("scheduledAt")),
            started_at=parse_timestamp(build.get("startedAt")),
            finished_at=parse_timestamp(build.get("finishedAt")),
            url=build.get("url") or handle.url,
            jobs=tuple(jobs),
        )

    def execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Send a query with bound variables and return its ``data`` member."""
        try:
            response = self._client.post(
                self._endpoint,
                json={"query": query.strip(), "variables": variables},
            )
        except httpx.HTTPError as exc:
            raise BuildkiteAPIError(f"request failed: {exc}") from exc

        payload = _decode(response)
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            messages = [
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in errors
            ]
            raise BuildkiteAPIError(
                f"graphql error: {', '.join(messages)}", status_code=response.status_code
            )
        if response.status_code != httpx.codes.OK:
            raise BuildkiteAPIError(
                f"response returned status {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise BuildkiteAPIError("graphql response carried no data")
        return data

    def close(self) -> None:
        self._client.close()


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        # non-JSON bodies still get reported through the status check
        return {}


__all__ = ["GRAPHQL_ENDPOINT", "GraphQLClient"]
