"""Buildkite REST (v2) adapter."""

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
    org_from_url,
    parse_timestamp,
)

REST_ENDPOINT = "https://api.buildkite.com/v2"


class RestClient:
    """Creates and reads builds through the REST API of one organization."""

    def __init__(self, client: httpx.Client, org: str, endpoint: str = REST_ENDPOINT) -> None:
        self._client = client
        self._org = org
        self._endpoint = endpoint.rstrip("/")

    def create_build(self, spec: BuildSpec) -> BuildHandle:
        build = self._request(
            "POST",
            f"/organizations/{self._org}/pipelines/{spec.pipeline}/builds",
            json={"commit": spec.commit, "branch": spec.branch, "message": spec.message},
        )
        try:
            url = build["url"]
            pipeline = (build.get("pipeline") or {}).get("slug") or spec.pipeline
            return BuildHandle(
                org=org_from_url(url),
                pipeline=pipeline,
                number=int(build["number"]),
                url=url,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise BuildkiteAPIError("unexpected create build response shape") from exc

    def get_build(self, handle: BuildHandle) -> BuildSnapshot:
        build = self._request(
            "GET",
            f"/organizations/{handle.org}/pipelines/{handle.pipeline}/builds/{handle.number}",
        )
        jobs = tuple(
            JobSnapshot(
                state=normalise_state(job.get("state")),
                runnable_at=parse_timestamp(job.get("runnable_at")),
                started_at=parse_timestamp(job.get("started_at")),
                finished_at=parse_timestamp(job.get("finished_at")),
            )
            for job in build.get("jobs") or []
            if job.get("type", "script") == "script"
        )
        return BuildSnapshot(
            number=int(build.get("number") or handle.number),
            state=normalise_state(build.get("state")),
            created_at=parse_timestamp(build.get("created_at")),
            scheduled_at=parse_timestamp(build.get("scheduled_at")),
            started_at=parse_timestamp(build.get("started_at")),
            finished_at=parse_timestamp(build.get("finished_at")),
            url=build.get("web_url") or handle.url,
            jobs=jobs,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.request(method, f"{self._endpoint}{path}", **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise BuildkiteAPIError(
                f"response returned status {exc.response.status_code} {exc.response.reason_phrase}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise BuildkiteAPIError(f"request failed: {exc}") from exc
        except ValueError as exc:
            raise BuildkiteAPIError("error decoding response") from exc
        if not isinstance(payload, dict):
            raise BuildkiteAPIError("unexpected response body")
        return payload

    def close(self) -> None:
        self._client.close()


__all__ = ["REST_ENDPOINT", "RestClient"]
