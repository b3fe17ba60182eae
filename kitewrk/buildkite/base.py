from __future__ import annotations

import logging
from typing import Protocol

import httpx

from ..config import BuildSpec
from .models import BuildHandle, BuildSnapshot

LOGGER = logging.getLogger("kitewrk.buildkite")

API_CHOICES: tuple[str, ...] = ("graphql", "rest")
DEFAULT_HTTP_TIMEOUT_S = 30.0


class BuildService(Protocol):
    """Creates builds and reads their status back; ``close`` releases connections."""

    def create_build(self, spec: BuildSpec) -> BuildHandle:
        ...

    def get_build(self, handle: BuildHandle) -> BuildSnapshot:
        ...

    def close(self) -> None:
        ...


def create_client(
    api: str,
    token: str,
    *,
    org: str | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_S,
    debug: bool = False,
) -> BuildService:
    """Return the wire adapter for ``api`` sharing one pooled HTTP client."""
    http_client = create_http_client(token, timeout=timeout, debug=debug)
    if api == "graphql":
        from .graphql import GraphQLClient

        return GraphQLClient(http_client)
    if api == "rest":
        from .rest import RestClient

        if not org:
            http_client.close()
            raise ValueError("the REST API requires an organization slug")
        return RestClient(http_client, org=org)
    http_client.close()
    raise ValueError(f"Unknown API flavour: {api}")


def create_http_client(token: str, *, timeout: float, debug: bool = False) -> httpx.Client:
    event_hooks = {"request": [_log_request], "response": [_log_response]} if debug else {}
    return httpx.Client(
        headers={
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        },
        timeout=timeout,
        event_hooks=event_hooks,
    )


def _log_request(request: httpx.Request) -> None:
    LOGGER.debug(
        "request %s %s\n%s",
        request.method,
        request.url,
        request.content.decode("utf-8", errors="replace"),
    )


def _log_response(response: httpx.Response) -> None:
    response.read()
    LOGGER.debug(
        "response %s %s -> %d\n%s",
        response.request.method,
        response.request.url,
        response.status_code,
        response.text,
    )
