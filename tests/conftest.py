from __future__ import annotations

import os

import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

from kitewrk.buildkite.models import BuildHandle  # noqa: E402


@pytest.fixture
def handle() -> BuildHandle:
    return BuildHandle(
        org="acme",
        pipeline="app",
        number=1,
        url="https://api.buildkite.com/v2/organizations/acme/pipelines/app/builds/1",
    )
