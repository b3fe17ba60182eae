from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

PASSED_STATE = "passed"
SKIPPED_STATES: frozenset[str] = frozenset({"not_run", "skipped"})

_ORG_FROM_URL = re.compile(r"organizations/(.+?)/pipelines")


@dataclass(frozen=True)
class BuildHandle:
    """Identifies a created build well enough to query it again."""

    org: str
    pipeline: str
    number: int
    url: str

    @property
    def slug(self) -> str:
        return f"{self.org}/{self.pipeline}/{self.number}"


@dataclass(frozen=True)
class JobSnapshot:
    state: str
    runnable_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def finished(self) -> bool:
        return self.finished_at is not None


@dataclass(frozen=True)
class BuildSnapshot:
    """Point-in-time read of a build's state and timestamps."""

    number: int
    state: str
    created_at: datetime | None = None
    scheduled_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    url: str | None = None
    jobs: tuple[JobSnapshot, ...] = field(default_factory=tuple)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    @property
    def passed(self) -> bool:
        return self.state == PASSED_STATE

    @property
    def skipped(self) -> bool:
        return self.state in SKIPPED_STATES


def normalise_state(value: Any) -> str:
    return str(value or "").strip().lower()


def parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def org_from_url(url: str) -> str:
    match = _ORG_FROM_URL.search(url)
    if match is None:
        raise ValueError(f"unable to find organization in build url {url!r}")
    return match.group(1)
