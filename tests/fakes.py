from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from kitewrk.buildkite.models import BuildHandle, BuildSnapshot, JobSnapshot
from kitewrk.config import BuildSpec

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def finished_snapshot(number: int, state: str = "passed", **overrides: object) -> BuildSnapshot:
    fields: dict[str, object] = {
        "number": number,
        "state": state,
        "created_at": at(0),
        "scheduled_at": at(1),
        "started_at": at(3),
        "finished_at": at(13),
        "jobs": (
            JobSnapshot(state="finished", runnable_at=at(1), started_at=at(3), finished_at=at(13)),
        ),
    }
    fields.update(overrides)
    return BuildSnapshot(**fields)


def running_snapshot(number: int) -> BuildSnapshot:
    return BuildSnapshot(number=number, state="running", created_at=at(0), started_at=at(3))


class FakeBuildService:
    """In-memory build service scripted per build number."""

    def __init__(
        self,
        final_states: list[str] | None = None,
        pending_polls: int = 0,
        create_failures: set[int] | None = None,
        poll_failures: set[int] | None = None,
    ) -> None:
        self.final_states = final_states or []
        self.pending_polls = pending_polls
        self.create_failures = create_failures or set()
        self.poll_failures = poll_failures or set()
        self.created: list[BuildSpec] = []
        self.polls: dict[int, int] = {}
        self.closed = False
        self._lock = threading.Lock()
        self._next_number = 0

    def create_build(self, spec: BuildSpec) -> BuildHandle:
        with self._lock:
            index = len(self.created)
            self.created.append(spec)
            if index in self.create_failures:
                raise RuntimeError(f"cannot create build {index}")
            self._next_number += 1
            number = self._next_number
        return BuildHandle(
            org="acme",
            pipeline="app",
            number=number,
            url=f"https://api.buildkite.com/v2/organizations/acme/pipelines/app/builds/{number}",
        )

    def get_build(self, handle: BuildHandle) -> BuildSnapshot:
        with self._lock:
            count = self.polls.get(handle.number, 0) + 1
            self.polls[handle.number] = count
        if handle.number in self.poll_failures:
            raise RuntimeError(f"cannot read build {handle.number}")
        if count <= self.pending_polls:
            return running_snapshot(handle.number)
        state = "passed"
        if self.final_states:
            state = self.final_states[(handle.number - 1) % len(self.final_states)]
        return finished_snapshot(handle.number, state)

    def close(self) -> None:
        self.closed = True
