from __future__ import annotations

import collections
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pandas as pd

from .buildkite.models import BuildHandle, BuildSnapshot

if TYPE_CHECKING:
    from .poller import BuildTimings

DURATION_COLUMNS: tuple[str, ...] = ("job_wait_s", "job_run_s", "build_s")

OUTCOME_COLUMNS: list[str] = [
    "index",
    "number",
    "url",
    "state",
    "created_at",
    "scheduled_at",
    "started_at",
    "finished_at",
    "scheduled_s",
    "started_s",
    "build_s",
    "job_wait_s",
    "job_run_s",
    "error",
]


@dataclass(frozen=True)
class Outcome:
    """Final report of one dispatched build: a finished snapshot or an error."""

    index: int
    handle: BuildHandle | None = None
    snapshot: BuildSnapshot | None = None
    timings: BuildTimings | None = None
    error: BaseException | None = None

    def __post_init__(self) -> None:
        if (self.snapshot is None) == (self.error is None):
            raise ValueError("Outcome needs exactly one of snapshot or error")

    @classmethod
    def success(
        cls,
        index: int,
        handle: BuildHandle,
        snapshot: BuildSnapshot,
        timings: BuildTimings,
    ) -> Outcome:
        return cls(index=index, handle=handle, snapshot=snapshot, timings=timings)

    @classmethod
    def failure(
        cls, index: int, error: BaseException, handle: BuildHandle | None = None
    ) -> Outcome:
        return cls(index=index, handle=handle, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Summary:
    """Pass/fail split of finished builds plus timings of the passed ones."""

    total: int
    passes: int
    failures: int
    wait_times: tuple[float, ...] = ()
    run_times: tuple[float, ...] = ()
    build_times: tuple[float, ...] = ()
    states: dict[str, int] = field(default_factory=dict)
    error_count: int = 0

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "job_wait_s": list(self.wait_times),
                "job_run_s": list(self.run_times),
                "build_s": list(self.build_times),
            },
            columns=list(DURATION_COLUMNS),
            dtype=float,
        )

    def statistics(self) -> pd.DataFrame:
        frame = self.to_dataframe()
        if frame.empty:
            return frame
        return frame.describe(percentiles=[0.5, 0.9, 0.95])

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passes": self.passes,
            "failures": self.failures,
            "errors": self.error_count,
            "states": dict(self.states),
            "wait_times": list(self.wait_times),
            "run_times": list(self.run_times),
            "build_times": list(self.build_times),
        }


class BuildResultCollector:
    """Join point for every build of a run.

    The collector is sized up front to the number of dispatched builds and
    expects exactly one :class:`Outcome` per build, whether it came from a
    poller or from a failed creation call. ``signal`` may be called from any
    thread; the accessors block until every outcome has arrived.
    """

    def __init__(self, expected: int) -> None:
        if expected < 0:
            raise ValueError("expected outcome count must be >= 0")
        self._expected = expected
        self._remaining = expected
        self._lock = threading.Lock()
        self._completed = threading.Condition(self._lock)
        self._outcomes: list[Outcome] = []
        self._errors: list[BaseException] = []

    @property
    def expected(self) -> int:
        return self._expected

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._remaining

    def signal(self, outcome: Outcome) -> None:
        with self._completed:
            if self._remaining <= 0:
                raise RuntimeError(
                    f"received more outcomes than the {self._expected} expected"
                )
            self._outcomes.append(outcome)
            if outcome.error is not None:
                self._errors.append(outcome.error)
            self._remaining -= 1
            if self._remaining == 0:
                self._completed.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until all outcomes arrived; False if ``timeout`` expired first."""
        with self._completed:
            return self._completed.wait_for(lambda: self._remaining == 0, timeout=timeout)

    def errors(self) -> list[BaseException]:
        self.wait()
        with self._lock:
            return list(self._errors)

    def outcomes(self) -> list[Outcome]:
        self.wait()
        with self._lock:
            return sorted(self._outcomes, key=lambda outcome: outcome.index)

    def summary(self) -> Summary:
        outcomes = self.outcomes()
        finished = [outcome for outcome in outcomes if outcome.snapshot is not None]
        states = collections.Counter(outcome.snapshot.state for outcome in finished)

        wait_times: list[float] = []
        run_times: list[float] = []
        build_times: list[float] = []
        passes = 0
        for outcome in finished:
            if not outcome.snapshot.passed:
                continue
            passes += 1
            wait_times.append(outcome.timings.job_wait_s)
            run_times.append(outcome.timings.job_run_s)
            build_times.append(outcome.timings.build_s)

        return Summary(
            total=len(finished),
            passes=passes,
            failures=len(finished) - passes,
            wait_times=tuple(wait_times),
            run_times=tuple(run_times),
            build_times=tuple(build_times),
            states=dict(states),
            error_count=len(outcomes) - len(finished),
        )

    def build_dataframe(self) -> pd.DataFrame:
        rows = [_outcome_row(outcome) for outcome in self.outcomes()]
        if not rows:
            return pd.DataFrame(columns=OUTCOME_COLUMNS)
        return pd.DataFrame(rows, columns=OUTCOME_COLUMNS)


def _outcome_row(outcome: Outcome) -> dict[str, Any]:
    handle = outcome.handle
    snapshot = outcome.snapshot
    timings = outcome.timings
    return {
        "index": outcome.index,
        "number": snapshot.number if snapshot else (handle.number if handle else None),
        "url": snapshot.url if snapshot else (handle.url if handle else None),
        "state": snapshot.state if snapshot else None,
        "created_at": snapshot.created_at if snapshot else None,
        "scheduled_at": snapshot.scheduled_at if snapshot else None,
        "started_at": snapshot.started_at if snapshot else None,
        "finished_at": snapshot.finished_at if snapshot else None,
        "scheduled_s": timings.scheduled_s if timings else None,
        "started_s": timings.started_s if timings else None,
        "build_s": timings.build_s if timings else None,
        "job_wait_s": timings.job_wait_s if timings else None,
        "job_run_s": timings.job_run_s if timings else None,
        "error": repr(outcome.error) if outcome.error is not None else None,
    }


__all__ = ["BuildResultCollector", "Outcome", "Summary"]
