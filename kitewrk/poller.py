from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from .buildkite.base import BuildService
from .buildkite.models import BuildHandle, BuildSnapshot
from .collector import BuildResultCollector, Outcome
from .config import DEFAULT_POLL_INTERVAL_S
from .exceptions import BuildCancelledError, BuildPollError, BuildSkippedError

LOGGER = logging.getLogger("kitewrk.poller")


@dataclass(frozen=True)
class BuildTimings:
    """Durations derived from a finished build, in seconds."""

    build_s: float
    job_wait_s: float
    job_run_s: float
    scheduled_s: float | None = None
    started_s: float | None = None


def derive_timings(snapshot: BuildSnapshot) -> BuildTimings:
    job_wait_s = 0.0
    job_run_s = 0.0
    for job in snapshot.jobs:
        if not job.finished:
            continue
        wait = _seconds_between(job.runnable_at, job.started_at)
        if wait is not None:
            job_wait_s += wait
        run = _seconds_between(job.started_at, job.finished_at)
        if run is not None:
            job_run_s += run

    return BuildTimings(
        build_s=_seconds_between(snapshot.started_at, snapshot.finished_at) or 0.0,
        job_wait_s=job_wait_s,
        job_run_s=job_run_s,
        scheduled_s=_seconds_between(snapshot.created_at, snapshot.scheduled_at),
        started_s=_seconds_between(snapshot.created_at, snapshot.started_at),
    )


class BuildPoller:
    """Follows one created build until it finishes and reports a single outcome."""

    def __init__(
        self,
        service: BuildService,
        handle: BuildHandle,
        index: int,
        collector: BuildResultCollector,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._service = service
        self._handle = handle
        self._index = index
        self._collector = collector
        self._poll_interval = poll_interval
        self._stop_event = stop_event or threading.Event()
        self.queries = 0

    @property
    def handle(self) -> BuildHandle:
        return self._handle

    def start(self) -> threading.Thread:
        thread = threading.Thread(
            target=self.run,
            name=f"kitewrk-poll-{self._handle.number}",
            daemon=True,
        )
        thread.start()
        return thread

    def run(self) -> Outcome:
        try:
            outcome = self._poll()
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Unexpected failure following build #%d", self._handle.number)
            error = BuildPollError(f"failed to follow build {self._handle.slug}: {exc}")
            error.__cause__ = exc
            outcome = self._failure(error)
        self._collector.signal(outcome)
        return outcome

    def _poll(self) -> Outcome:
        number = self._handle.number
        while True:
            if self._stop_event.wait(self._poll_interval):
                LOGGER.warning("Stopped polling build #%d before it finished", number)
                return self._failure(
                    BuildCancelledError(f"build #{number} was cancelled before finishing")
                )

            self.queries += 1
            try:
                snapshot = self._service.get_build(self._handle)
            except Exception as exc:  # noqa: BLE001
                LOGGER.error("Error polling build #%d: %s", number, exc)
                error = BuildPollError(f"failed to poll build {self._handle.slug}: {exc}")
                error.__cause__ = exc
                return self._failure(error)

            if not snapshot.finished:
                continue

            if snapshot.skipped:
                LOGGER.error(
                    "Build #%d finished with %r, disable build skipping", snapshot.number, snapshot.state
                )
                return self._failure(
                    BuildSkippedError(
                        f"build #{snapshot.number} finished with {snapshot.state!r}; "
                        "disable build skipping on the pipeline"
                    )
                )

            timings = derive_timings(snapshot)
            _log_finished(snapshot, timings)
            return Outcome.success(self._index, self._handle, snapshot, timings)

    def _failure(self, error: BaseException) -> Outcome:
        return Outcome.failure(self._index, error, handle=self._handle)


def _log_finished(snapshot: BuildSnapshot, timings: BuildTimings) -> None:
    created = "n/a"
    if snapshot.created_at is not None:
        created = snapshot.created_at.astimezone().strftime("%b %d %H:%M:%S.%f")[:-3]
    LOGGER.info(
        "Build #%d is %r, finished in %s (created at %s, scheduled in %s, started in %s, ran for %s)",
        snapshot.number,
        snapshot.state,
        _fmt(_seconds_between(snapshot.created_at, snapshot.finished_at)),
        created,
        _fmt(timings.scheduled_s),
        _fmt(timings.started_s),
        _fmt(timings.build_s),
    )


def _seconds_between(start: datetime | None, end: datetime | None) -> float | None:
    if start is None or end is None:
        return None
    return (end - start).total_seconds()


def _fmt(seconds: float | None) -> str:
    if seconds is None:
        return "n/a"
    return f"{seconds:0.2f}s"


__all__ = ["BuildPoller", "BuildTimings", "derive_timings"]
