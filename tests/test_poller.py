from __future__ import annotations

import threading
import time

from kitewrk.buildkite.models import BuildHandle, BuildSnapshot, JobSnapshot
from kitewrk.collector import BuildResultCollector
from kitewrk.exceptions import BuildCancelledError, BuildPollError, BuildSkippedError
from kitewrk.poller import BuildPoller, derive_timings

from .fakes import FakeBuildService, at, finished_snapshot, running_snapshot


class ScriptedService(FakeBuildService):
    def __init__(self, snapshots: list[BuildSnapshot]) -> None:
        super().__init__()
        self._snapshots = list(snapshots)
        self.query_times: list[float] = []

    def get_build(self, handle: BuildHandle) -> BuildSnapshot:
        self.query_times.append(time.monotonic())
        return self._snapshots.pop(0)


def test_polls_until_finished(handle: BuildHandle) -> None:
    interval = 0.02
    final = finished_snapshot(1)
    service = ScriptedService([running_snapshot(1)] * 3 + [final])
    collector = BuildResultCollector(1)
    poller = BuildPoller(service, handle, 0, collector, poll_interval=interval)

    started = time.monotonic()
    outcome = poller.run()

    assert poller.queries == 4
    assert len(service.query_times) == 4
    assert service.query_times[0] - started >= interval * 0.9
    gaps = [b - a for a, b in zip(service.query_times, service.query_times[1:])]
    assert all(gap >= interval * 0.9 for gap in gaps)

    assert outcome.ok
    assert outcome.snapshot is final
    assert outcome.timings == derive_timings(final)
    assert collector.wait(timeout=0)
    assert collector.summary().passes == 1


def test_poll_error_ends_polling_without_retry(handle: BuildHandle) -> None:
    service = FakeBuildService(poll_failures={1})
    collector = BuildResultCollector(1)

    outcome = BuildPoller(service, handle, 0, collector, poll_interval=0).run()

    assert isinstance(outcome.error, BuildPollError)
    assert isinstance(outcome.error.__cause__, RuntimeError)
    assert service.polls == {1: 1}
    assert collector.errors() == [outcome.error]
    assert collector.summary().total == 0


def test_skipped_build_is_reported_as_fatal_outcome(handle: BuildHandle) -> None:
    service = FakeBuildService(final_states=["not_run"])
    collector = BuildResultCollector(1)

    outcome = BuildPoller(service, handle, 0, collector, poll_interval=0).run()

    assert isinstance(outcome.error, BuildSkippedError)
    assert "build skipping" in str(outcome.error)
    assert collector.summary().total == 0


def test_stop_event_cancels_polling(handle: BuildHandle) -> None:
    service = FakeBuildService(pending_polls=10_000)
    collector = BuildResultCollector(1)
    stop_event = threading.Event()
    poller = BuildPoller(service, handle, 0, collector, poll_interval=0.01, stop_event=stop_event)

    thread = poller.start()
    time.sleep(0.05)
    stop_event.set()
    thread.join(timeout=2.0)

    assert not thread.is_alive()
    [error] = collector.errors()
    assert isinstance(error, BuildCancelledError)


def test_derive_timings_counts_only_finished_jobs() -> None:
    snapshot = finished_snapshot(
        1,
        jobs=(
            JobSnapshot(state="finished", runnable_at=at(1), started_at=at(4), finished_at=at(10)),
            JobSnapshot(state="finished", runnable_at=at(2), started_at=at(3), finished_at=at(5)),
            JobSnapshot(state="finished", runnable_at=None, started_at=at(5), finished_at=at(6)),
            JobSnapshot(state="running", runnable_at=at(1), started_at=at(2)),
        ),
    )

    timings = derive_timings(snapshot)

    assert timings.job_wait_s == 4.0
    assert timings.job_run_s == 9.0
    assert timings.build_s == 10.0
    assert timings.scheduled_s == 1.0
    assert timings.started_s == 3.0


def test_derive_timings_without_start() -> None:
    snapshot = BuildSnapshot(number=1, state="canceled", created_at=at(0), finished_at=at(2))

    timings = derive_timings(snapshot)

    assert timings.build_s == 0.0
    assert timings.started_s is None


def test_unexpected_failure_still_reports_an_outcome(handle: BuildHandle) -> None:
    # naive start against an aware finish cannot be subtracted
    broken = finished_snapshot(1, started_at=at(3).replace(tzinfo=None))
    service = ScriptedService([broken])
    collector = BuildResultCollector(1)

    thread = BuildPoller(service, handle, 0, collector, poll_interval=0).start()
    thread.join(timeout=2.0)

    assert collector.wait(timeout=1.0)
    [error] = collector.errors()
    assert isinstance(error, BuildPollError)
    assert isinstance(error.__cause__, TypeError)
