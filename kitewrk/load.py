from __future__ import annotations

import logging
import threading
import time

from .buildkite.base import BuildService
from .collector import BuildResultCollector, Outcome
from .config import DEFAULT_POLL_INTERVAL_S, RunParams
from .exceptions import BuildCancelledError, BuildCreateError, BuildPollError
from .poller import BuildPoller

LOGGER = logging.getLogger("kitewrk.load")


class BuildLoadGenerator:
    """Creates builds one at a time and polls each of them concurrently."""

    def __init__(
        self,
        service: BuildService,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        timeout_s: float | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._service = service
        self._poll_interval = poll_interval
        self._timeout_s = timeout_s
        self._stop_event = stop_event or threading.Event()
        self.pollers: list[BuildPoller] = []

    def run(self, params: RunParams) -> BuildResultCollector:
        """Start dispatching in the background and return the live collector."""
        collector = BuildResultCollector(params.builds)
        thread = threading.Thread(
            target=self.dispatch,
            args=(params, collector),
            name="kitewrk-dispatch",
            daemon=True,
        )
        thread.start()
        if self._timeout_s is not None:
            threading.Thread(
                target=self._watch_deadline,
                args=(collector, self._timeout_s),
                name="kitewrk-deadline",
                daemon=True,
            ).start()
        return collector

    def stop(self) -> None:
        self._stop_event.set()

    def dispatch(self, params: RunParams, collector: BuildResultCollector) -> None:
        for index in range(params.builds):
            if self._stop_event.is_set():
                self._cancel_remaining(index, params, collector)
                return
            try:
                self._dispatch_one(index, params, collector)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception(
                    "Unexpected failure dispatching build %d of %d", index + 1, params.builds
                )
                error = BuildCreateError(
                    f"failed to dispatch build {index + 1} of {params.builds}: {exc}"
                )
                error.__cause__ = exc
                collector.signal(Outcome.failure(index, error))

    def _dispatch_one(
        self, index: int, params: RunParams, collector: BuildResultCollector
    ) -> None:
        spec = params.build_spec(index)
        started = time.monotonic()
        try:
            handle = self._service.create_build(spec)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error creating build %d of %d: %s", index + 1, params.builds, exc)
            error = BuildCreateError(f"failed to create build {index + 1} of {params.builds}: {exc}")
            error.__cause__ = exc
            collector.signal(Outcome.failure(index, error))
            return

        LOGGER.info(
            "Spawned build #%d (%d of %d) in %.2fs",
            handle.number,
            index + 1,
            params.builds,
            time.monotonic() - started,
        )
        poller = BuildPoller(
            self._service,
            handle,
            index,
            collector,
            poll_interval=self._poll_interval,
            stop_event=self._stop_event,
        )
        try:
            poller.start()
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error starting poller for build #%d: %s", handle.number, exc)
            error = BuildPollError(f"failed to start polling build {handle.slug}: {exc}")
            error.__cause__ = exc
            collector.signal(Outcome.failure(index, error, handle=handle))
            return
        self.pollers.append(poller)

    def _cancel_remaining(
        self, start: int, params: RunParams, collector: BuildResultCollector
    ) -> None:
        LOGGER.warning(
            "Run cancelled, skipping creation of %d remaining build(s)", params.builds - start
        )
        for index in range(start, params.builds):
            collector.signal(
                Outcome.failure(
                    index,
                    BuildCancelledError(
                        f"build {index + 1} of {params.builds} was cancelled before creation"
                    ),
                )
            )

    def _watch_deadline(self, collector: BuildResultCollector, timeout_s: float) -> None:
        if collector.wait(timeout=timeout_s):
            return
        LOGGER.warning(
            "Run did not finish within %.1fs, cancelling %d outstanding build(s)",
            timeout_s,
            collector.remaining,
        )
        self.stop()
