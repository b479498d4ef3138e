"""
Per-device sampling loop with a drift-corrected schedule.

One DevicePoller runs per discovered storage device. Each iteration goes
through Sampling -> Computing -> Logging -> Sleeping:

- Sampling: POST the storage status endpoint for (plant, serial).
- Computing: derive direction, percent load, loss, time remaining and the
  change signature.
- Logging: append a LogRecord to the device's RotatingLogWriter, from a
  worker thread. Always, whether or not the signature changed.
- Sleeping: wait until ``started + i * interval``. Targets are absolute, so
  fetch latency never accumulates; an overrun iteration is followed
  immediately by the next one.

Error policy:
- AuthError ends this device's task (siblings keep running).
- ShutdownRequested (shutdown during a retry wait) stops the loop quietly.
- MalformedPayload and any other error are logged and the next cycle runs
  on schedule.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from growatt.src.errors import AuthError, MalformedPayload, ShutdownRequested
from growatt.src.metrics import MetricConstants, derive
from growatt.src.models import LogRecord, StorageStatusResponse

if TYPE_CHECKING:
    from growatt.src.health import HealthWriter
    from growatt.src.models import Device
    from growatt.src.rotating_log import RotatingLogWriter
    from growatt.src.session import SessionClient
    from growatt.src.status import ConsoleReporter

logger = logging.getLogger(__name__)

STORAGE_STATUS_PATH = "/panel/storage/getStorageStatusData"

DEFAULT_INTERVAL_S: float = 60.0


class PollerState(str, Enum):
    """Where a DevicePoller currently is in its cycle."""

    IDLE = "idle"
    SAMPLING = "sampling"
    COMPUTING = "computing"
    LOGGING = "logging"
    SLEEPING = "sleeping"
    STOPPED = "stopped"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Scheduling helpers
# ---------------------------------------------------------------------------


def next_target(started: float, iteration: int, interval_s: float) -> float:
    """Absolute wake-up time after *iteration* (1-based)."""
    return started + iteration * interval_s


def start_delays(count: int, spread_s: float) -> list[float]:
    """Offsets that spread *count* first samples evenly over *spread_s*."""
    if count <= 0:
        return []
    step = spread_s / count
    return [i * step for i in range(count)]


def _local_now() -> datetime:
    return datetime.now().astimezone()


# ---------------------------------------------------------------------------
# Poller
# ---------------------------------------------------------------------------


class DevicePoller:
    """Samples one device forever (until shutdown or an AuthError).

    Args:
        client: Shared SessionClient.
        device: The device to sample.
        writer: The device's rotating log writer. Closed when the loop ends.
        constants: Reference constants for derived metrics.
        interval_s: Seconds between sample starts.
        start_delay_s: Delay before the first sample (startup staggering).
        reporter: Optional console reporter.
        health: Optional health writer.
        clock: Monotonic clock used for scheduling.
        now: Timestamp source for records.
        sleep: Awaitable sleep; defaults to waiting on the shutdown event
            with a timeout so shutdown interrupts the wait.
    """

    def __init__(
        self,
        *,
        client: SessionClient,
        device: Device,
        writer: RotatingLogWriter,
        constants: MetricConstants | None = None,
        interval_s: float = DEFAULT_INTERVAL_S,
        start_delay_s: float = 0.0,
        reporter: ConsoleReporter | None = None,
        health: HealthWriter | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _local_now,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.device = device
        self.state = PollerState.IDLE
        self.iterations = 0
        self._client = client
        self._writer = writer
        self._constants = constants or MetricConstants()
        self._interval_s = interval_s
        self._start_delay_s = start_delay_s
        self._reporter = reporter
        self._health = health
        self._clock = clock
        self._now = now
        self._sleep = sleep
        self._shutdown: asyncio.Event | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def poll_once(self) -> LogRecord:
        """Run Sampling, Computing and Logging once.

        Returns:
            The record that was appended to the log.

        Raises:
            AuthError: If the session cannot be (re-)established.
            MalformedPayload: If the status response has the wrong shape.
        """
        self.state = PollerState.SAMPLING
        response = await self._client.request(
            STORAGE_STATUS_PATH,
            data={"storageSn": self.device.sn},
            params={"plantId": str(self.device.plant_id)},
        )
        sample = response.parse(StorageStatusResponse).obj
        ts = self._now()

        self.state = PollerState.COMPUTING
        derived = derive(sample, response.text, self._constants)
        record = LogRecord(
            ts=ts, device_sn=self.device.sn, sample=sample, derived=derived
        )

        self.state = PollerState.LOGGING
        await asyncio.to_thread(self._writer.append, record)
        if self._reporter is not None:
            self._reporter.report(sample, derived, ts)
        if self._health is not None:
            self._health.record_poll(self.device.sn, ts)
        return record

    async def run(self, shutdown_event: asyncio.Event | None = None) -> None:
        """Sample on schedule until *shutdown_event* is set.

        Raises:
            AuthError: Ends the loop; the log file is closed first.
        """
        self._shutdown = shutdown_event or asyncio.Event()
        logger.info(
            "Poller for %s starting in %.1fs (interval=%ss)",
            self.device.sn,
            self._start_delay_s,
            self._interval_s,
        )
        try:
            if self._start_delay_s > 0:
                await self._pause(self._start_delay_s)

            started = self._clock()
            iteration = 0
            while not self._shutdown.is_set():
                iteration += 1
                await self._iterate()
                self.iterations = iteration

                self.state = PollerState.SLEEPING
                target = next_target(started, iteration, self._interval_s)
                await self._pause(max(0.0, target - self._clock()))
        except ShutdownRequested as exc:
            logger.info("Poller for %s interrupted: %s", self.device.sn, exc)
        except AuthError as exc:
            self.state = PollerState.FAILED
            logger.error("Poller for %s stopped: %s", self.device.sn, exc)
            self._record_error(str(exc))
            raise
        finally:
            self._writer.close()
            if self.state is not PollerState.FAILED:
                self.state = PollerState.STOPPED
        logger.info("Poller for %s stopped", self.device.sn)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _iterate(self) -> None:
        """One cycle; errors other than AuthError and shutdown are logged."""
        try:
            await self.poll_once()
        except (AuthError, ShutdownRequested):
            raise
        except MalformedPayload as exc:
            logger.warning(
                "Poll of %s returned a malformed payload, retrying next cycle: %s",
                self.device.sn,
                exc,
            )
            self._record_error(str(exc))
        except Exception as exc:
            logger.error("Poll cycle error for %s", self.device.sn, exc_info=True)
            self._record_error(f"{type(exc).__name__}: {exc}")

    def _record_error(self, message: str) -> None:
        if self._health is None:
            return
        try:
            self._health.record_error(self.device.sn, message)
        except OSError:
            logger.warning("Failed to write health file", exc_info=True)

    async def _pause(self, delay: float) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
            return
        assert self._shutdown is not None
        if delay <= 0:
            await asyncio.sleep(0)
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._shutdown.wait(), timeout=delay)
