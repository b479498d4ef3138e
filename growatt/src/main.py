"""
Logger daemon entrypoint for the Growatt dashboard.

Startup:
1. Configure structured JSON logging and load GrowattSettings.
2. Build the one SessionClient shared by every poller and restore the
   persisted cookie snapshot (a missing or corrupt file only logs).
3. Discover plants, then every plant's devices concurrently.
4. Start one DevicePoller per device. First samples are staggered so the
   initial burst spreads evenly over STARTUP_SPREAD_S.

Each poller is an independent task: an AuthError or crash in one is logged
and never cancels the others. SIGTERM/SIGINT set a shared asyncio.Event;
pollers stop at their next wait (including a pending 5xx retry), close their
log files, and the HTTP client is closed last.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from growatt.src.cookies import CookieStore
from growatt.src.discovery import discover
from growatt.src.errors import AuthError, GrowattError, ShutdownRequested
from growatt.src.health import HealthWriter
from growatt.src.metrics import MetricConstants
from growatt.src.poller import DevicePoller, start_delays
from growatt.src.rotating_log import RotatingLogWriter
from growatt.src.session import Credentials, SessionClient
from growatt.src.status import ConsoleReporter

if TYPE_CHECKING:
    from growatt.src.config import GrowattSettings
    from growatt.src.models import Device, Plant

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging for the logger daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_secret(value: str | None) -> str:
    """Return a short non-reversible fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: GrowattSettings) -> None:
    """Log a config summary at startup, excluding secrets.

    The password is only ever logged as a masked fingerprint.
    """
    logger.info(
        "Growatt logger starting with config: "
        "base_url=%s, username=%s, cookies_file=%s, log_path=%s, "
        "poll_interval_s=%s, startup_spread_s=%s, health_path=%s, "
        "retry_s=%s..%s, max_consecutive_expirations=%s, "
        "low_reference_capacity=%s, reference_wattage=%s, "
        "reference_wh_per_percent=%s, password_masked=%s",
        settings.growatt_base_url,
        settings.growatt_username,
        settings.cookies_file,
        settings.log_path,
        settings.poll_interval_s,
        settings.startup_spread_s,
        settings.health_path or "disabled",
        settings.retry_min_s,
        settings.retry_max_s,
        settings.max_consecutive_expirations,
        settings.low_reference_capacity,
        settings.reference_wattage,
        settings.reference_wh_per_percent,
        _masked_secret(settings.growatt_password),
    )


def log_discovery(discovered: list[tuple[Plant, list[Device]]]) -> None:
    """Log the plant / device tree found at startup."""
    for plant, devices in discovered:
        logger.info("Plant %s (#%d, GMT%+g)", plant.name, plant.id, plant.timezone)
        for device in devices:
            logger.info(
                "  Device %s [%s] datalogger %s [%s]",
                device.display_name,
                device.sn,
                device.datalogger_type,
                device.datalogger_sn,
            )


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_client(
    settings: GrowattSettings,
    health: HealthWriter | None = None,
    shutdown_event: asyncio.Event | None = None,
) -> SessionClient:
    """Create the shared SessionClient from settings."""
    return SessionClient(
        base_url=settings.growatt_base_url,
        credentials=Credentials(settings.growatt_username, settings.growatt_password),
        cookie_store=CookieStore(settings.cookies_file),
        timeout_s=settings.request_timeout_s,
        retry_min_s=settings.retry_min_s,
        retry_max_s=settings.retry_max_s,
        max_consecutive_expirations=settings.max_consecutive_expirations,
        on_login=health.record_login if health is not None else None,
        shutdown_event=shutdown_event,
    )


def build_pollers(
    *,
    client: SessionClient,
    discovered: list[tuple[Plant, list[Device]]],
    settings: GrowattSettings,
    health: HealthWriter | None = None,
) -> list[DevicePoller]:
    """Create one staggered DevicePoller per discovered device."""
    devices = [device for _, plant_devices in discovered for device in plant_devices]
    delays = start_delays(len(devices), settings.startup_spread_s)
    constants = MetricConstants(
        low_reference_capacity=settings.low_reference_capacity,
        reference_wattage=settings.reference_wattage,
        reference_wh_per_percent=settings.reference_wh_per_percent,
    )
    log_dir = Path(settings.log_path)
    return [
        DevicePoller(
            client=client,
            device=device,
            writer=RotatingLogWriter(log_dir / f"{device.sn}-{{date}}.jsons"),
            constants=constants,
            interval_s=settings.poll_interval_s,
            start_delay_s=delay,
            reporter=ConsoleReporter(device),
            health=health,
        )
        for device, delay in zip(devices, delays)
    ]


async def run_pollers(
    pollers: list[DevicePoller],
    shutdown_event: asyncio.Event,
) -> list[BaseException | None]:
    """Run every poller as an independent task until they all end.

    Returns:
        Per poller, the exception that ended it or None.
    """
    results = await asyncio.gather(
        *(poller.run(shutdown_event) for poller in pollers),
        return_exceptions=True,
    )
    outcomes: list[BaseException | None] = []
    for poller, result in zip(pollers, results):
        if isinstance(result, BaseException):
            if not isinstance(result, AuthError):
                logger.error(
                    "Poller for %s crashed",
                    poller.device.sn,
                    exc_info=(type(result), result, result.__traceback__),
                )
            outcomes.append(result)
        else:
            outcomes.append(None)
    return outcomes


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Log Growatt storage telemetry to daily JSON-lines files.",
    )
    parser.add_argument(
        "username",
        nargs="?",
        help="Dashboard account (overrides GROWATT_USERNAME).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging.")
    return parser.parse_args(argv)


async def async_main(argv: list[str] | None = None) -> int:
    """Async entrypoint: load config, discover devices, run pollers.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.

    Returns:
        Process exit code.
    """
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.INFO)

    from growatt.src.config import GrowattSettings

    overrides = {"growatt_username": args.username} if args.username else {}
    settings = GrowattSettings(**overrides)
    log_config_summary(settings)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: _handle_signal(shutdown_event))

    health = HealthWriter(settings.health_path) if settings.health_path else None

    async with build_client(settings, health, shutdown_event) as client:
        client.load_cookies()
        try:
            discovered = await discover(client)
        except ShutdownRequested:
            logger.info("Shutdown requested during discovery")
            return 0
        except GrowattError as exc:
            logger.error("Discovery failed: %s", exc)
            return 1

        log_discovery(discovered)
        pollers = build_pollers(
            client=client,
            discovered=discovered,
            settings=settings,
            health=health,
        )
        if not pollers:
            logger.warning("No devices found, nothing to poll")
            return 0

        outcomes = await run_pollers(pollers, shutdown_event)

    logger.info("Shutdown complete")
    return 1 if any(isinstance(o, AuthError) for o in outcomes) else 0


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event."""
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the logger daemon."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
