"""
Device status messages and the per-sample console line.

The console line is informational only. It goes through the
``growatt.status`` logger and is suppressed while a device's signature does
not change. Suppression never affects what is written to the log files.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from datetime import datetime

from growatt.src.models import DerivedMetrics, Device, StorageSample

status_logger = logging.getLogger("growatt.status")

GREEN = "green"
ORANGE = "orange"
RED = "red"

SEVERITY_MARKERS = {
    GREEN: "[ok]",
    ORANGE: "[warn]",
    RED: "[fail]",
}
INFO_MARKER = "[info]"

STATUS_MESSAGES: dict[str, dict[int, tuple[str, str | None]]] = {
    "storage": {
        -1: ("Lost", None),
        0: ("Standby", ORANGE),
        1: ("PV&Grid Supporting Loads", GREEN),
        2: ("Battery Discharging", GREEN),
        3: ("Malfunction", RED),
        4: ("Flash", ORANGE),
        5: ("MPPT charge", None),
        6: ("AC charge", None),
        7: ("PV&Grid Charging", None),
        8: ("PV&Grid Charging+Grid Bypass", None),
        9: ("PV Charging+Grid Bypass", None),
        10: ("Grid Charging+Grid Bypass", None),
        11: ("Grid Bypass", None),
        12: ("PV Charging+Loads Supporting", None),
        13: ("AC charge and Discharge", None),
        14: ("Combine charge and Discharge", None),
    },
}
"""Status code -> (message, severity) per dashboard device type name."""


def describe_status(device_type: str, code: int) -> tuple[str, str | None]:
    """Return the message and severity for a status code.

    Unknown device types and codes get a generic message and no severity.
    """
    known = STATUS_MESSAGES.get(device_type, {})
    return known.get(code, (f"Status code: {code}", None))


def format_remaining(seconds: float) -> str:
    """Render a duration as ``[N days ]HH:MM:SS``; ``"!"`` when unknown."""
    if not math.isfinite(seconds) or seconds < 0:
        return "!"
    days, rest = divmod(int(seconds), 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    clock = f"{hours:02d}:{minutes:02d}:{secs:02d}"
    if days:
        return f"{days} days {clock}"
    return clock


def format_line(
    device: Device,
    sample: StorageSample,
    derived: DerivedMetrics,
    ts: datetime,
) -> str:
    """Build the one-line human summary of a sample."""
    message, severity = describe_status(device.device_type_name, sample.status)
    marker = SEVERITY_MARKERS.get(severity, INFO_MARKER)
    source = "grid" if sample.bat_power < 0 else "batt"
    return (
        f"[{device.sn}] {ts.strftime('%H:%M:%S')} {source} {-sample.bat_power:+.0f}w: "
        f"{sample.load_power:g}w/{sample.rate_va or 0:g}va "
        f"({sample.load_percent or 0:g}% / {derived.battery_percent_load:g}%, "
        f"{-derived.loss:+.0f}w) . {sample.capacity:g}% "
        f"(~{format_remaining(derived.seconds_remaining)}) {marker} {message}"
    )


class ConsoleReporter:
    """Prints a device's status line only when its signature changes."""

    def __init__(self, device: Device) -> None:
        self.device = device
        self._last_signature: str | None = None

    def report(
        self,
        sample: StorageSample,
        derived: DerivedMetrics,
        ts: datetime,
    ) -> bool:
        """Emit the status line unless it repeats the previous one.

        Returns:
            True if the full line was emitted.
        """
        if derived.signature == self._last_signature:
            status_logger.debug(
                "[%s] ... %s still current", self.device.sn, ts.strftime("%H:%M:%S")
            )
            return False
        self._last_signature = derived.signature
        status_logger.info(format_line(self.device, sample, derived, ts))
        return True
