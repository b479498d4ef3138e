"""
Health file writer for the logger daemon.

Writes a JSON health file at a configurable path with:
- last_login_ts: ISO timestamp of the most recent successful login.
- devices: per device serial, ``last_poll_ts`` of the last logged sample and
  ``last_error`` (None after a successful poll).

The file is rewritten on every state change, providing a simple liveness
signal that a container HEALTHCHECK or monitoring can inspect.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path


class HealthWriter:
    """Writes logger health status to a JSON file.

    Each mutating method updates the in-memory state and immediately
    rewrites the health file so it always reflects the latest status.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_login_ts: str | None = None
        self._devices: dict[str, dict[str, str | None]] = {}

    def record_login(self) -> None:
        """Record a successful login and write health file."""
        self._last_login_ts = datetime.now().astimezone().isoformat()
        self._write()

    def record_poll(self, device_sn: str, ts: datetime) -> None:
        """Record a logged sample of *device_sn* and write health file."""
        self._devices[device_sn] = {"last_poll_ts": ts.isoformat(), "last_error": None}
        self._write()

    def record_error(self, device_sn: str, error: str) -> None:
        """Record a failed poll of *device_sn* and write health file."""
        entry = self._devices.setdefault(
            device_sn, {"last_poll_ts": None, "last_error": None}
        )
        entry["last_error"] = error
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_login_ts": self._last_login_ts,
            "devices": self._devices,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data))
