"""
Append-only JSON-lines log that rotates by calendar day.

Each device writes to a path template containing a ``{date}`` placeholder,
e.g. ``log/ABC123-{date}.jsons``. The day is taken from the record's own
timestamp (not the wall clock), so a record is always filed under the day
it describes. When the day changes the open file is closed before the next
day's file is opened; one file never holds records of two days.

Every append writes one complete line and flushes it. Nothing is buffered
across a rotation, so the record that triggers a rotation is written exactly
once, to the new file.

Operations:
- append(record): write one LogRecord, rotating first if needed.
- close(): close the open file, if any.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import TextIO

from growatt.src.models import LogRecord

logger = logging.getLogger(__name__)

DATE_PLACEHOLDER = "{date}"
DAY_FORMAT = "%Y-%m-%d"


class RotatingLogWriter:
    """Daily-rotating append-only writer for one device.

    Args:
        template: Path template containing ``{date}``. Accepts str or Path.

    Raises:
        ValueError: If the template has no ``{date}`` placeholder.

    Usage::

        with RotatingLogWriter("log/ABC123-{date}.jsons") as writer:
            writer.append(record)
    """

    def __init__(self, template: str | Path) -> None:
        self.template = str(template)
        if DATE_PLACEHOLDER not in self.template:
            raise ValueError(
                f"log path template must contain {DATE_PLACEHOLDER}: {self.template}"
            )
        self._file: TextIO | None = None
        self._day: date | None = None
        self._path: Path | None = None

    def __enter__(self) -> RotatingLogWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    @property
    def current_path(self) -> Path | None:
        """Path of the open file, or None before the first append."""
        return self._path

    def path_for(self, day: date) -> Path:
        """Return the file path that holds records of *day*."""
        return Path(self.template.replace(DATE_PLACEHOLDER, day.strftime(DAY_FORMAT)))

    def append(self, record: LogRecord) -> Path:
        """Append *record* as one JSON line.

        Returns:
            The path the record was written to.
        """
        day = record.ts.date()
        if self._file is None or day != self._day:
            self._rotate(day)

        assert self._file is not None
        self._file.write(record.to_json_line())
        self._file.flush()
        assert self._path is not None
        return self._path

    def close(self) -> None:
        """Close the open file. Safe to call more than once."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def _rotate(self, day: date) -> None:
        previous = self._day
        self.close()
        path = self.path_for(day)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Rotating log file %s: %s -> %s", self.template, previous, day)
        self._file = path.open("a", encoding="utf-8")
        self._day = day
        self._path = path
