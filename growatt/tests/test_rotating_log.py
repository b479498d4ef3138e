"""
Unit tests for the daily-rotating JSON-lines writer.

Tests verify:
- Records of two calendar days land in two files, one record each.
- The previous day's file is closed before the next one is opened.
- Same-day records append to the same file; reopening appends.
- Templates without ``{date}`` are rejected.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from growatt.src.models import DerivedMetrics, LogRecord, StorageSample
from growatt.src.rotating_log import RotatingLogWriter


@pytest.fixture()
def make_record(make_storage_obj):
    def _make(ts: datetime) -> LogRecord:
        return LogRecord(
            ts=ts,
            device_sn="SPF0000001",
            sample=StorageSample.model_validate(make_storage_obj()),
            derived=DerivedMetrics(
                direction="discharging",
                battery_percent_load=7.0,
                loss=30.0,
                seconds_remaining=1800.0,
                signature="abc",
            ),
        )

    return _make


def _lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestRotation:
    def test_two_days_two_files(self, tmp_path: Path, make_record) -> None:
        template = tmp_path / "SPF0000001-{date}.jsons"
        day_one = datetime(2026, 10, 19, 23, 59, 30, tzinfo=UTC)
        day_two = datetime(2026, 10, 20, 0, 0, 30, tzinfo=UTC)

        with RotatingLogWriter(template) as writer:
            first = writer.append(make_record(day_one))
            second = writer.append(make_record(day_two))

        assert first == tmp_path / "SPF0000001-2026-10-19.jsons"
        assert second == tmp_path / "SPF0000001-2026-10-20.jsons"
        assert [r["ts"][:10] for r in _lines(first)] == ["2026-10-19"]
        assert [r["ts"][:10] for r in _lines(second)] == ["2026-10-20"]

    def test_previous_file_closed_before_next_opened(
        self, tmp_path: Path, make_record
    ) -> None:
        writer = RotatingLogWriter(tmp_path / "dev-{date}.jsons")
        writer.append(make_record(datetime(2026, 10, 19, 12, 0, tzinfo=UTC)))
        old_file = writer._file
        closed_at_open: list[bool] = []
        real_open = Path.open

        def spy_open(self, *args, **kwargs):
            closed_at_open.append(old_file.closed)
            return real_open(self, *args, **kwargs)

        with patch.object(Path, "open", spy_open):
            writer.append(make_record(datetime(2026, 10, 20, 12, 0, tzinfo=UTC)))
        writer.close()

        assert closed_at_open == [True]

    def test_same_day_appends_to_one_file(self, tmp_path: Path, make_record) -> None:
        with RotatingLogWriter(tmp_path / "dev-{date}.jsons") as writer:
            writer.append(make_record(datetime(2026, 10, 19, 8, 0, tzinfo=UTC)))
            path = writer.append(make_record(datetime(2026, 10, 19, 9, 0, tzinfo=UTC)))

        assert len(_lines(path)) == 2
        assert list(tmp_path.iterdir()) == [path]

    def test_reopen_appends(self, tmp_path: Path, make_record) -> None:
        ts = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)
        template = tmp_path / "dev-{date}.jsons"
        with RotatingLogWriter(template) as writer:
            writer.append(make_record(ts))
        with RotatingLogWriter(template) as writer:
            path = writer.append(make_record(ts))

        assert len(_lines(path)) == 2

    def test_each_line_flushed(self, tmp_path: Path, make_record) -> None:
        writer = RotatingLogWriter(tmp_path / "dev-{date}.jsons")
        path = writer.append(make_record(datetime(2026, 10, 19, 8, 0, tzinfo=UTC)))

        assert len(_lines(path)) == 1
        writer.close()

    def test_creates_directory(self, tmp_path: Path, make_record) -> None:
        with RotatingLogWriter(tmp_path / "log" / "dev-{date}.jsons") as writer:
            path = writer.append(make_record(datetime(2026, 10, 19, tzinfo=UTC)))

        assert path.parent == tmp_path / "log"


class TestLifecycle:
    def test_template_without_placeholder_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match=r"\{date\}"):
            RotatingLogWriter(tmp_path / "dev.jsons")

    def test_close_is_idempotent(self, tmp_path: Path, make_record) -> None:
        writer = RotatingLogWriter(tmp_path / "dev-{date}.jsons")
        writer.append(make_record(datetime(2026, 10, 19, tzinfo=UTC)))

        writer.close()
        writer.close()

    def test_current_path_before_first_append(self, tmp_path: Path) -> None:
        assert RotatingLogWriter(tmp_path / "dev-{date}.jsons").current_path is None
