"""
Cookie snapshot persistence for the dashboard session.

The session is a set of cookies held in the httpx client's cookie jar. This
module converts the jar to a structured list of cookie records (name, value,
domain, path, expiry, flags), writes it to disk only when the serialized
form changed since the last write, and restores it at startup.

A missing or corrupt snapshot never stops the daemon: it is logged and the
session simply starts empty. Writes go through a temporary file and an
atomic rename so a crash can never leave a half-written snapshot behind.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from http.cookiejar import Cookie, CookieJar
from pathlib import Path

from pydantic import BaseModel, TypeAdapter, ValidationError

from growatt.src.errors import StartupStateError

logger = logging.getLogger(__name__)


class CookieRecord(BaseModel):
    """Serializable form of one session cookie."""

    name: str
    value: str
    domain: str
    path: str = "/"
    expires: int | None = None
    secure: bool = False
    http_only: bool = False


_RECORDS = TypeAdapter(list[CookieRecord])


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------


def record_from_cookie(cookie: Cookie) -> CookieRecord:
    """Build a CookieRecord from a stdlib cookie held by the jar."""
    return CookieRecord(
        name=cookie.name,
        value=cookie.value or "",
        domain=cookie.domain,
        path=cookie.path,
        expires=cookie.expires,
        secure=bool(cookie.secure),
        http_only=cookie.has_nonstandard_attr("HttpOnly")
        or cookie.has_nonstandard_attr("httponly"),
    )


def cookie_from_record(record: CookieRecord) -> Cookie:
    """Build a stdlib cookie suitable for ``CookieJar.set_cookie``."""
    return Cookie(
        version=0,
        name=record.name,
        value=record.value,
        port=None,
        port_specified=False,
        domain=record.domain,
        domain_specified=bool(record.domain),
        domain_initial_dot=record.domain.startswith("."),
        path=record.path,
        path_specified=True,
        secure=record.secure,
        expires=record.expires,
        discard=record.expires is None,
        comment=None,
        comment_url=None,
        rest={"HttpOnly": ""} if record.http_only else {},
    )


def snapshot(jar: CookieJar) -> list[CookieRecord]:
    """Return the jar contents as records in a stable order."""
    records = [record_from_cookie(cookie) for cookie in jar]
    records.sort(key=lambda r: (r.domain, r.path, r.name))
    return records


def serialize(records: list[CookieRecord]) -> str:
    """Serialize records to the on-disk JSON form."""
    return json.dumps([r.model_dump() for r in records], indent=2)


def deserialize(text: str) -> list[CookieRecord]:
    """Parse the on-disk JSON form.

    Raises:
        StartupStateError: If the text is not a valid cookie snapshot.
    """
    try:
        return _RECORDS.validate_json(text)
    except ValidationError as exc:
        raise StartupStateError(f"invalid cookie snapshot: {exc}") from exc


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class CookieStore:
    """Loads and persists the cookie snapshot of one session.

    Remembers the last serialized form that was read or written so that an
    unchanged session is never rewritten.

    Args:
        path: Snapshot file path. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._serialized: str | None = None

    def load(self, jar: CookieJar) -> int:
        """Restore persisted cookies into *jar*.

        A missing or unreadable snapshot is logged and leaves the jar empty.

        Returns:
            Number of cookies restored.
        """
        try:
            text = self._read()
            records = deserialize(text)
        except StartupStateError as exc:
            logger.warning(
                "Could not load cookies, starting with an empty session: %s", exc
            )
            return 0

        jar.clear()
        for record in records:
            jar.set_cookie(cookie_from_record(record))
        self._serialized = text
        logger.info("Loaded %d cookies from %s", len(records), self.path)
        return len(records)

    async def persist(self, jar: CookieJar) -> bool:
        """Write the jar to disk if its serialized form changed.

        The snapshot is taken on the event loop; the file write runs in a
        worker thread.

        Returns:
            True if the file was written, False if the snapshot was unchanged.
        """
        serialized = serialize(snapshot(jar))
        if serialized == self._serialized:
            return False

        previous, self._serialized = self._serialized, serialized
        try:
            await asyncio.to_thread(self._write, serialized)
        except OSError:
            self._serialized = previous
            raise
        logger.debug("Persisted cookie snapshot to %s", self.path)
        return True

    def _write(self, serialized: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(serialized, encoding="utf-8")
        os.replace(tmp_path, self.path)

    def _read(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise StartupStateError(f"{self.path} does not exist (first run?)") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise StartupStateError(f"{self.path} is unreadable: {exc}") from exc
