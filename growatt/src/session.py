"""
Cookie-session HTTP client for the Growatt dashboard.

The dashboard has no public API. It behaves like a browser application: a
form login sets session cookies, and an expired session shows up as a 302
redirect to the login page. SessionClient hides all of that from callers:

- Redirects are never followed; they are inspected.
- A redirect to ``errorNoLogin`` triggers a re-login and a retry of the same
  request. Consecutive expirations are bounded; past the bound the session
  is declared unstable (AuthError).
- A 5xx response (or a transport failure) is retried after a randomized
  delay, without limit until shutdown is signalled. Every retry is logged.
- Any other non-200 status is logged and the body is parsed anyway.
- After every completed exchange the cookie snapshot is persisted if it
  changed.

One SessionClient is shared by every device poller. Logins are single-flight:
when several pollers detect expiry at once, one login runs and the others
wait for it, then retry their own request. A login failure is raised in every
waiting caller.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from growatt.src.cookies import CookieStore
from growatt.src.errors import (
    AuthError,
    AuthFailure,
    MalformedPayload,
    SessionExpired,
    ShutdownRequested,
    TransientServerError,
    UnexpectedStatus,
)
from growatt.src.models import LoginResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

LOGIN_PATH = "/login"

SESSION_EXPIRED_MARKER = "errorNoLogin"
"""Substring of the 302 ``Location`` header that signals an expired session."""

LOGIN_RESULT_OK = 1
LOGIN_RESULT_BAD_CREDENTIALS = -2

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/javascript, */*; q=0.01",
    "X-Requested-With": "XMLHttpRequest",
}


@dataclass(frozen=True)
class Credentials:
    """Dashboard login. The password is kept out of ``repr``."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class ApiResponse:
    """Result of one completed request.

    Attributes:
        path: Request path (without base URL).
        status_code: Final HTTP status.
        text: Raw response body.
        payload: Body decoded as JSON.
    """

    path: str
    status_code: int
    text: str
    payload: Any

    def parse(self, schema: type[T]) -> T:
        """Validate the payload against *schema* (a model or type).

        Raises:
            MalformedPayload: If the payload does not match the schema.
        """
        try:
            return TypeAdapter(schema).validate_python(self.payload)
        except ValidationError as exc:
            raise MalformedPayload(self.path, str(exc)) from exc


class SessionClient:
    """Authenticated HTTP client with transparent session management.

    Args:
        base_url: Dashboard base URL.
        credentials: Login used whenever the session has expired.
        cookie_store: Persistence for the session cookies.
        timeout_s: Timeout per HTTP request.
        retry_min_s: Lower bound of the randomized 5xx retry delay.
        retry_max_s: Upper bound of the randomized 5xx retry delay.
        max_consecutive_expirations: Expirations tolerated within one request
            before raising ``AuthError(session-unstable)``.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        sleep: Awaitable sleep used between retries. Defaults to waiting on
            *shutdown_event* with a timeout so shutdown interrupts the wait.
        on_login: Called after every successful login.
        shutdown_event: Once set, pending retries stop with
            ``ShutdownRequested`` instead of trying again.

    Usage::

        async with SessionClient(
            base_url="https://server.growatt.com",
            credentials=Credentials("me", "secret"),
            cookie_store=CookieStore("./run/cookies.json"),
        ) as client:
            client.load_cookies()
            response = await client.request("/index/getPlantListTitle")
    """

    def __init__(
        self,
        *,
        base_url: str,
        credentials: Credentials,
        cookie_store: CookieStore,
        timeout_s: float = 30.0,
        retry_min_s: float = 1.0,
        retry_max_s: float = 6.0,
        max_consecutive_expirations: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        on_login: Callable[[], None] | None = None,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        self._credentials = credentials
        self._cookie_store = cookie_store
        self._retry_min_s = retry_min_s
        self._retry_max_s = retry_max_s
        self._max_consecutive_expirations = max_consecutive_expirations
        self._sleep = sleep
        self._on_login = on_login
        self._shutdown = shutdown_event or asyncio.Event()
        self._client = httpx.AsyncClient(
            base_url=base_url,
            follow_redirects=False,
            timeout=timeout_s,
            headers=DEFAULT_HEADERS,
            transport=transport,
        )
        self._login_lock = asyncio.Lock()
        self._pending_login: asyncio.Task[None] | None = None
        self._login_generation = 0

    async def __aenter__(self) -> SessionClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    @property
    def login_count(self) -> int:
        """Number of successful logins performed by this client."""
        return self._login_generation

    def load_cookies(self) -> int:
        """Restore the persisted cookie snapshot. Never raises."""
        return self._cookie_store.load(self._client.cookies.jar)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def login(self) -> None:
        """Log in with the configured credentials.

        Only one login request is ever in flight.

        Raises:
            AuthError: ``invalid-credentials`` when the dashboard rejects the
                username/password, ``unknown`` for any other non-success
                result.
            MalformedPayload: If the login response is not the expected shape.
        """
        async with self._login_lock:
            logger.info("Logging in as %s/%s", self._credentials.username, "xxx")
            try:
                response = await self._send_with_retry(
                    LOGIN_PATH,
                    data={
                        "account": self._credentials.username,
                        "password": self._credentials.password,
                        "validateCode": "",
                        "isReadPact": "0",
                    },
                )
            except SessionExpired:
                raise AuthError(
                    AuthFailure.UNKNOWN, "login redirected to the login page"
                ) from None
            result = response.parse(LoginResponse).result
            if result == LOGIN_RESULT_BAD_CREDENTIALS:
                raise AuthError(
                    AuthFailure.INVALID_CREDENTIALS, "bad username/password"
                )
            if result != LOGIN_RESULT_OK:
                raise AuthError(AuthFailure.UNKNOWN, f"login result {result}")
            self._login_generation += 1
            logger.info("Login successful")
            if self._on_login is not None:
                try:
                    self._on_login()
                except OSError:
                    logger.warning("Failed to record login", exc_info=True)

    async def request(
        self,
        path: str,
        data: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> ApiResponse:
        """Issue an authenticated request, re-logging in when needed.

        Sends a GET when *data* is None, otherwise a form-encoded POST.

        Raises:
            AuthError: If login fails or the session keeps expiring.
            MalformedPayload: If the body is not JSON.
            ShutdownRequested: If shutdown is signalled during a retry wait.
        """
        expirations = 0
        while True:
            seen_generation = self._login_generation
            try:
                return await self._send_with_retry(path, data=data, params=params)
            except SessionExpired:
                expirations += 1
                if expirations > self._max_consecutive_expirations:
                    raise AuthError(
                        AuthFailure.SESSION_UNSTABLE,
                        f"session expired {expirations} times in a row for {path}",
                    ) from None
                logger.info(
                    "Session expired on %s, logging in again (expiration %d/%d)",
                    path,
                    expirations,
                    self._max_consecutive_expirations,
                )
                await self._relogin(seen_generation)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _relogin(self, seen_generation: int) -> None:
        """Join (or start) the single in-flight login.

        If a login already completed since *seen_generation*, return at once
        so the caller just retries with the fresh cookies.
        """
        if self._login_generation != seen_generation:
            return
        if self._pending_login is None:
            self._pending_login = asyncio.ensure_future(self._run_pending_login())
        await asyncio.shield(self._pending_login)

    async def _run_pending_login(self) -> None:
        try:
            await self.login()
        finally:
            self._pending_login = None

    async def _send_with_retry(
        self,
        path: str,
        data: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> ApiResponse:
        """Run one exchange, retrying transient failures until shutdown.

        Raises:
            ShutdownRequested: If the shutdown event is set while waiting to
                retry.
        """
        attempt = 0
        while True:
            try:
                return await self._exchange(path, data=data, params=params)
            except TransientServerError as exc:
                attempt += 1
                delay = random.uniform(self._retry_min_s, self._retry_max_s)
                logger.warning(
                    "Transient failure on %s (%s), retry %d in %.1fs",
                    path,
                    exc,
                    attempt,
                    delay,
                )
                await self._backoff(delay)
                if self._shutdown.is_set():
                    raise ShutdownRequested(
                        f"giving up on {path} after {attempt} retries"
                    ) from exc

    async def _backoff(self, delay: float) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._shutdown.wait(), timeout=delay)

    async def _exchange(
        self,
        path: str,
        data: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> ApiResponse:
        """Send one request and classify the response.

        Raises:
            SessionExpired: On a 302 redirect to the login error page.
            TransientServerError: On 5xx or a transport error.
            MalformedPayload: If the body is not JSON.
        """
        try:
            if data is None:
                response = await self._client.get(path, params=params)
            else:
                response = await self._client.post(path, data=data, params=params)
        except httpx.TransportError as exc:
            raise TransientServerError(None, f"{type(exc).__name__}: {exc}") from exc

        status = response.status_code
        location = response.headers.get("location", "")
        if status == 302 and SESSION_EXPIRED_MARKER in location:
            raise SessionExpired(path)
        if status >= 500:
            raise TransientServerError(status)
        if status != 200:
            logger.warning("%s, parsing body anyway", UnexpectedStatus(status, path))

        await self._cookie_store.persist(self._client.cookies.jar)

        text = response.text
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedPayload(path, f"body is not JSON ({exc})") from exc
        return ApiResponse(path=path, status_code=status, text=text, payload=payload)
