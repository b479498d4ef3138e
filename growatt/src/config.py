"""
Logger daemon configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Credentials come from the environment or a .env file; nothing secret is
hardcoded.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class GrowattSettings(BaseSettings):
    """Configuration for the Growatt telemetry logger.

    All values are loaded from environment variables. Required variables
    must be set; optional variables have sensible defaults.

    Attributes:
        growatt_username: Dashboard account name.
        growatt_password: Dashboard password. Never logged.
        growatt_base_url: Dashboard base URL (must be HTTPS).
        cookies_file: Path of the persisted cookie snapshot.
        log_path: Directory receiving ``<sn>-<day>.jsons`` files.
        poll_interval_s: Seconds between samples of one device (min 5).
        startup_spread_s: Window over which the first sample of every
            device is staggered.
        health_path: Health JSON file path. Empty string disables it.
        request_timeout_s: Timeout per HTTP request in seconds.
        retry_min_s: Lower bound of the randomized 5xx retry delay.
        retry_max_s: Upper bound of the randomized 5xx retry delay.
        max_consecutive_expirations: Re-logins tolerated back to back before
            the session is declared unstable.
        low_reference_capacity: Capacity percent treated as empty when
            estimating discharge time.
        reference_wattage: Divisor for the percent load on battery.
        reference_wh_per_percent: Energy per capacity percent used by the
            time-remaining estimate.
    """

    growatt_username: str
    growatt_password: str
    growatt_base_url: str = "https://server.growatt.com"
    cookies_file: str = "./run/cookies.json"
    log_path: str = "./log"
    poll_interval_s: int = 60
    startup_spread_s: float = 60.0
    health_path: str = "./run/health.json"
    request_timeout_s: float = 30.0
    retry_min_s: float = 1.0
    retry_max_s: float = 6.0
    max_consecutive_expirations: int = 3
    low_reference_capacity: float = 21.0
    reference_wattage: float = 50.0
    reference_wh_per_percent: float = 87.0

    @field_validator("growatt_base_url")
    @classmethod
    def base_url_must_be_https(cls, v: str) -> str:
        """Reject plain HTTP: credentials and session cookies travel on it."""
        if not v.lower().startswith("https://"):
            raise ValueError(f"GROWATT_BASE_URL must use HTTPS (got: '{v[:20]}...')")
        return v.rstrip("/")

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_reasonable(cls, v: int) -> int:
        """Validate the poll interval does not hammer the dashboard."""
        if v < 5:
            raise ValueError("POLL_INTERVAL_S must be >= 5")
        return v

    @field_validator("startup_spread_s", "request_timeout_s")
    @classmethod
    def must_be_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @field_validator("max_consecutive_expirations")
    @classmethod
    def expirations_must_be_positive(cls, v: int) -> int:
        """At least one re-login is needed to recover an expired session."""
        if v < 1:
            raise ValueError("MAX_CONSECUTIVE_EXPIRATIONS must be >= 1")
        return v

    @field_validator("reference_wattage", "reference_wh_per_percent")
    @classmethod
    def reference_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("reference constants must be > 0")
        return v

    @model_validator(mode="after")
    def _retry_bounds_ordered(self) -> "GrowattSettings":
        """Validate 0 <= RETRY_MIN_S <= RETRY_MAX_S."""
        if self.retry_min_s < 0 or self.retry_min_s > self.retry_max_s:
            raise ValueError("RETRY_MIN_S must be >= 0 and <= RETRY_MAX_S")
        return self

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
