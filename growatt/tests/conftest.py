"""
Shared test fixtures for the Growatt logger tests.

Provides environment variable fixtures for GrowattSettings configuration
tests and canned dashboard payloads. All logger env vars are cleaned before
each test to ensure isolation.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

# All GrowattSettings environment variable names, used for cleanup.
_ALL_GROWATT_ENV_VARS = (
    "GROWATT_USERNAME",
    "GROWATT_PASSWORD",
    "GROWATT_BASE_URL",
    "COOKIES_FILE",
    "LOG_PATH",
    "POLL_INTERVAL_S",
    "STARTUP_SPREAD_S",
    "HEALTH_PATH",
    "REQUEST_TIMEOUT_S",
    "RETRY_MIN_S",
    "RETRY_MAX_S",
    "MAX_CONSECUTIVE_EXPIRATIONS",
    "LOW_REFERENCE_CAPACITY",
    "REFERENCE_WATTAGE",
    "REFERENCE_WH_PER_PERCENT",
)


@pytest.fixture(autouse=True)
def _clean_growatt_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all logger env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_GROWATT_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every GrowattSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "GROWATT_USERNAME": "solar-user",
        "GROWATT_PASSWORD": "s3cret-pass",
        "GROWATT_BASE_URL": "https://server.growatt.example",
        "COOKIES_FILE": "/tmp/run/cookies.json",
        "LOG_PATH": "/tmp/log",
        "POLL_INTERVAL_S": "30",
        "STARTUP_SPREAD_S": "15",
        "HEALTH_PATH": "/tmp/run/health.json",
        "REQUEST_TIMEOUT_S": "20",
        "RETRY_MIN_S": "2",
        "RETRY_MAX_S": "4",
        "MAX_CONSECUTIVE_EXPIRATIONS": "5",
        "LOW_REFERENCE_CAPACITY": "10",
        "REFERENCE_WATTAGE": "60",
        "REFERENCE_WH_PER_PERCENT": "100",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables.

    Optional variables should fall back to their defaults.
    """
    env = {
        "GROWATT_USERNAME": "solar-user",
        "GROWATT_PASSWORD": "s3cret-pass",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


def _storage_obj(**overrides: str) -> dict[str, str]:
    """Raw ``obj`` of a storage status response, all values as text."""
    obj = {
        "vPv2": "0",
        "deviceType": "0",
        "gridPower": "0",
        "loadPower": "320",
        "vPv1": "0",
        "fAcOutput": "50.0",
        "invStatus": "0",
        "ppv2": "0",
        "vBat": "52.4",
        "loadPrecent": "6",
        "panelPower": "0",
        "batPower": "350",
        "vAcOutput": "230.1",
        "capacity": "74",
        "ppv1": "0",
        "iPv1": "0",
        "iPv2": "0",
        "vAcInput": "0",
        "fAcInput": "0",
        "iTotal": "0",
        "rateVA": "410",
        "status": "2",
    }
    obj.update(overrides)
    return obj


def _device_entry(**overrides: str) -> dict[str, Any]:
    """Raw entry of the plant device list, all values as text."""
    entry = {
        "deviceType": "2",
        "ptoStatus": "0",
        "timeServer": "2026-10-19 09:15:02",
        "accountName": "solar-user",
        "timezone": "1",
        "plantId": "1234",
        "deviceTypeName": "storage",
        "nominalPower": "5000",
        "bdcStatus": "0",
        "eToday": "3.2",
        "eMonth": "48.9",
        "datalogTypeTest": "ShineWiFi-X",
        "eTotal": "1520.4",
        "pac": "350",
        "datalogSn": "DL00000001",
        "alias": "Garage",
        "location": "",
        "deviceModel": "SPF 5000 ES",
        "sn": "SPF0000001",
        "plantName": "Home",
        "status": "2",
        "lastUpdateTime": "2026-10-19 09:14:55",
    }
    entry.update(overrides)
    return entry


@pytest.fixture()
def make_storage_obj() -> Callable[..., dict[str, str]]:
    """Factory for raw storage status ``obj`` payloads."""
    return _storage_obj


@pytest.fixture()
def make_device_entry() -> Callable[..., dict[str, Any]]:
    """Factory for raw plant device list entries."""
    return _device_entry
