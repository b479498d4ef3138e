"""
Pydantic models for dashboard payloads, derived metrics, and log records.

Every endpoint has one schema defined here and responses are parsed straight
into it. The dashboard encodes numbers and dates as text; the models coerce
them at this boundary so nothing downstream sees numeric strings. Blank
strings become ``None``. Unknown extra fields are kept so every raw telemetry
field still reaches the log file.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _blank_to_none(value: Any) -> Any:
    """Map empty / whitespace-only strings to None before type coercion."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _lenient_int(value: Any) -> Any:
    """Accept integral text such as ``"3"`` or ``"3.0"`` for integer fields."""
    value = _blank_to_none(value)
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return value
        if number.is_integer():
            return int(number)
    return value


OptionalFloat = Annotated[float | None, BeforeValidator(_blank_to_none)]
OptionalInt = Annotated[int | None, BeforeValidator(_lenient_int)]
LenientInt = Annotated[int, BeforeValidator(_lenient_int)]
OptionalDatetime = Annotated[datetime | None, BeforeValidator(_blank_to_none)]


class _Payload(BaseModel):
    """Base for models parsed from dashboard JSON (camelCase aliases)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class LoginResponse(_Payload):
    """Body of ``POST /login``. ``result == 1`` means success."""

    result: int


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class Plant(_Payload):
    """A physical site grouping one or more devices.

    Attributes:
        id: Numeric plant identifier.
        name: Display name.
        timezone: UTC offset in hours.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    id: LenientInt
    name: str = Field(alias="plantName")
    timezone: float


class Device(_Payload):
    """A monitored unit (inverter / storage system) of a plant."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    sn: str
    alias: str = ""
    model: str = Field(default="", alias="deviceModel")
    device_type: OptionalInt = Field(default=None, alias="deviceType")
    device_type_name: str = Field(default="", alias="deviceTypeName")
    plant_id: LenientInt = Field(alias="plantId")
    plant_name: str = Field(default="", alias="plantName")
    datalogger_sn: str = Field(default="", alias="datalogSn")
    datalogger_type: str = Field(default="", alias="datalogTypeTest")
    pto_status: OptionalInt = Field(default=None, alias="ptoStatus")
    bdc_status: OptionalInt = Field(default=None, alias="bdcStatus")
    timezone: OptionalFloat = None
    nominal_power: OptionalFloat = Field(default=None, alias="nominalPower")
    e_today: OptionalFloat = Field(default=None, alias="eToday")
    e_month: OptionalFloat = Field(default=None, alias="eMonth")
    e_total: OptionalFloat = Field(default=None, alias="eTotal")
    pac: OptionalFloat = None
    status: OptionalInt = None
    time_server: OptionalDatetime = Field(default=None, alias="timeServer")
    last_update_time: OptionalDatetime = Field(default=None, alias="lastUpdateTime")

    @property
    def display_name(self) -> str:
        """Model name when the alias is just the serial, else ``alias (model)``."""
        if not self.alias or self.alias == self.sn:
            return self.model or self.sn
        return f"{self.alias} ({self.model})"


class DevicePage(_Payload):
    """One page of the plant device list."""

    curr_page: int = Field(default=1, alias="currPage")
    pages: int = 1
    page_size: int = Field(default=0, alias="pageSize")
    count: int = 0
    datas: list[Device] = Field(default_factory=list)


class DeviceListResponse(_Payload):
    """Body of ``POST /panel/getDevicesByPlantList``."""

    result: int = 1
    obj: DevicePage


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------


class StorageSample(_Payload):
    """Telemetry of one storage device at one instant.

    Field aliases are the dashboard's own names, which are also the names
    written to the log file. ``load_percent`` keeps the dashboard's
    ``loadPrecent`` spelling on the wire.
    """

    bat_power: float = Field(alias="batPower")
    load_power: float = Field(alias="loadPower")
    capacity: float
    status: LenientInt
    rate_va: OptionalFloat = Field(default=None, alias="rateVA")
    load_percent: OptionalFloat = Field(default=None, alias="loadPrecent")
    device_type: OptionalInt = Field(default=None, alias="deviceType")
    inv_status: OptionalInt = Field(default=None, alias="invStatus")
    grid_power: OptionalFloat = Field(default=None, alias="gridPower")
    panel_power: OptionalFloat = Field(default=None, alias="panelPower")
    v_bat: OptionalFloat = Field(default=None, alias="vBat")
    v_pv1: OptionalFloat = Field(default=None, alias="vPv1")
    v_pv2: OptionalFloat = Field(default=None, alias="vPv2")
    i_pv1: OptionalFloat = Field(default=None, alias="iPv1")
    i_pv2: OptionalFloat = Field(default=None, alias="iPv2")
    ppv1: OptionalFloat = None
    ppv2: OptionalFloat = None
    v_ac_input: OptionalFloat = Field(default=None, alias="vAcInput")
    f_ac_input: OptionalFloat = Field(default=None, alias="fAcInput")
    v_ac_output: OptionalFloat = Field(default=None, alias="vAcOutput")
    f_ac_output: OptionalFloat = Field(default=None, alias="fAcOutput")
    i_total: OptionalFloat = Field(default=None, alias="iTotal")


class StorageStatusResponse(_Payload):
    """Body of ``POST /panel/storage/getStorageStatusData``."""

    result: int = 1
    obj: StorageSample


class DerivedMetrics(BaseModel):
    """Values computed from a StorageSample rather than read from the API.

    Attributes:
        direction: ``"charging"``, ``"discharging"`` or ``None`` when idle.
        battery_percent_load: Battery power over the reference wattage.
        loss: Battery power minus load power, in watts.
        seconds_remaining: Estimated seconds until the battery reaches its
            reference threshold. ``inf`` when unknown; serialized as null.
        signature: Fingerprint of the raw response, used to suppress
            repeated console output.
    """

    direction: str | None
    battery_percent_load: float
    loss: float
    seconds_remaining: float
    signature: str


class LogRecord(BaseModel):
    """One line of a device log file."""

    ts: datetime
    device_sn: str
    sample: StorageSample
    derived: DerivedMetrics

    def to_json_line(self) -> str:
        """Serialize as a single JSON line (raw field names, trailing newline)."""
        return self.model_dump_json(by_alias=True) + "\n"
