"""
Derived metrics computed from one storage sample.

Pure functions: no I/O, no clock. The reference constants are not
universal (they describe one particular battery bank), so they are carried
in MetricConstants and come from configuration.

Formulas:
- direction: batPower < 0 charging, > 0 discharging, 0 idle (None).
- battery_percent_load: batPower / reference_wattage.
- loss: batPower - loadPower.
- seconds_remaining:
    discharging: (capacity - low_reference_capacity) * wh_per_percent / batPower * 3600
    charging:    (100 - capacity) * wh_per_percent / -batPower * 3600
    idle:        inf

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass

from growatt.src.models import DerivedMetrics, StorageSample

CHARGING = "charging"
DISCHARGING = "discharging"

SECONDS_PER_HOUR = 3600


@dataclass(frozen=True)
class MetricConstants:
    """Reference values of the battery bank being monitored."""

    low_reference_capacity: float = 21.0
    reference_wattage: float = 50.0
    reference_wh_per_percent: float = 87.0


def charge_direction(bat_power: float) -> str | None:
    if bat_power < 0:
        return CHARGING
    if bat_power > 0:
        return DISCHARGING
    return None


def seconds_remaining(
    capacity: float,
    bat_power: float,
    constants: MetricConstants,
) -> float:
    """Estimate seconds until the battery is full (charging) or at the floor.

    Returns ``math.inf`` when the battery is idle.
    """
    if bat_power > 0:
        percent_left = capacity - constants.low_reference_capacity
        hours = percent_left * constants.reference_wh_per_percent / bat_power
    elif bat_power < 0:
        percent_left = 100 - capacity
        hours = percent_left * constants.reference_wh_per_percent / -bat_power
    else:
        return math.inf
    return hours * SECONDS_PER_HOUR


def signature(raw_text: str) -> str:
    """Fingerprint of a raw response body, for change detection."""
    return hashlib.sha256(raw_text.encode("utf-8")).hexdigest()[:16]


def derive(
    sample: StorageSample,
    raw_text: str,
    constants: MetricConstants | None = None,
) -> DerivedMetrics:
    """Compute every derived metric for *sample*."""
    if constants is None:
        constants = MetricConstants()
    return DerivedMetrics(
        direction=charge_direction(sample.bat_power),
        battery_percent_load=sample.bat_power / constants.reference_wattage,
        loss=sample.bat_power - sample.load_power,
        seconds_remaining=seconds_remaining(
            sample.capacity, sample.bat_power, constants
        ),
        signature=signature(raw_text),
    )
