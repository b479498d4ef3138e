"""
Growatt dashboard telemetry logger.

Logs in to the Growatt web dashboard with browser-style session cookies,
discovers plants and devices, and samples each storage device on a fixed,
drift-corrected cadence into per-device, per-day JSON-lines files.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""
