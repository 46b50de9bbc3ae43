"""Utility helpers."""

from taskboard.utils.clock import (
    Clock,
    FixedClock,
    SystemClock,
    as_utc,
    get_clock,
    system_clock,
)

__all__ = ["Clock", "FixedClock", "SystemClock", "as_utc", "get_clock", "system_clock"]
