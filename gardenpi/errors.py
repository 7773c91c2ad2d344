"""Exception hierarchy for gardenpi."""

from __future__ import annotations


class GardenError(Exception):
    """Base exception for all gardenpi errors."""


class InvalidValve(GardenError):
    """Valve identifier outside the fixed set of eight."""

    def __init__(self, valve: object) -> None:
        self.valve = valve
        super().__init__(f"Unknown valve: {valve!r} (expected 0-7 or valve1..valve8)")


class RejectedByMode(GardenError):
    """Manual valve write attempted while the controller is in scheduled mode."""


class PoisonedState(GardenError):
    """The shared state guard is unusable after a failed update."""


class InvalidSchedule(GardenError):
    """Schedule payload could not be parsed."""


class ConfigError(GardenError):
    """Invalid or unreadable configuration."""
