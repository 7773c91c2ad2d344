"""gardenpi: an eight-valve irrigation controller with scheduled and manual modes."""

__version__ = "0.1.0"

from .control import ErrorKind, GardenController, Result  # noqa: E402
from .errors import GardenError, InvalidSchedule, InvalidValve, PoisonedState, RejectedByMode  # noqa: E402
from .model import Mode, Schedule, Timespan, Valve, ValveState  # noqa: E402
from .reconciler import Reconciler  # noqa: E402
from .schedule import evaluate  # noqa: E402
from .store import GardenState, ValveStateStore  # noqa: E402

__all__ = [
    "ErrorKind",
    "GardenController",
    "GardenError",
    "GardenState",
    "InvalidSchedule",
    "InvalidValve",
    "Mode",
    "PoisonedState",
    "Reconciler",
    "RejectedByMode",
    "Result",
    "Schedule",
    "Timespan",
    "Valve",
    "ValveState",
    "ValveStateStore",
    "evaluate",
]
