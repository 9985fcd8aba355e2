"""Machine state model and XO power-state translation."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class MachineState(Enum):
    RUNNING = "Running"
    STOPPED = "Stopped"
    PAUSED = "Paused"
    UNKNOWN = "Unknown"
    ERROR = "Error"

    def __str__(self) -> str:
        return self.value


_POWER_STATES = {
    "Running": MachineState.RUNNING,
    "Halted": MachineState.STOPPED,
    "Paused": MachineState.PAUSED,
}


def translate_power_state(power_state: Optional[str]) -> MachineState:
    """Map an XO ``power_state`` value to a MachineState.

    Unrecognised values (including ``Suspended`` and empty strings) map to
    UNKNOWN; this never raises.
    """
    if not isinstance(power_state, str):
        return MachineState.UNKNOWN
    return _POWER_STATES.get(power_state, MachineState.UNKNOWN)
