"""Radio receiver and motor mixer interfaces of a stabilized vehicle."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

_SWITCH_COUNT = 16
_AUX_COUNT = 4


def q4dot12_to_float(value: int) -> float:
    """Convert a Q4.12 fixed point stick value to a float."""
    return value * (1.0 / 2048.0)


@dataclass
class Controls:
    """The four main stick channels as Q4.12 fixed point integers."""

    throttle_stick_q4dot12: int = 0
    roll_stick_q4dot12: int = 0
    pitch_stick_q4dot12: int = 0
    yaw_stick_q4dot12: int = 0


class Receiver(ABC):
    """A receiver with four stick channels, four auxiliary channels and sixteen switches."""

    STICK_COUNT = 4

    def __init__(self) -> None:
        self.dropped_packet_count_delta = 0
        self.tick_count_delta = 0
        self.switches = 0  # sixteen switches of two bits each
        self.controls = Controls()
        self._aux = [0] * _AUX_COUNT

    @abstractmethod
    def update(self, tick_count_delta: int) -> bool:
        """Poll the receiver; return True when new data arrived."""

    @abstractmethod
    def map_controls(self) -> tuple[float, float, float, float]:
        """Return (throttle, roll, pitch, yaw) stick values as floats."""

    @abstractmethod
    def my_eui(self) -> bytes:
        """The receiver's 48-bit extended unique identifier."""

    @abstractmethod
    def primary_peer_eui(self) -> bytes:
        """The 48-bit extended unique identifier of the primary peer."""

    def aux(self, index: int) -> int:
        if not 0 <= index < _AUX_COUNT:
            raise IndexError(f"aux index {index} out of range")
        return self._aux[index]

    @staticmethod
    def _check_switch_index(index: int) -> None:
        if not 0 <= index < _SWITCH_COUNT:
            raise IndexError(f"switch index {index} out of range")

    def get_switch(self, index: int) -> int:
        self._check_switch_index(index)
        return (self.switches >> (2 * index)) & 0b11

    def set_switch(self, index: int, value: int) -> None:
        self._check_switch_index(index)
        shift = 2 * index
        self.switches = (self.switches & ~(0b11 << shift)) | ((value & 0b11) << shift)


@dataclass(frozen=True)
class MixerOutput:
    """Speed, roll, pitch and yaw demands passed to a motor mixer."""

    speed: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0


class MotorMixer(ABC):
    """Turns mixer outputs into individual motor commands."""

    def __init__(self) -> None:
        self.motors_is_on = False
        self.motors_is_disabled = False

    def motors_switch_on(self) -> None:
        self.motors_is_on = True

    def motors_switch_off(self) -> None:
        self.motors_is_on = False

    def motors_toggle_on_off(self) -> None:
        self.motors_is_on = not self.motors_is_on

    @abstractmethod
    def output_to_motors(self, outputs: MixerOutput, delta_t: float, tick_count: int) -> None:
        """Drive the motors from the given outputs."""