"""Binary command packets sent to a stabilized vehicle.

Every packet starts with a little-endian header: a 32-bit id, an 8-bit type and
an 8-bit length of the whole packet, followed by packed, unpadded fields.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Union


class CommandType(IntEnum):
    """Type byte of a command packet."""

    RESERVED = 0
    CONTROL = 1
    REQUEST_DATA = 2
    SET_PID = 3
    SET_FILTER = 5


class ControlAction(IntEnum):
    """Values of a CONTROL command."""

    NO_ACTION = 0
    MOTORS_SWITCH_OFF = 1
    MOTORS_SWITCH_ON = 2
    RESET = 3
    CONTROL_MODE_0 = 20
    CONTROL_MODE_1 = 21
    CONTROL_MODE_2 = 22
    CONTROL_MODE_3 = 23
    CONTROL_MODE_4 = 24
    CONTROL_MODE_5 = 25
    CONTROL_MODE_6 = 26
    CONTROL_MODE_7 = 27
    CONTROL_MODE_8 = 28
    CONTROL_MODE_9 = 29


class DataRequest(IntEnum):
    """Values of a REQUEST_DATA command."""

    NO_REQUEST = 0
    REQUEST_STOP_SENDING_DATA = 1
    REQUEST_TICK_INTERVAL_DATA = 2
    REQUEST_AHRS_DATA = 3
    REQUEST_PID_DATA = 4
    REQUEST_RECEIVER_DATA = 5
    REQUEST_MOTOR_CONTROLLER_DATA = 6


class PidSetType(IntEnum):
    """What a SET_PID command does to the selected PID."""

    NO_ACTION = 0
    SET_P = 1
    SET_I = 2
    SET_D = 3
    SET_F = 4
    SAVE_P = 5
    SAVE_I = 6
    SAVE_D = 7
    SAVE_F = 8
    RESET_PID = 9
    SET_SETPOINT = 10
    SET_PITCH_BALANCE_ANGLE = 11
    SAVE_PITCH_BALANCE_ANGLE = 12


class FilterTarget(IntEnum):
    """Filter addressed by a SET_FILTER command."""

    GYRO_ALL_LPF = 0
    GYRO_X_LPF = 1
    GYRO_Y_LPF = 2
    GYRO_Z_LPF = 3
    ACC_ALL_LPF = 4
    ACC_X_LPF = 5
    ACC_Y_LPF = 6
    ACC_Z_LPF = 7


# PID indices of a motor pair controller
MPC_PITCH_ANGLE = 0
MPC_SPEED = 1
MPC_YAW_RATE = 2
MPC_POSITION = 3

# PID indices of a flight controller
FC_ROLL_RATE = 0
FC_PITCH_RATE = 1
FC_YAW_RATE = 2
FC_ROLL_ANGLE = 3
FC_PITCH_ANGLE = 4

FILTER_VALUE_COUNT = 4

_HEADER = struct.Struct("<IBB")
COMMAND_STRUCT = struct.Struct("<IBBH")
SET_PID_STRUCT = struct.Struct("<IBBBBf")
SET_FILTER_STRUCT = struct.Struct(f"<IBBBB{FILTER_VALUE_COUNT}f")

_SIMPLE_TYPES = (CommandType.RESERVED, CommandType.CONTROL, CommandType.REQUEST_DATA)


@dataclass(frozen=True)
class CommandPacket:
    """A command carrying one 16-bit value: reserved, control or data request."""

    packet_id: int
    packet_type: CommandType
    value: int


@dataclass(frozen=True)
class SetPidPacket:
    """A command that sets or saves a PID constant."""

    packet_id: int
    pid_index: int
    set_type: PidSetType
    value: float


@dataclass(frozen=True)
class SetFilterPacket:
    """A command that configures an IMU filter."""

    packet_id: int
    target: FilterTarget
    values: tuple[float, float, float, float]


Command = Union[CommandPacket, SetPidPacket, SetFilterPacket]


def _pack(structure: struct.Struct, *fields: object) -> bytes:
    try:
        return structure.pack(*fields)
    except (struct.error, OverflowError) as exc:
        raise ValueError(f"field out of range: {exc}") from None


def pack_command(packet_id: int, packet_type: int, value: int) -> bytes:
    """Pack a reserved, control or data-request command."""
    command_type = CommandType(packet_type)
    if command_type not in _SIMPLE_TYPES:
        raise ValueError(f"{command_type.name} packets are not packed by pack_command")
    return _pack(COMMAND_STRUCT, packet_id, command_type, COMMAND_STRUCT.size, value)


def pack_set_pid(packet_id: int, pid_index: int, set_type: int, value: float) -> bytes:
    """Pack a SET_PID command."""
    return _pack(
        SET_PID_STRUCT,
        packet_id,
        CommandType.SET_PID,
        SET_PID_STRUCT.size,
        pid_index,
        PidSetType(set_type),
        value,
    )


def pack_set_filter(packet_id: int, target: int, values: Iterable[float]) -> bytes:
    """Pack a SET_FILTER command; missing values are sent as zero."""
    values = list(values)
    if len(values) > FILTER_VALUE_COUNT:
        raise ValueError(f"at most {FILTER_VALUE_COUNT} filter values are allowed")
    values += [0.0] * (FILTER_VALUE_COUNT - len(values))
    return _pack(
        SET_FILTER_STRUCT,
        packet_id,
        CommandType.SET_FILTER,
        SET_FILTER_STRUCT.size,
        FilterTarget(target),
        0,
        *values,
    )


def parse_command(data: bytes) -> Command:
    """Decode a command packet."""
    if len(data) < _HEADER.size:
        raise ValueError("packet too short for a header")
    _, raw_type, length = _HEADER.unpack_from(data)
    try:
        packet_type = CommandType(raw_type)
    except ValueError:
        raise ValueError(f"unknown command type {raw_type}") from None

    if packet_type is CommandType.SET_PID:
        structure = SET_PID_STRUCT
    elif packet_type is CommandType.SET_FILTER:
        structure = SET_FILTER_STRUCT
    else:
        structure = COMMAND_STRUCT
    if length != structure.size:
        raise ValueError(f"{packet_type.name} packet length {length}, expected {structure.size}")
    if len(data) < length:
        raise ValueError("packet shorter than its declared length")

    fields = structure.unpack_from(data)
    packet_id = fields[0]
    if packet_type is CommandType.SET_PID:
        _, _, _, pid_index, set_type, value = fields
        return SetPidPacket(packet_id, pid_index, PidSetType(set_type), value)
    if packet_type is CommandType.SET_FILTER:
        target = fields[3]
        return SetFilterPacket(packet_id, FilterTarget(target), tuple(fields[5:]))
    return CommandPacket(packet_id, packet_type, fields[3])