"""Binary telemetry packets describing the state of a stabilized vehicle.

Every packet starts with a little-endian header: a 32-bit id, an 8-bit type and
an 8-bit length of the whole packet. Fields are packed without padding, and
values wider than their field are truncated to the field's width.
"""

from __future__ import annotations

import struct
from enum import IntEnum

from attitudekit.ahrs import AHRS, MotorController
from attitudekit.receiver import Receiver


class TelemetryType(IntEnum):
    """Type byte of a telemetry packet."""

    RESERVED = 0
    MINIMAL = 1
    TICK_INTERVALS = 2
    RECEIVER = 3
    AHRS = 4


FILTER_INITIALIZING_FLAG = 0x01
TIME_CHECKS_COUNT = AHRS.TIME_CHECKS_COUNT

RESERVED_STRUCT = struct.Struct("<IBBBB")
MINIMAL_STRUCT = struct.Struct("<IBBBB")
TICK_INTERVALS_STRUCT = struct.Struct(f"<IBBBBH{TIME_CHECKS_COUNT}HHHBBBB")
RECEIVER_STRUCT = struct.Struct("<IBBBB4i4BI")
AHRS_STRUCT = struct.Struct("<IBBBB9f")


def _u8(value: int) -> int:
    return int(value) & 0xFF


def _u16(value: int) -> int:
    return int(value) & 0xFFFF


def _u32(value: int) -> int:
    return int(value) & 0xFFFFFFFF


def _i32(value: int) -> int:
    return ((int(value) + 0x80000000) & 0xFFFFFFFF) - 0x80000000


def pack_minimal(packet_id: int) -> bytes:
    """Pack a minimal packet whose two data bytes are zero."""
    return MINIMAL_STRUCT.pack(
        _u32(packet_id), TelemetryType.MINIMAL, MINIMAL_STRUCT.size, 0, 0
    )


def pack_tick_intervals(
    packet_id: int,
    ahrs: AHRS,
    motor_controller: MotorController,
    mc_output_power_time_us: int,
    main_task_tick_count_delta: int,
    transceiver_tick_count_delta: int,
    receiver_dropped_packet_count: int,
) -> bytes:
    """Pack task tick intervals and timings."""
    time_checks = [_u16(ahrs.time_check_microseconds(index)) for index in range(TIME_CHECKS_COUNT)]
    return TICK_INTERVALS_STRUCT.pack(
        _u32(packet_id),
        TelemetryType.TICK_INTERVALS,
        TICK_INTERVALS_STRUCT.size,
        _u8(ahrs.tick_count_delta),
        _u8(ahrs.fifo_count),
        _u16(ahrs.time_microseconds_delta),
        *time_checks,
        _u16(motor_controller.time_microseconds_delta),
        _u16(mc_output_power_time_us),
        _u8(motor_controller.tick_count_delta),
        _u8(main_task_tick_count_delta),
        _u8(transceiver_tick_count_delta),
        _u8(receiver_dropped_packet_count),
    )


def pack_ahrs(packet_id: int, ahrs: AHRS, motor_controller: MotorController) -> bytes:
    """Pack the attitude angles with the latest gyro and accelerometer readings."""
    data = ahrs.ahrs_data_for_instrumentation()
    flags = FILTER_INITIALIZING_FLAG if ahrs.sensor_fusion_filter_initializing else 0x00
    return AHRS_STRUCT.pack(
        _u32(packet_id),
        TelemetryType.AHRS,
        AHRS_STRUCT.size,
        _u8(data.tick_count_delta),
        flags,
        motor_controller.pitch_angle_degrees_raw,
        motor_controller.roll_angle_degrees_raw,
        motor_controller.yaw_angle_degrees_raw,
        *data.gyro_rps,
        *data.acc,
    )


def pack_receiver(packet_id: int, receiver: Receiver) -> bytes:
    """Pack the receiver's controls, auxiliary channels and switches."""
    controls = receiver.controls
    return RECEIVER_STRUCT.pack(
        _u32(packet_id),
        TelemetryType.RECEIVER,
        RECEIVER_STRUCT.size,
        _u8(receiver.tick_count_delta),
        _u8(receiver.dropped_packet_count_delta),
        _i32(controls.throttle_stick_q4dot12),
        _i32(controls.roll_stick_q4dot12),
        _i32(controls.pitch_stick_q4dot12),
        _i32(controls.yaw_stick_q4dot12),
        *(_u8(receiver.aux(index)) for index in range(4)),
        _u32(receiver.switches),
    )