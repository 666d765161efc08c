"""Attitude and heading reference system built on a sensor fusion filter."""

from __future__ import annotations

import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol

from attitudekit.sensor_fusion import Quaternion, SensorFusionFilter, Vector3

_UINT32_MASK = 0xFFFFFFFF


def _ticks_now() -> int:
    """Millisecond tick counter, wrapping like a 32-bit counter."""
    return (time.monotonic_ns() // 1_000_000) & _UINT32_MASK


def _micros_now() -> int:
    """Microsecond counter, wrapping like a 32-bit counter."""
    return (time.monotonic_ns() // 1_000) & _UINT32_MASK


class _ImuSensor(Protocol):
    def read_gyro_rps_acc(self) -> tuple[Vector3, Vector3]: ...

    def read_gyro_raw(self) -> Any: ...

    def read_acc_raw(self) -> Any: ...

    def set_gyro_offset(self, gyro_offset: Any) -> None: ...

    def set_acc_offset(self, acc_offset: Any) -> None: ...


@dataclass(frozen=True)
class AhrsData:
    """Latest gyro and accelerometer readings with the task tick interval."""

    tick_count_delta: int = 0
    gyro_rps: Vector3 = field(default_factory=Vector3)
    acc: Vector3 = field(default_factory=Vector3)


@dataclass
class TaskTiming:
    """Tick and time bookkeeping of a periodic task."""

    tick_count_delta: int = 0
    tick_count_previous: int = 0
    tick_interval_ticks: int = 0
    previous_wake_time_ticks: int = 0
    time_microseconds_delta: int = 0
    time_microseconds_previous: int = 0


class ImuFilters(ABC):
    """Filters applied to raw IMU readings before sensor fusion."""

    @abstractmethod
    def filter(self, gyro_rps: Vector3, acc: Vector3, delta_t: float) -> tuple[Vector3, Vector3]:
        """Return the filtered (gyro_rps, acc) pair."""


class MotorController(ABC):
    """Motor controller of a stabilized vehicle."""

    def __init__(self) -> None:
        self.timing = TaskTiming()
        self.new_stick_values_available = False
        self.pitch_angle_degrees_raw = 0.0
        self.roll_angle_degrees_raw = 0.0
        self.yaw_angle_degrees_raw = 0.0

    @property
    def tick_count_delta(self) -> int:
        return self.timing.tick_count_delta

    @property
    def time_microseconds_delta(self) -> int:
        return self.timing.time_microseconds_delta

    def new_stick_values_received(self) -> None:
        self.new_stick_values_available = True

    @abstractmethod
    def update_outputs_using_pids(
        self, gyro_rps: Vector3, acc: Vector3, orientation: Quaternion, delta_t: float
    ) -> None:
        """Compute and apply motor outputs from the latest attitude."""


class AHRS:
    """Reads the IMU, filters the readings and fuses them into an orientation."""

    TIME_CHECKS_COUNT = 4

    def __init__(
        self,
        sensor_fusion_filter: SensorFusionFilter,
        imu: _ImuSensor,
        imu_filters: ImuFilters,
    ) -> None:
        self._sensor_fusion_filter = sensor_fusion_filter
        self._imu = imu
        self._imu_filters = imu_filters
        self._motor_controller: MotorController | None = None
        self._lock = threading.Lock()

        self._acc = Vector3()
        self._gyro_rps = Vector3()
        self._orientation = Quaternion()
        self._ahrs_data_updated_since_last_read = False
        self._orientation_updated_since_last_read = False

        self.sensor_fusion_filter_initializing = True
        self.timing = TaskTiming()
        self.fifo_count = 0
        self._time_checks_microseconds = [0] * (self.TIME_CHECKS_COUNT + 1)

    @property
    def tick_count_delta(self) -> int:
        return self.timing.tick_count_delta

    @property
    def time_microseconds_delta(self) -> int:
        return self.timing.time_microseconds_delta

    def set_motor_controller(self, motor_controller: MotorController | None) -> None:
        """Have the AHRS drive the motor controller after each orientation update."""
        self._motor_controller = motor_controller

    def configured_to_update_outputs(self) -> bool:
        return self._motor_controller is not None

    def _time_check(self, index: int, microseconds: int | None = None) -> None:
        self._time_checks_microseconds[index] = (
            _micros_now() if microseconds is None else microseconds
        )

    def read_imu_and_update_orientation(self, delta_t: float) -> bool:
        """Read the IMU, update the orientation and return True when new data was processed."""
        start = _micros_now()
        gyro_rps, acc = self._imu.read_gyro_rps_acc()
        self._time_check(0, start)
        self._time_check(1)

        gyro_rps, acc = self._imu_filters.filter(gyro_rps, acc, delta_t)
        self._time_check(2)

        orientation = self._sensor_fusion_filter.update(gyro_rps, acc, delta_t)
        self._time_check(3)
        if self.sensor_fusion_filter_initializing:
            self.check_madgwick_convergence(acc, orientation)

        if self._motor_controller is not None:
            self._motor_controller.update_outputs_using_pids(gyro_rps, acc, orientation, delta_t)
            self._time_check(4)

        with self._lock:
            self._ahrs_data_updated_since_last_read = True
            self._orientation_updated_since_last_read = True
            self._orientation = orientation
            self._gyro_rps = gyro_rps
            self._acc = acc
        return True

    def run(self, tick_interval_milliseconds: int, stop_event: threading.Event) -> None:
        """Update the orientation every tick interval until stop_event is set."""
        if tick_interval_milliseconds <= 0:
            raise ValueError("tick_interval_milliseconds must be positive")
        timing = self.timing
        timing.tick_interval_ticks = tick_interval_milliseconds
        interval_ns = tick_interval_milliseconds * 1_000_000
        wake_ns = time.monotonic_ns()
        timing.previous_wake_time_ticks = (wake_ns // 1_000_000) & _UINT32_MASK
        timing.tick_count_previous = timing.previous_wake_time_ticks
        timing.time_microseconds_previous = _micros_now()

        while True:
            wake_ns += interval_ns
            timeout = max(0.0, (wake_ns - time.monotonic_ns()) / 1e9)
            if stop_event.wait(timeout):
                return
            timing.previous_wake_time_ticks = (wake_ns // 1_000_000) & _UINT32_MASK

            tick_count = _ticks_now()
            timing.tick_count_delta = (tick_count - timing.tick_count_previous) & _UINT32_MASK
            timing.tick_count_previous = tick_count
            microseconds = _micros_now()
            timing.time_microseconds_delta = (
                microseconds - timing.time_microseconds_previous
            ) & _UINT32_MASK
            timing.time_microseconds_previous = microseconds

            # guard against running twice within the same tick
            if timing.tick_count_delta > 0:
                self.read_imu_and_update_orientation(timing.tick_count_delta * 0.001)

    def read_gyro_raw(self) -> Any:
        """Raw gyro values, used in calibration."""
        return self._imu.read_gyro_raw()

    def read_acc_raw(self) -> Any:
        """Raw accelerometer values, used in calibration."""
        return self._imu.read_acc_raw()

    def set_gyro_offset(self, gyro_offset: Any) -> None:
        self._imu.set_gyro_offset(gyro_offset)

    def set_acc_offset(self, acc_offset: Any) -> None:
        self._imu.set_acc_offset(acc_offset)

    def get_orientation(self) -> tuple[Quaternion, bool]:
        """Return the orientation and whether it changed since the last call."""
        with self._lock:
            updated = self._orientation_updated_since_last_read
            self._orientation_updated_since_last_read = False
            return self._orientation, updated

    def orientation_for_instrumentation(self) -> Quaternion:
        """Return the orientation without clearing the updated flag."""
        with self._lock:
            return self._orientation

    def _snapshot(self) -> AhrsData:
        return AhrsData(self.timing.tick_count_delta, self._gyro_rps, self._acc)

    def get_ahrs_data(self) -> tuple[AhrsData, bool]:
        """Return the latest data and whether it changed since the last call."""
        with self._lock:
            updated = self._ahrs_data_updated_since_last_read
            self._ahrs_data_updated_since_last_read = False
            return self._snapshot(), updated

    def ahrs_data_for_instrumentation(self) -> AhrsData:
        """Return the latest data without clearing the updated flag."""
        with self._lock:
            return self._snapshot()

    def check_madgwick_convergence(self, acc: Vector3, orientation: Quaternion) -> None:
        """Lower the filter gain once the filter agrees with the accelerometer to within 2 degrees."""
        two_degrees_in_radians = math.radians(2.0)
        filter_angle = orientation.pitch_radians()
        acc_angle = math.atan2(acc.y, acc.z)
        if abs(acc_angle - filter_angle) < two_degrees_in_radians and acc_angle != filter_angle:
            self.sensor_fusion_filter_initializing = False
            self._sensor_fusion_filter.set_free_parameters(0.1, 0.0)

    def time_check_microseconds(self, index: int) -> int:
        """Microseconds spent in stage index of the last update."""
        if not 0 <= index < self.TIME_CHECKS_COUNT:
            raise IndexError(f"time check index {index} out of range")
        checks = self._time_checks_microseconds
        return (checks[index + 1] - checks[index]) & _UINT32_MASK