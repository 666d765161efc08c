import math
import threading

import pytest

from attitudekit.ahrs import AHRS, AhrsData, ImuFilters, MotorController
from attitudekit.sensor_fusion import MadgwickFilter, Quaternion, Vector3


class FakeImu:
    def __init__(self, gyro=Vector3(), acc=Vector3(0.0, 0.0, 1.0)):
        self.gyro = gyro
        self.acc = acc
        self.reads = 0
        self.gyro_offset = None
        self.acc_offset = None
        self.stop_after = None
        self.stop_event = None

    def read_gyro_rps_acc(self):
        self.reads += 1
        if self.stop_after is not None and self.reads >= self.stop_after:
            self.stop_event.set()
        return self.gyro, self.acc

    def read_gyro_raw(self):
        return (1, 2, 3)

    def read_acc_raw(self):
        return (4, 5, 6)

    def set_gyro_offset(self, gyro_offset):
        self.gyro_offset = gyro_offset

    def set_acc_offset(self, acc_offset):
        self.acc_offset = acc_offset


class PassThroughFilters(ImuFilters):
    def __init__(self):
        self.calls = []

    def filter(self, gyro_rps, acc, delta_t):
        self.calls.append(delta_t)
        return gyro_rps, acc


class RecordingMotorController(MotorController):
    def __init__(self):
        super().__init__()
        self.calls = []

    def update_outputs_using_pids(self, gyro_rps, acc, orientation, delta_t):
        self.calls.append((gyro_rps, acc, orientation, delta_t))


def make_ahrs(imu=None):
    fusion = MadgwickFilter()
    imu = imu or FakeImu()
    filters = PassThroughFilters()
    return AHRS(fusion, imu, filters), fusion, imu, filters


def test_ahrs_initializing_flag():
    ahrs, _, _, _ = make_ahrs()
    assert ahrs.sensor_fusion_filter_initializing is True
    ahrs.sensor_fusion_filter_initializing = True
    assert ahrs.sensor_fusion_filter_initializing is True
    ahrs.sensor_fusion_filter_initializing = False
    assert ahrs.sensor_fusion_filter_initializing is False
    ahrs.sensor_fusion_filter_initializing = True
    assert ahrs.sensor_fusion_filter_initializing is True


def test_update_stores_data_and_flags():
    imu = FakeImu(gyro=Vector3(0.0, 0.0, 0.0), acc=Vector3(0.0, 0.0, 1.0))
    ahrs, fusion, _, filters = make_ahrs(imu)

    orientation, updated = ahrs.get_orientation()
    assert updated is False
    assert orientation == Quaternion()

    assert ahrs.read_imu_and_update_orientation(0.01) is True
    assert filters.calls == [0.01]

    orientation, updated = ahrs.get_orientation()
    assert updated is True
    assert orientation == fusion.orientation()
    _, updated = ahrs.get_orientation()
    assert updated is False

    data, updated = ahrs.get_ahrs_data()
    assert updated is True
    assert data == AhrsData(0, Vector3(0.0, 0.0, 0.0), Vector3(0.0, 0.0, 1.0))
    _, updated = ahrs.get_ahrs_data()
    assert updated is False


def test_instrumentation_reads_do_not_clear_flags():
    ahrs, _, _, _ = make_ahrs()
    ahrs.read_imu_and_update_orientation(0.01)
    assert ahrs.orientation_for_instrumentation() == Quaternion()
    assert ahrs.ahrs_data_for_instrumentation().acc == Vector3(0.0, 0.0, 1.0)
    _, orientation_updated = ahrs.get_orientation()
    _, data_updated = ahrs.get_ahrs_data()
    assert orientation_updated is True
    assert data_updated is True


def test_motor_controller_is_driven_when_set():
    ahrs, _, _, _ = make_ahrs()
    assert ahrs.configured_to_update_outputs() is False
    controller = RecordingMotorController()
    ahrs.set_motor_controller(controller)
    assert ahrs.configured_to_update_outputs() is True
    ahrs.read_imu_and_update_orientation(0.02)
    assert len(controller.calls) == 1
    assert controller.calls[0][3] == 0.02
    ahrs.set_motor_controller(None)
    assert ahrs.configured_to_update_outputs() is False


def test_motor_controller_stick_flag():
    controller = RecordingMotorController()
    assert controller.new_stick_values_available is False
    MotorController.new_stick_values_received(controller)
    assert controller.new_stick_values_available is True


def test_convergence_lowers_gain():
    ahrs, fusion, _, _ = make_ahrs()
    orientation = Quaternion.from_euler_angles_radians(0.0, 0.5, 0.0)
    acc = Vector3(0.0, math.sin(0.51), math.cos(0.51))
    ahrs.check_madgwick_convergence(acc, orientation)
    assert ahrs.sensor_fusion_filter_initializing is False
    assert fusion.beta == pytest.approx(0.1)


def test_no_convergence_keeps_gain():
    ahrs, fusion, _, _ = make_ahrs()
    orientation = Quaternion.from_euler_angles_radians(0.0, 0.5, 0.0)
    acc = Vector3(0.0, math.sin(0.8), math.cos(0.8))
    ahrs.check_madgwick_convergence(acc, orientation)
    assert ahrs.sensor_fusion_filter_initializing is True
    assert fusion.beta == 1.0


def test_identical_angles_do_not_count_as_converged():
    ahrs, fusion, _, _ = make_ahrs()
    ahrs.check_madgwick_convergence(Vector3(0.0, 0.0, 1.0), Quaternion())
    assert ahrs.sensor_fusion_filter_initializing is True
    assert fusion.beta == 1.0


def test_calibration_delegates_to_imu():
    ahrs, _, imu, _ = make_ahrs()
    assert ahrs.read_gyro_raw() == (1, 2, 3)
    assert ahrs.read_acc_raw() == (4, 5, 6)
    ahrs.set_gyro_offset((7, 8, 9))
    ahrs.set_acc_offset((10, 11, 12))
    assert imu.gyro_offset == (7, 8, 9)
    assert imu.acc_offset == (10, 11, 12)


def test_time_checks():
    ahrs, _, _, _ = make_ahrs()
    ahrs.set_motor_controller(RecordingMotorController())
    ahrs.read_imu_and_update_orientation(0.01)
    for index in range(AHRS.TIME_CHECKS_COUNT):
        assert 0 <= ahrs.time_check_microseconds(index) < 10_000_000
    with pytest.raises(IndexError):
        ahrs.time_check_microseconds(AHRS.TIME_CHECKS_COUNT)
    with pytest.raises(IndexError):
        ahrs.time_check_microseconds(-1)


def test_run_updates_until_stopped():
    imu = FakeImu()
    ahrs, _, _, filters = make_ahrs(imu)
    stop_event = threading.Event()
    imu.stop_event = stop_event
    imu.stop_after = 3
    ahrs.run(1, stop_event)
    assert imu.reads == 3
    assert all(delta_t > 0.0 for delta_t in filters.calls)
    data, updated = ahrs.get_ahrs_data()
    assert updated is True
    assert data.tick_count_delta >= 1


def test_run_rejects_non_positive_interval():
    ahrs, _, _, _ = make_ahrs()
    with pytest.raises(ValueError):
        ahrs.run(0, threading.Event())