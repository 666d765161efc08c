import pytest

from attitudekit.ahrs import AHRS, ImuFilters, MotorController
from attitudekit.receiver import Controls, Receiver
from attitudekit.sensor_fusion import MadgwickFilter, Vector3
from attitudekit.telemetry import (
    AHRS_STRUCT,
    FILTER_INITIALIZING_FLAG,
    MINIMAL_STRUCT,
    RECEIVER_STRUCT,
    TICK_INTERVALS_STRUCT,
    TelemetryType,
    pack_ahrs,
    pack_minimal,
    pack_receiver,
    pack_tick_intervals,
)

GYRO = Vector3(0.5, 0.25, -0.125)
ACC = Vector3(0.0, 0.0, 1.0)


class FakeImu:
    def read_gyro_rps_acc(self):
        return GYRO, ACC

    def read_gyro_raw(self):
        return (0, 0, 0)

    def read_acc_raw(self):
        return (0, 0, 0)

    def set_gyro_offset(self, gyro_offset):
        pass

    def set_acc_offset(self, acc_offset):
        pass


class PassThroughFilters(ImuFilters):
    def filter(self, gyro_rps, acc, delta_t):
        return gyro_rps, acc


class FakeMotorController(MotorController):
    def update_outputs_using_pids(self, gyro_rps, acc, orientation, delta_t):
        pass


class FakeReceiver(Receiver):
    def __init__(self, aux_values):
        super().__init__()
        self._aux = list(aux_values)

    def update(self, tick_count_delta):
        return True

    def map_controls(self):
        return (0.0, 0.0, 0.0, 0.0)

    def my_eui(self):
        return bytes(6)

    def primary_peer_eui(self):
        return bytes(6)


@pytest.fixture
def ahrs():
    return AHRS(MadgwickFilter(), FakeImu(), PassThroughFilters())


@pytest.fixture
def motor_controller():
    return FakeMotorController()


def test_minimal_packet_wire_bytes():
    assert pack_minimal(0x01020304) == bytes([0x04, 0x03, 0x02, 0x01, 1, 8, 0, 0])


def test_headers_hold_type_and_length(ahrs, motor_controller):
    receiver = FakeReceiver([0, 0, 0, 0])
    packets = [
        (pack_minimal(1), TelemetryType.MINIMAL, MINIMAL_STRUCT),
        (pack_tick_intervals(2, ahrs, motor_controller, 0, 0, 0, 0),
         TelemetryType.TICK_INTERVALS, TICK_INTERVALS_STRUCT),
        (pack_receiver(3, receiver), TelemetryType.RECEIVER, RECEIVER_STRUCT),
        (pack_ahrs(4, ahrs, motor_controller), TelemetryType.AHRS, AHRS_STRUCT),
    ]
    for packet, packet_type, structure in packets:
        assert packet[4] == packet_type
        assert packet[5] == len(packet) == structure.size


def test_tick_intervals_fields(ahrs, motor_controller):
    ahrs.timing.tick_count_delta = 5
    ahrs.timing.time_microseconds_delta = 5000
    motor_controller.timing.tick_count_delta = 2
    motor_controller.timing.time_microseconds_delta = 2000

    packet = pack_tick_intervals(77, ahrs, motor_controller, 123, 10, 4, 6)
    fields = TICK_INTERVALS_STRUCT.unpack(packet)
    (packet_id, _, _, ahrs_ticks, fifo, ahrs_us, *rest) = fields
    checks = rest[:4]
    mc_us, mc_power_us, mc_ticks, main_ticks, transceiver, dropped = rest[4:]

    assert packet_id == 77
    assert (ahrs_ticks, fifo, ahrs_us) == (5, ahrs.fifo_count, 5000)
    assert tuple(checks) == tuple(ahrs.time_check_microseconds(i) for i in range(4))
    assert (mc_us, mc_power_us, mc_ticks) == (2000, 123, 2)
    assert (main_ticks, transceiver, dropped) == (10, 4, 6)


def test_tick_intervals_truncates_to_field_width(ahrs, motor_controller):
    packet = pack_tick_intervals(1, ahrs, motor_controller, 0, 0, 0x1234, 0)
    assert TICK_INTERVALS_STRUCT.unpack(packet)[-2] == 0x34


def test_ahrs_packet_carries_readings(ahrs, motor_controller):
    assert ahrs.read_imu_and_update_orientation(0.01)
    ahrs.timing.tick_count_delta = 3
    ahrs.sensor_fusion_filter_initializing = True
    motor_controller.pitch_angle_degrees_raw = 1.5
    motor_controller.roll_angle_degrees_raw = -2.25
    motor_controller.yaw_angle_degrees_raw = 30.0

    fields = AHRS_STRUCT.unpack(pack_ahrs(9, ahrs, motor_controller))
    packet_id, _, _, tick_interval, flags, *floats = fields
    assert packet_id == 9
    assert tick_interval == 3
    assert flags == FILTER_INITIALIZING_FLAG
    assert floats[:3] == [1.5, -2.25, 30.0]
    assert floats[3:6] == pytest.approx(list(GYRO))
    assert floats[6:] == pytest.approx(list(ACC))


def test_ahrs_packet_flag_clear_when_not_initializing(ahrs, motor_controller):
    ahrs.sensor_fusion_filter_initializing = False
    fields = AHRS_STRUCT.unpack(pack_ahrs(1, ahrs, motor_controller))
    assert fields[4] == 0


def test_receiver_packet_fields():
    receiver = FakeReceiver([1, 2, 3, 250])
    receiver.tick_count_delta = 4
    receiver.dropped_packet_count_delta = 7
    receiver.controls = Controls(100, -200, 300, -2048)
    receiver.set_switch(1, 3)
    receiver.set_switch(5, 1)

    fields = RECEIVER_STRUCT.unpack(pack_receiver(42, receiver))
    packet_id, _, _, tick_interval, dropped, *rest = fields
    assert packet_id == 42
    assert (tick_interval, dropped) == (4, 7)
    assert tuple(rest[:4]) == (100, -200, 300, -2048)
    assert tuple(rest[4:8]) == (1, 2, 3, 250)
    assert rest[8] == receiver.switches