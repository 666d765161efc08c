import pytest

from attitudekit.preferences import FLT_MAX, PidConstants, Preferences


@pytest.fixture
def prefs(tmp_path):
    return Preferences(tmp_path / "prefs.json")


def test_missing_float_is_flt_max(prefs):
    assert prefs.get_float("pitchBalanceAngle") == FLT_MAX


def test_float_round_trip_persists(tmp_path):
    path = tmp_path / "prefs.json"
    Preferences(path).put_float("pitchBalanceAngle", 0.1)
    assert Preferences(path).get_float("pitchBalanceAngle") == pytest.approx(0.1)


def test_pid_round_trip(prefs):
    assert not prefs.is_set_pid()
    pid = PidConstants(0.5, 0.25, 1.0, 0.0)
    prefs.put_pid("pitch", pid)
    assert prefs.is_set_pid()
    assert prefs.get_pid("pitch") == pid
    assert prefs.get_pid("speed") == PidConstants()


def test_offsets_round_trip(prefs):
    assert prefs.get_acc_offset() is None
    assert prefs.get_gyro_offset() is None
    prefs.put_acc_offset((70, -70, 400))
    prefs.put_gyro_offset([-1, 2, -3])
    assert prefs.get_acc_offset() == (70, -70, 400)
    assert prefs.get_gyro_offset() == (-1, 2, -3)


def test_offset_out_of_range(prefs):
    with pytest.raises(ValueError):
        prefs.put_acc_offset((0, 40000, 0))


def test_offset_needs_three_components(prefs):
    with pytest.raises(ValueError):
        prefs.put_gyro_offset((1, 2))


def test_mac_address_round_trip(prefs):
    address = bytes([0x02, 0x00, 0x00, 0x00, 0x00, 0x01])
    assert prefs.get_mac_address("peer") is None
    prefs.put_mac_address("peer", address)
    assert prefs.get_mac_address("peer") == address


def test_mac_address_wrong_length(prefs):
    with pytest.raises(ValueError):
        prefs.put_mac_address("peer", b"\x00\x01")


def test_clear_removes_everything(prefs):
    prefs.put_pid("pitch", PidConstants(1.0, 0.0, 0.0, 0.0))
    prefs.put_float("angle", 2.5)
    prefs.clear()
    assert not prefs.is_set_pid()
    assert prefs.get_float("angle") == FLT_MAX


def test_in_memory_store():
    prefs = Preferences()
    prefs.put_float("angle", 2.5)
    assert prefs.get_float("angle") == 2.5


def test_float_too_large(prefs):
    with pytest.raises(ValueError):
        prefs.put_float("angle", 1e300)