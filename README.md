# attitudekit

Orientation estimation for self-stabilizing vehicles such as balancing robots
and multirotors. It fuses gyroscope, accelerometer and (optionally)
magnetometer readings into an orientation quaternion, and provides the pieces
around that estimate: an AHRS update loop, receiver and motor-mixer base
classes, binary telemetry and command packets, and a small preferences store.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Sensor fusion

`attitudekit.sensor_fusion` holds `Vector3`, `Quaternion` and three filters
that share the `SensorFusionFilter` interface:

- `ComplementaryFilter` – blends the integrated gyro attitude with the
  accelerometer attitude; tune with `set_alpha` (default 0.96).
- `MahonyFilter` – proportional/integral feedback on the gravity error; tune
  with `set_kp_ki` (defaults kp 10.0, ki 0.0).
- `MadgwickFilter` – gradient-descent correction; tune with `set_beta`
  (default 1.0). Accelerometer readings whose squared magnitude lies outside
  0.9–1.1 g² are left out of the correction.

Feed one reading per IMU sample. Gyro values are in radians per second,
accelerometer values in g, and `delta_t` is the sample interval in seconds.

```python
from attitudekit.sensor_fusion import MadgwickFilter, Vector3

fusion = MadgwickFilter()
fusion.set_beta(0.1)

gyro_rps = Vector3(0.0, 0.0, 0.0)
accelerometer = Vector3(0.0, 0.0, 1.0)

orientation = fusion.update(gyro_rps, accelerometer, 0.01)
print(orientation.roll_degrees(), orientation.pitch_degrees(), orientation.yaw_degrees())
```

Pass a magnetometer reading as the `magnetometer` argument of `update` to
include heading correction (the Mahony filter ignores it). `orientation()`
gives the current estimate without updating it, `set_and_normalize_q` sets it
directly, and `reset()` sets every component of the orientation to zero.

`Quaternion` supports addition, subtraction, scalar and quaternion
multiplication, `conjugate()`, `magnitude_squared()`, `gravity()` and
conversion to Euler angles in radians or degrees;
`Quaternion.from_euler_angles_radians(roll, pitch, yaw)` builds one from
angles. `roll_radians_from_acc` and `pitch_radians_from_acc` give the tilt
implied by a normalized accelerometer reading. `reciprocal_sqrt` computes
1/√x exactly and `fast_reciprocal_sqrt` approximates it with one or two Newton
iterations.

## AHRS

`attitudekit.ahrs.AHRS` ties a sensor fusion filter to an IMU object and an
`ImuFilters` implementation. The IMU object supplies `read_gyro_rps_acc()`
(returning a `(gyro_rps, acc)` pair), `read_gyro_raw()`, `read_acc_raw()`,
`set_gyro_offset()` and `set_acc_offset()`.

Each call to `read_imu_and_update_orientation(delta_t)` reads the IMU, passes
the readings through the filters, updates the orientation and, if a
`MotorController` has been attached with `set_motor_controller`, calls its
`update_outputs_using_pids`. `run(tick_interval_milliseconds, stop_event)`
repeats this at a fixed interval until the `threading.Event` is set.

`get_orientation()` and `get_ahrs_data()` return the latest values together
with whether they changed since the previous read; the
`*_for_instrumentation` variants return them without clearing that flag.
While `sensor_fusion_filter_initializing` is true, each update calls
`check_madgwick_convergence`, which lowers the filter's gain to 0.1 and
clears the flag once the filter's pitch is within 2 degrees of the
accelerometer's. `time_check_microseconds(index)` reports how long each stage
of the last update took.

## Receivers, mixers and packets

- `attitudekit.receiver` – `Receiver` base class with stick `Controls`,
  four auxiliary channels and sixteen two-bit switches (`get_switch`,
  `set_switch`), `q4dot12_to_float` for fixed-point stick values, and the
  `MotorMixer` base class with `MixerOutput`.
- `attitudekit.telemetry` – `pack_minimal`, `pack_tick_intervals`,
  `pack_ahrs` and `pack_receiver` build packed little-endian telemetry
  packets; `TelemetryType` names their type bytes.
- `attitudekit.commands` – `pack_command`, `pack_set_pid`, `pack_set_filter`
  and `parse_command` for command packets, with the `CommandType`,
  `ControlAction`, `DataRequest`, `PidSetType` and `FilterTarget` enums.
- `attitudekit.preferences` – `Preferences` stores PID constants
  (`PidConstants`), accelerometer and gyro offsets, named floats and MAC
  addresses in a JSON file, or in memory when no path is given.
  `get_float` returns `FLT_MAX` for a name with no value.

## Command line

```
attitudekit
```

runs a Madgwick filter on a stationary, level IMU reading and prints a line
`Roll …, Pitch …, Yaw …` per update. Options:

- `--beta` filter gain (default 0.1)
- `--delta-t` seconds between readings (default 0.01)
- `--steps` number of updates with the fixed reading (default 1)
- `--gyro X Y Z` gyroscope reading in rad/s, `--acc X Y Z` accelerometer
  reading in g
- `--input FILE` read `gx gy gz ax ay az` lines from a file, or `-` for
  standard input; `#` starts a comment

## What it does not do

The package talks to no hardware. It has no IMU drivers, no concrete IMU
filters, receivers, motor mixers or motor controllers, and no radio link:
those are the base classes and protocols above, for you to implement.
`AHRS` reads one sample per update and does not drain an IMU FIFO.