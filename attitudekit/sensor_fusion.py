"""Vectors, quaternions and sensor fusion filters for attitude estimation.

Euler angles are in radians unless a name says otherwise:
roll is rotation about the X axis, pitch about the Y axis and yaw about the Z axis.
"""

from __future__ import annotations

import math
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterator


@dataclass(frozen=True)
class Vector3:
    """Three-component vector."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def __add__(self, other: Vector3) -> Vector3:
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vector3) -> Vector3:
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> Vector3:
        return Vector3(-self.x, -self.y, -self.z)

    def __mul__(self, scalar: float) -> Vector3:
        return Vector3(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def magnitude_squared(self) -> float:
        return self.x * self.x + self.y * self.y + self.z * self.z

    def dot(self, other: Vector3) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vector3) -> Vector3:
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )


@dataclass(frozen=True)
class Quaternion:
    """Quaternion w + xi + yj + zk; the default is the identity rotation."""

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_euler_angles_radians(cls, roll: float, pitch: float, yaw: float = 0.0) -> Quaternion:
        """Build the rotation quaternion for the given roll, pitch and yaw."""
        cr, sr = math.cos(roll * 0.5), math.sin(roll * 0.5)
        cp, sp = math.cos(pitch * 0.5), math.sin(pitch * 0.5)
        cy, sy = math.cos(yaw * 0.5), math.sin(yaw * 0.5)
        return cls(
            cr * cp * cy + sr * sp * sy,
            sr * cp * cy - cr * sp * sy,
            cr * sp * cy + sr * cp * sy,
            cr * cp * sy - sr * sp * cy,
        )

    def __iter__(self) -> Iterator[float]:
        yield self.w
        yield self.x
        yield self.y
        yield self.z

    def __add__(self, other: Quaternion) -> Quaternion:
        return Quaternion(self.w + other.w, self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Quaternion) -> Quaternion:
        return Quaternion(self.w - other.w, self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> Quaternion:
        return Quaternion(-self.w, -self.x, -self.y, -self.z)

    def __mul__(self, other: Quaternion | float) -> Quaternion:
        if isinstance(other, Quaternion):
            return Quaternion(
                self.w * other.w - self.x * other.x - self.y * other.y - self.z * other.z,
                self.w * other.x + self.x * other.w + self.y * other.z - self.z * other.y,
                self.w * other.y - self.x * other.z + self.y * other.w + self.z * other.x,
                self.w * other.z + self.x * other.y - self.y * other.x + self.z * other.w,
            )
        return Quaternion(self.w * other, self.x * other, self.y * other, self.z * other)

    def __rmul__(self, scalar: float) -> Quaternion:
        return Quaternion(self.w * scalar, self.x * scalar, self.y * scalar, self.z * scalar)

    def magnitude_squared(self) -> float:
        return self.w * self.w + self.x * self.x + self.y * self.y + self.z * self.z

    def conjugate(self) -> Quaternion:
        return Quaternion(self.w, -self.x, -self.y, -self.z)

    def half_gravity(self) -> Vector3:
        """Half the direction of gravity in the sensor frame."""
        w, x, y, z = self
        return Vector3(x * z - w * y, w * x + y * z, w * w - 0.5 + z * z)

    def gravity(self) -> Vector3:
        """Direction of gravity in the sensor frame."""
        return self.half_gravity() * 2.0

    def roll_radians(self) -> float:
        w, x, y, z = self
        return math.atan2(w * x + y * z, 0.5 - x * x - y * y)

    def pitch_radians(self) -> float:
        w, x, y, z = self
        return math.asin(max(-1.0, min(1.0, 2.0 * (w * y - x * z))))

    def yaw_radians(self) -> float:
        w, x, y, z = self
        return math.atan2(w * z + x * y, 0.5 - y * y - z * z)

    def roll_degrees(self) -> float:
        return math.degrees(self.roll_radians())

    def pitch_degrees(self) -> float:
        return math.degrees(self.pitch_radians())

    def yaw_degrees(self) -> float:
        return math.degrees(self.yaw_radians())


def reciprocal_sqrt(x: float) -> float:
    """Return 1/sqrt(x)."""
    return 1.0 / math.sqrt(x)


def fast_reciprocal_sqrt(x: float, iterations: int = 2) -> float:
    """Approximate 1/sqrt(x) by the bit-level estimate with Pizer's constants.

    One Newton iteration gives about 4.5 significant figures, two give nearly
    full single precision.
    """
    if iterations not in (1, 2):
        raise ValueError("iterations must be 1 or 2")
    if not x > 0.0:
        raise ValueError("x must be positive")
    (bits,) = struct.unpack("<i", struct.pack("<f", x))
    bits = 0x5F1F1412 - (bits >> 1)
    (y,) = struct.unpack("<f", struct.pack("<i", bits))
    y *= 1.69000231 - 0.714158168 * x * y * y
    if iterations == 2:
        y *= 1.5 - 0.5 * x * y * y
    return y


def roll_radians_from_acc(acc: Vector3) -> float:
    """Roll from normalized accelerometer readings."""
    return math.atan2(acc.y, acc.z)


def pitch_radians_from_acc(acc: Vector3) -> float:
    """Pitch from normalized accelerometer readings."""
    return math.atan2(-acc.x, math.sqrt(acc.y * acc.y + acc.z * acc.z))


def _normalized(v: Vector3) -> tuple[Vector3, float]:
    """Return the unit vector (or the zero vector) and the squared magnitude."""
    magnitude_squared = v.magnitude_squared()
    if magnitude_squared != 0.0:
        return v * reciprocal_sqrt(magnitude_squared), magnitude_squared
    return v, magnitude_squared


def _normalized_quaternion(q: Quaternion) -> Quaternion:
    return q * reciprocal_sqrt(q.magnitude_squared())


@dataclass
class SensorFusionFilter(ABC):
    """Base of the filters that fuse gyroscope, accelerometer and magnetometer data."""

    _q: Quaternion = field(default_factory=Quaternion, init=False, repr=False)
    acc_magnitude_squared_min: float = field(default=0.9, init=False)
    acc_magnitude_squared_max: float = field(default=1.1, init=False)

    def reset(self) -> None:
        """Set every component of the orientation to zero."""
        self._q = Quaternion(0.0, 0.0, 0.0, 0.0)

    def orientation(self) -> Quaternion:
        return self._q

    def set_and_normalize_q(self, w: float, x: float, y: float, z: float) -> None:
        """Set the orientation directly, normalizing it."""
        self._q = _normalized_quaternion(Quaternion(w, x, y, z))

    def two_q_dot(self, gyro_rps: Vector3) -> Quaternion:
        """Twice the quaternion derivative for the given angular rate in rad/s."""
        w, x, y, z = self._q
        g = gyro_rps
        return Quaternion(
            -x * g.x - y * g.y - z * g.z,
            w * g.x + y * g.z - z * g.y,
            w * g.y - x * g.z + z * g.x,
            w * g.z + x * g.y - y * g.x,
        )

    def update(
        self,
        gyro_rps: Vector3,
        accelerometer: Vector3,
        delta_t: float,
        magnetometer: Vector3 | None = None,
    ) -> Quaternion:
        """Advance the filter by delta_t seconds and return the new orientation."""
        if magnetometer is None:
            self._q = self._update_imu(gyro_rps, accelerometer, delta_t)
        else:
            self._q = self._update_marg(gyro_rps, accelerometer, magnetometer, delta_t)
        return self._q

    @abstractmethod
    def set_free_parameters(self, parameter0: float, parameter1: float) -> None:
        """Set the filter's tuning parameters."""

    @abstractmethod
    def _update_imu(self, gyro_rps: Vector3, acc: Vector3, delta_t: float) -> Quaternion:
        ...

    @abstractmethod
    def _update_marg(
        self, gyro_rps: Vector3, acc: Vector3, mag: Vector3, delta_t: float
    ) -> Quaternion:
        ...


@dataclass
class ComplementaryFilter(SensorFusionFilter):
    """Blends the integrated gyro attitude with the accelerometer attitude."""

    alpha: float = 0.96

    def set_free_parameters(self, parameter0: float, parameter1: float) -> None:
        self.alpha = parameter0

    def set_alpha(self, alpha: float) -> None:
        self.set_free_parameters(alpha, 0.0)

    def _integrate_gyro(self, gyro_rps: Vector3, delta_t: float) -> Quaternion:
        return self._q + self.two_q_dot(gyro_rps) * (delta_t * 0.5)

    def _blend(self, q: Quaternion, estimate: Quaternion) -> Quaternion:
        return _normalized_quaternion((q - estimate) * self.alpha + estimate)

    def _update_imu(self, gyro_rps: Vector3, acc: Vector3, delta_t: float) -> Quaternion:
        q = self._integrate_gyro(gyro_rps, delta_t)
        a, _ = _normalized(acc)
        estimate = Quaternion.from_euler_angles_radians(
            roll_radians_from_acc(a), pitch_radians_from_acc(a)
        )
        return self._blend(q, estimate)

    def _update_marg(
        self, gyro_rps: Vector3, acc: Vector3, mag: Vector3, delta_t: float
    ) -> Quaternion:
        q = self._integrate_gyro(gyro_rps, delta_t)
        a, _ = _normalized(acc)
        roll = roll_radians_from_acc(a)
        pitch = pitch_radians_from_acc(a)
        cos_phi, sin_phi = math.cos(roll), math.sin(roll)
        cos_theta, sin_theta = math.cos(pitch), math.sin(pitch)

        m, _ = _normalized(mag)
        bx = m.x * cos_theta + sin_theta * (m.y * sin_phi + m.z * cos_phi)
        by = m.y * cos_phi - m.z * sin_phi
        yaw = math.atan2(-by, bx)

        estimate = Quaternion.from_euler_angles_radians(roll, pitch, yaw)
        return self._blend(q, estimate)


@dataclass
class MahonyFilter(SensorFusionFilter):
    """Mahony filter: proportional-integral feedback of the gravity error."""

    kp: float = 10.0
    ki: float = 0.0
    error_integral: Vector3 = field(default_factory=Vector3)

    def set_free_parameters(self, parameter0: float, parameter1: float) -> None:
        self.kp = parameter0
        self.ki = parameter1

    def set_kp_ki(self, kp: float, ki: float) -> None:
        self.set_free_parameters(kp, ki)

    def _update_imu(self, gyro_rps: Vector3, acc: Vector3, delta_t: float) -> Quaternion:
        a, _ = _normalized(acc)
        error = a.cross(self._q.gravity())

        gyro = gyro_rps + error * self.kp
        if self.ki > 0.0:
            self.error_integral = self.error_integral + error * (self.ki * delta_t)
            gyro = gyro + self.error_integral

        q = self._q + self.two_q_dot(gyro) * (delta_t * 0.5)
        return _normalized_quaternion(q)

    def _update_marg(
        self, gyro_rps: Vector3, acc: Vector3, mag: Vector3, delta_t: float
    ) -> Quaternion:
        return self._update_imu(gyro_rps, acc, delta_t)


@dataclass
class MadgwickFilter(SensorFusionFilter):
    """Madgwick gradient-descent orientation filter."""

    beta: float = 1.0  # high initial gain for fast convergence

    def set_free_parameters(self, parameter0: float, parameter1: float) -> None:
        self.beta = parameter0

    def set_beta(self, beta: float) -> None:
        self.set_free_parameters(beta, 0.0)

    def _acc_is_reliable(self, magnitude_squared: float) -> bool:
        return self.acc_magnitude_squared_min <= magnitude_squared <= self.acc_magnitude_squared_max

    def _step(self, two_q_dot: Quaternion, s: Quaternion, delta_t: float) -> Quaternion:
        s_magnitude_squared = s.magnitude_squared()
        if s_magnitude_squared != 0.0:
            two_q_dot = two_q_dot - s * (2.0 * self.beta * reciprocal_sqrt(s_magnitude_squared))
        return _normalized_quaternion(self._q + two_q_dot * (delta_t * 0.5))

    def _update_imu(self, gyro_rps: Vector3, acc: Vector3, delta_t: float) -> Quaternion:
        two_q_dot = self.two_q_dot(gyro_rps)
        a, acc_magnitude_squared = _normalized(acc)

        s = Quaternion(0.0, 0.0, 0.0, 0.0)
        if self._acc_is_reliable(acc_magnitude_squared):
            q0, q1, q2, q3 = self._q
            two_q1q1_plus_two_q2q2 = 2.0 * (q1 * q1 + q2 * q2)
            common = 2.0 * (q0 * q0 + q3 * q3 - 1.0 + two_q1q1_plus_two_q2q2 + a.z)
            s = Quaternion(
                q0 * two_q1q1_plus_two_q2q2 + q2 * a.x - q1 * a.y,
                q1 * common - q3 * a.x - q0 * a.y,
                q2 * common + q0 * a.x - q3 * a.y,
                q3 * two_q1q1_plus_two_q2q2 - q1 * a.x - q2 * a.y,
            )
        return self._step(two_q_dot, s, delta_t)

    def _update_marg(
        self, gyro_rps: Vector3, acc: Vector3, mag: Vector3, delta_t: float
    ) -> Quaternion:
        a, acc_magnitude_squared = _normalized(acc)
        if not self._acc_is_reliable(acc_magnitude_squared):
            a = Vector3()
        m, _ = _normalized(mag)

        q0, q1, q2, q3 = self._q
        q0q0, q0q1, q0q2, q0q3 = q0 * q0, q0 * q1, q0 * q2, q0 * q3
        q1q1, q1q2, q1q3 = q1 * q1, q1 * q2, q1 * q3
        q2q2, q2q3 = q2 * q2, q2 * q3
        q3q3 = q3 * q3

        q1q1_plus_q2q2 = q1q1 + q2q2
        q2q2_plus_q3q3 = q2q2 + q3q3

        # reference direction of the Earth's magnetic field
        h_x = m.x * (q0q0 + q1q1 - q2q2_plus_q3q3) + 2.0 * (m.y * (q1q2 - q0q3) + m.z * (q0q2 + q1q3))
        h_y = 2.0 * (m.x * (q0q3 + q1q2) + m.y * (q0q0 - q1q1 + q2q2 - q3q3) + m.z * (q2q3 - q0q1))

        bxbx = h_x * h_x + h_y * h_y
        bx = math.sqrt(bxbx)
        bz = 2.0 * (m.x * (q1q3 - q0q2) + m.y * (q0q1 + q2q3)) + m.z * (q0q0 - q1q1_plus_q2q2 + q3q3)
        bzbz = bz * bz
        four_bxbz = 4.0 * bx * bz

        mxbx = m.x * bx
        mybx = m.y * bx
        mzbx = m.z * bx
        mzbz = m.z * bz

        ax_plus_mxbz = a.x + m.x * bz
        ay_plus_mybz = a.y + m.y * bz

        sum_squares_minus_one = q0q0 + q1q1_plus_q2q2 + q3q3 - 1.0
        common = sum_squares_minus_one + q1q1_plus_q2q2 + a.z

        s0 = (
            q0 * 2.0 * (q1q1_plus_q2q2 * (1.0 + bzbz) + bxbx * q2q2_plus_q3q3)
            - q1 * ay_plus_mybz
            + q2 * (ax_plus_mxbz - mzbx)
            + q3 * (mybx - four_bxbz * q0q1)
        )
        s1 = (
            -q0 * ay_plus_mybz
            + q1 * 2.0 * (common + mzbz + bxbx * q2q2_plus_q3q3
                          + bzbz * (sum_squares_minus_one + q1q1_plus_q2q2))
            - q2 * mybx
            - q3 * (ax_plus_mxbz + mzbx + four_bxbz * (0.5 * sum_squares_minus_one + q1q1))
        )
        s2 = (
            q0 * (ax_plus_mxbz - mzbx)
            - q1 * mybx
            + q2 * 2.0 * (common + mzbz + mxbx + bxbx * (sum_squares_minus_one + q2q2_plus_q3q3)
                          + bzbz * (sum_squares_minus_one + q1q1_plus_q2q2))
            - q3 * (ay_plus_mybz + four_bxbz * q1q2)
        )
        s3 = (
            q0 * mybx
            - q1 * (ax_plus_mxbz + mzbx + four_bxbz * (0.5 * sum_squares_minus_one + q3q3))
            - q2 * ay_plus_mybz
            + q3 * 2.0 * (q1q1_plus_q2q2 * (1.0 + bzbz) + mxbx
                          + bxbx * (sum_squares_minus_one + q2q2_plus_q3q3))
        )
        return self._step(self.two_q_dot(gyro_rps), Quaternion(s0, s1, s2, s3), delta_t)