"""Command that runs a Madgwick filter over IMU readings and prints the attitude."""

from __future__ import annotations

import argparse
import sys
from itertools import repeat
from typing import Iterator, TextIO

from attitudekit.sensor_fusion import MadgwickFilter, Vector3


def _readings_from(stream: TextIO) -> Iterator[tuple[Vector3, Vector3]]:
    for number, line in enumerate(stream, start=1):
        text = line.split("#", 1)[0].strip()
        if not text:
            continue
        try:
            values = [float(token) for token in text.split()]
        except ValueError:
            raise ValueError(f"line {number}: values must be numbers") from None
        if len(values) != 6:
            raise ValueError(f"line {number}: expected gx gy gz ax ay az")
        yield Vector3(*values[:3]), Vector3(*values[3:])


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="attitudekit",
        description="Fuse gyroscope and accelerometer readings into roll, pitch and yaw.",
    )
    parser.add_argument("--beta", type=float, default=0.1, help="filter gain")
    parser.add_argument("--delta-t", type=float, default=0.01, help="seconds between readings")
    parser.add_argument("--steps", type=int, default=1, help="number of updates with fixed readings")
    parser.add_argument("--gyro", type=float, nargs=3, default=[0.0, 0.0, 0.0],
                        metavar=("X", "Y", "Z"), help="gyroscope reading in rad/s")
    parser.add_argument("--acc", type=float, nargs=3, default=[0.0, 0.0, 1.0],
                        metavar=("X", "Y", "Z"), help="accelerometer reading in g")
    parser.add_argument("--input", metavar="FILE",
                        help="file of 'gx gy gz ax ay az' lines, or - for standard input")
    return parser


def _run(filter_: MadgwickFilter, readings, delta_t: float) -> None:
    for gyro, acc in readings:
        q = filter_.update(gyro, acc, delta_t)
        print(f"Roll {q.roll_degrees():0.1f}, Pitch {q.pitch_degrees():0.1f}, Yaw {q.yaw_degrees():0.1f}")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.delta_t <= 0.0:
        parser.error("--delta-t must be positive")
    if args.steps < 0:
        parser.error("--steps must not be negative")

    filter_ = MadgwickFilter()
    filter_.set_beta(args.beta)

    try:
        if args.input is None:
            readings = repeat((Vector3(*args.gyro), Vector3(*args.acc)), args.steps)
            _run(filter_, readings, args.delta_t)
        elif args.input == "-":
            _run(filter_, _readings_from(sys.stdin), args.delta_t)
        else:
            with open(args.input, encoding="utf-8") as stream:
                _run(filter_, _readings_from(stream), args.delta_t)
    except OSError as exc:
        parser.error(str(exc))
    except ValueError as exc:
        parser.error(str(exc))
    return 0