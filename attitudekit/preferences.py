"""Persistent settings of a stabilized vehicle: PID constants, offsets and addresses."""

from __future__ import annotations

import json
import os
import struct
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

NAMESPACE = "SV"
MAC_ADDRESS_LEN = 6
FLT_MAX: float = struct.unpack("<f", b"\xff\xff\x7f\x7f")[0]

_PIDS_SET_KEY = "PIDS_SET"
_INT16_MIN, _INT16_MAX = -0x8000, 0x7FFF


@dataclass(frozen=True)
class PidConstants:
    """Proportional, integral, derivative and feed-forward gains."""

    kp: float = 0.0
    ki: float = 0.0
    kd: float = 0.0
    kf: float = 0.0


def _float32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except (struct.error, OverflowError) as exc:
        raise ValueError(f"{value!r} does not fit a 32-bit float") from exc


def _int16(value: int) -> int:
    value = int(value)
    if not _INT16_MIN <= value <= _INT16_MAX:
        raise ValueError(f"{value} does not fit a 16-bit integer")
    return value


def _offset(values: Iterable[int]) -> list[int]:
    values = [_int16(v) for v in values]
    if len(values) != 3:
        raise ValueError("an offset has exactly three components")
    return values


class Preferences:
    """Settings kept in a JSON file, or in memory when no path is given."""

    def __init__(self, path: str | os.PathLike[str] | None = None, namespace: str = NAMESPACE) -> None:
        self._path = Path(path) if path is not None else None
        self._namespace = namespace
        self._memory: dict[str, dict[str, Any]] = {}

    def _load(self) -> dict[str, dict[str, Any]]:
        if self._path is None:
            return self._memory
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        return json.loads(text) if text.strip() else {}

    def _save(self, everything: dict[str, dict[str, Any]]) -> None:
        if self._path is None:
            self._memory = everything
            return
        temporary = self._path.with_name(self._path.name + ".tmp")
        temporary.write_text(json.dumps(everything, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(temporary, self._path)

    @contextmanager
    def _session(self, read_only: bool) -> Iterator[dict[str, Any]]:
        everything = self._load()
        entries = dict(everything.get(self._namespace, {}))
        yield entries
        if not read_only:
            everything = dict(everything)
            everything[self._namespace] = entries
            self._save(everything)

    def clear(self) -> None:
        """Remove every setting in the namespace."""
        with self._session(read_only=False) as entries:
            entries.clear()

    def is_set_pid(self) -> bool:
        """Whether any PID constants have been saved."""
        with self._session(read_only=True) as entries:
            return bool(entries.get(_PIDS_SET_KEY, False))

    def get_pid(self, name: str) -> PidConstants:
        """PID constants saved under name; missing gains are zero."""
        with self._session(read_only=True) as entries:
            return PidConstants(*(float(entries.get(f"{name}_{suffix}", 0.0)) for suffix in "PIDF"))

    def put_pid(self, name: str, pid: PidConstants) -> None:
        gains = (pid.kp, pid.ki, pid.kd, pid.kf)
        values = [_float32(gain) for gain in gains]
        with self._session(read_only=False) as entries:
            entries[_PIDS_SET_KEY] = True
            for suffix, value in zip("PIDF", values):
                entries[f"{name}_{suffix}"] = value

    def get_float(self, name: str) -> float:
        """The float saved under name, or FLT_MAX when there is none."""
        with self._session(read_only=True) as entries:
            value = entries.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return FLT_MAX
        return float(value)

    def put_float(self, name: str, value: float) -> None:
        value = _float32(value)
        with self._session(read_only=False) as entries:
            entries[name] = value

    def _get_offset(self, name: str) -> tuple[int, int, int] | None:
        with self._session(read_only=True) as entries:
            if not entries.get(name, False):
                return None
            x, y, z = (int(entries.get(f"{name}_{axis}", 0)) for axis in "xyz")
            return (x, y, z)

    def _put_offset(self, name: str, offset: Iterable[int]) -> None:
        values = _offset(offset)
        with self._session(read_only=False) as entries:
            entries[name] = True
            for axis, value in zip("xyz", values):
                entries[f"{name}_{axis}"] = value

    def get_acc_offset(self) -> tuple[int, int, int] | None:
        """The saved accelerometer offset, or None when none is saved."""
        return self._get_offset("acc")

    def put_acc_offset(self, offset: Iterable[int]) -> None:
        self._put_offset("acc", offset)

    def get_gyro_offset(self) -> tuple[int, int, int] | None:
        """The saved gyro offset, or None when none is saved."""
        return self._get_offset("gyro")

    def put_gyro_offset(self, offset: Iterable[int]) -> None:
        self._put_offset("gyro", offset)

    def get_mac_address(self, name: str) -> bytes | None:
        """The MAC address saved under name, or None when none is saved."""
        with self._session(read_only=True) as entries:
            value = entries.get(name)
        if not isinstance(value, str):
            return None
        return bytes.fromhex(value)

    def put_mac_address(self, name: str, mac_address: bytes) -> None:
        mac_address = bytes(mac_address)
        if len(mac_address) != MAC_ADDRESS_LEN:
            raise ValueError(f"a MAC address has {MAC_ADDRESS_LEN} bytes")
        with self._session(read_only=False) as entries:
            entries[name] = mac_address.hex()