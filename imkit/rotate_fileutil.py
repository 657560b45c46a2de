"""File naming and creation helpers for rotating log files."""

from __future__ import annotations

import functools
import os
from datetime import datetime, timedelta
from typing import BinaryIO, Callable, Union

Clock = Callable[[], datetime]

_ZERO_TIME = datetime(1, 1, 1)
_ONE_MICROSECOND = timedelta(microseconds=1)

_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def _hour12(moment: datetime) -> int:
    return moment.hour % 12 or 12


def _year_day(moment: datetime) -> int:
    return moment.timetuple().tm_yday


def _utc_offset(moment: datetime) -> str:
    offset = moment.utcoffset() or timedelta(0)
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}{minutes % 60:02d}"


def _abbr_day(m: datetime) -> str:
    return _DAY_NAMES[m.weekday()][:3]


def _abbr_month(m: datetime) -> str:
    return _MONTH_NAMES[m.month - 1][:3]


def _hms(m: datetime) -> str:
    return f"{m.hour:02d}:{m.minute:02d}:{m.second:02d}"


def _mdy(m: datetime) -> str:
    return f"{m.month:02d}/{m.day:02d}/{m.year % 100:02d}"


_VERBS: dict[str, Callable[[datetime], str]] = {
    "A": lambda m: _DAY_NAMES[m.weekday()],
    "a": _abbr_day,
    "B": lambda m: _MONTH_NAMES[m.month - 1],
    "b": _abbr_month,
    "h": _abbr_month,
    "C": lambda m: f"{m.year // 100:02d}",
    "c": lambda m: f"{_abbr_day(m)} {_abbr_month(m)} {m.day:>2} {_hms(m)} {m.year:04d}",
    "D": _mdy,
    "d": lambda m: f"{m.day:02d}",
    "e": lambda m: f"{m.day:>2}",
    "F": lambda m: f"{m.year:04d}-{m.month:02d}-{m.day:02d}",
    "H": lambda m: f"{m.hour:02d}",
    "I": lambda m: f"{_hour12(m):02d}",
    "j": lambda m: f"{_year_day(m):03d}",
    "k": lambda m: f"{m.hour:>2}",
    "l": lambda m: f"{_hour12(m):>2}",
    "M": lambda m: f"{m.minute:02d}",
    "m": lambda m: f"{m.month:02d}",
    "n": lambda m: "\n",
    "p": lambda m: "AM" if m.hour < 12 else "PM",
    "R": lambda m: f"{m.hour:02d}:{m.minute:02d}",
    "r": lambda m: f"{_hour12(m):02d}:{m.minute:02d}:{m.second:02d} {'AM' if m.hour < 12 else 'PM'}",
    "S": lambda m: f"{m.second:02d}",
    "T": _hms,
    "t": lambda m: "\t",
    "U": lambda m: f"{(_year_day(m) - 1 + 7 - m.isoweekday() % 7) // 7:02d}",
    "u": lambda m: str(m.isoweekday()),
    "V": lambda m: f"{m.isocalendar()[1]:02d}",
    "v": lambda m: f"{m.day:>2}-{_abbr_month(m)}-{m.year:04d}",
    "W": lambda m: f"{(_year_day(m) - 1 + 7 - m.weekday()) // 7:02d}",
    "w": lambda m: str(m.isoweekday() % 7),
    "X": _hms,
    "x": _mdy,
    "Y": lambda m: f"{m.year:04d}",
    "y": lambda m: f"{m.year % 100:02d}",
    "Z": lambda m: m.tzname() or "",
    "z": _utc_offset,
}


class _Pattern:
    """A compiled strftime pattern."""

    __slots__ = ("source", "_parts")

    def __init__(self, source: str, parts: tuple) -> None:
        self.source = source
        self._parts = parts

    def format(self, moment: datetime) -> str:
        return "".join(part if isinstance(part, str) else part(moment) for part in self._parts)


@functools.lru_cache(maxsize=128)
def _compile_pattern(source: str) -> _Pattern:
    """Compile a strftime pattern, raising ValueError on unknown verbs."""
    parts: list = []
    literal: list[str] = []
    chars = iter(source)
    for ch in chars:
        if ch != "%":
            literal.append(ch)
            continue
        verb = next(chars, None)
        if verb is None:
            raise ValueError("stray % at the end of the pattern")
        if verb == "%":
            literal.append("%")
            continue
        formatter = _VERBS.get(verb)
        if formatter is None:
            raise ValueError(f"unknown time format specification: %{verb}")
        if literal:
            parts.append("".join(literal))
            literal.clear()
        parts.append(formatter)
    if literal:
        parts.append("".join(literal))
    return _Pattern(source, tuple(parts))


def _truncate(moment: datetime, step: timedelta) -> datetime:
    """Round the wall-clock time of ``moment`` down to a multiple of ``step``."""
    if step <= timedelta(0):
        return moment
    size = step // _ONE_MICROSECOND
    if size <= 0:
        return moment
    elapsed = (moment.replace(tzinfo=None) - _ZERO_TIME) // _ONE_MICROSECOND
    floored = _ZERO_TIME + timedelta(microseconds=elapsed - elapsed % size)
    return floored.replace(tzinfo=moment.tzinfo)


def generate_fn(pattern: Union[str, _Pattern], clock: Clock, rotation_time: timedelta) -> str:
    """Build a file name from ``pattern`` and the clock's time truncated to ``rotation_time``.

    Truncation works on the apparent wall-clock time, so that daily rotation
    happens at local midnight whatever the time zone.
    """
    compiled = _compile_pattern(pattern) if isinstance(pattern, str) else pattern
    return compiled.format(_truncate(clock(), rotation_time))


def create_file(filename: str) -> BinaryIO:
    """Open ``filename`` for unbuffered appending, creating parent directories."""
    dirname = os.path.dirname(filename) or "."
    os.makedirs(dirname, mode=0o755, exist_ok=True)
    return open(filename, "ab", buffering=0)