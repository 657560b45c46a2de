"""A log file that rotates itself according to a strftime file-name pattern."""

from __future__ import annotations

import enum
import glob
import os
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import BinaryIO, Callable, Optional, Union

from imkit.rotate_fileutil import _compile_pattern, create_file, generate_fn

Duration = Union[timedelta, int, float, None]

_PATTERN_CONVERSIONS = (re.compile(r"%[%+A-Za-z]"), re.compile(r"\*+"))


def local_clock() -> datetime:
    """Current time in the local time zone."""
    return datetime.now().astimezone()


def utc_clock() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def location_clock(tz: tzinfo) -> Callable[[], datetime]:
    """Return a clock that gives the current time in ``tz``."""
    return lambda: datetime.now(tz)


class EventType(enum.IntEnum):
    INVALID = 0
    FILE_ROTATED = 1


@dataclass(frozen=True)
class FileRotatedEvent:
    """Sent to the handler whenever a new log file is opened."""

    previous_file: str
    current_file: str

    def type(self) -> EventType:
        return EventType.FILE_ROTATED


class RotateLogsError(Exception):
    """Raised when the rotating log cannot be set up or written."""


def _duration(value: Duration) -> timedelta:
    if value is None:
        return timedelta(0)
    if not isinstance(value, timedelta):
        value = timedelta(seconds=value)
    return max(value, timedelta(0))


class RotateLogs:
    """A writable log file that switches to a new file as time passes."""

    def __init__(
        self,
        pattern: str,
        *,
        clock: Callable[[], datetime] = local_clock,
        link_name: str = "",
        max_age: Duration = None,
        rotation_time: Duration = timedelta(hours=24),
        rotation_size: int = 0,
        rotation_count: int = 0,
        handler: Optional[Callable[[FileRotatedEvent], None]] = None,
        force_new_file: bool = False,
    ) -> None:
        glob_pattern = pattern
        for regex in _PATTERN_CONVERSIONS:
            glob_pattern = regex.sub("*", glob_pattern)
        try:
            self._pattern = _compile_pattern(pattern)
        except ValueError as exc:
            raise RotateLogsError(f"invalid strftime pattern: {exc}") from exc
        if rotation_count < 0:
            raise ValueError("rotation_count must not be negative")

        max_age = _duration(max_age)
        if max_age > timedelta(0) and rotation_count > 0:
            raise RotateLogsError("options max_age and rotation_count cannot be both set")
        if max_age == timedelta(0) and rotation_count == 0:
            max_age = timedelta(days=7)

        self._glob_pattern = glob_pattern
        self._clock = clock
        self._link_name = link_name
        self._max_age = max_age
        self._rotation_time = _duration(rotation_time)
        self._rotation_size = max(rotation_size, 0)
        self._rotation_count = rotation_count
        self._handler = handler
        self._force_new_file = force_new_file
        self._lock = threading.RLock()
        self._out: Optional[BinaryIO] = None
        self._cur_fn = ""
        self._cur_base_fn = ""
        self._generation = 0

    def write(self, data: Union[bytes, str]) -> int:
        """Write to the current file, rotating first when it is due."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._lock:
            try:
                out = self._writer(use_generational_names=False)
            except OSError as exc:
                raise RotateLogsError(f"failed to acquire target writer: {exc}") from exc
            if out is None:
                raise RotateLogsError("log file is closed")
            return out.write(data)

    def current_filename(self) -> str:
        """Name of the file currently written to."""
        with self._lock:
            return self._cur_fn

    def rotate(self) -> None:
        """Force a rotation; clashing names get a ``.1``, ``.2``, ... suffix."""
        with self._lock:
            try:
                self._writer(use_generational_names=True)
            except OSError as exc:
                raise RotateLogsError(f"failed to rotate: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._out is not None:
                self._out.close()
                self._out = None

    def __enter__(self) -> "RotateLogs":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _writer(self, use_generational_names: bool) -> Optional[BinaryIO]:
        generation = self._generation
        previous_fn = self._cur_fn
        base_fn = generate_fn(self._pattern, self._clock, self._rotation_time)
        filename = base_fn
        force_new = False
        size_rotation = False

        if self._rotation_size > 0 and self._cur_fn:
            try:
                size = os.stat(self._cur_fn).st_size
            except OSError:
                size = None
            if size is not None and self._rotation_size <= size:
                force_new = size_rotation = True

        if base_fn != self._cur_base_fn:
            generation = 0
            if self._force_new_file:
                force_new = True
        else:
            if not use_generational_names and not size_rotation:
                return self._out
            force_new = True
            generation += 1

        if force_new:
            while True:
                name = filename if generation == 0 else f"{filename}.{generation}"
                if not os.path.exists(name):
                    filename = name
                    break
                generation += 1

        fh = create_file(filename)
        try:
            self._purge(filename)
        except (OSError, RotateLogsError):
            # A failed clean-up must never stop logging.
            pass

        if self._out is not None:
            self._out.close()
        self._out = fh
        self._cur_base_fn = base_fn
        self._cur_fn = filename
        self._generation = generation

        if self._handler is not None:
            event = FileRotatedEvent(previous_file=previous_fn, current_file=filename)
            threading.Thread(target=self._handler, args=(event,), daemon=True).start()
        return fh

    def _purge(self, filename: str) -> None:
        lock_fn = filename + "_lock"
        lock_fd = os.open(lock_fn, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        try:
            if self._link_name:
                self._update_link(filename)
            for path in self._expired_files():
                try:
                    os.remove(path)
                except OSError:
                    pass
        finally:
            os.close(lock_fd)
            try:
                os.remove(lock_fn)
            except OSError:
                pass

    def _update_link(self, filename: str) -> None:
        tmp_link = filename + "_symlink"
        link_dest = filename
        link_dir = os.path.dirname(self._link_name) or "."
        base_dir = os.path.dirname(filename) or "."
        if base_dir in self._link_name:
            link_dest = os.path.relpath(filename, link_dir)
        try:
            os.symlink(link_dest, tmp_link)
        except OSError as exc:
            raise RotateLogsError(f"failed to create new symlink: {exc}") from exc
        os.makedirs(link_dir, mode=0o755, exist_ok=True)
        try:
            os.replace(tmp_link, self._link_name)
        except OSError as exc:
            raise RotateLogsError(f"failed to rename new symlink: {exc}") from exc

    def _expired_files(self) -> list[str]:
        if self._max_age <= timedelta(0) and self._rotation_count <= 0:
            raise RotateLogsError("max_age and rotation_count are both unset")
        cutoff = self._clock().timestamp() - self._max_age.total_seconds()
        candidates = []
        for path in sorted(glob.glob(self._glob_pattern)):
            if path.endswith(("_lock", "_symlink")):
                continue
            try:
                info = os.stat(path)
                is_link = os.path.islink(path)
            except OSError:
                continue
            if self._max_age > timedelta(0) and info.st_mtime > cutoff:
                continue
            if self._rotation_count > 0 and is_link:
                continue
            candidates.append(path)

        if self._rotation_count > 0:
            if self._rotation_count >= len(candidates):
                return []
            candidates = candidates[: len(candidates) - self._rotation_count]
        return candidates