"""Terminal colours for log levels and small log formatting helpers."""

from __future__ import annotations

import enum
from typing import Any, List, Optional, TypeVar

T = TypeVar("T")

SLICE_PRINT_LEN = 30
MESSAGE_WIDTH = 50


class Color(enum.IntEnum):
    """ANSI foreground colours."""

    BLACK = 30
    RED = 31
    GREEN = 32
    YELLOW = 33
    BLUE = 34
    MAGENTA = 35
    CYAN = 36
    WHITE = 37

    def add(self, s: str) -> str:
        """Wrap ``s`` in this colour's escape sequence."""
        return f"\x1b[{int(self)}m{s}\x1b[0m"


_LEVEL_COLORS = {
    "DEBUG": Color.WHITE,
    "INFO": Color.BLUE,
    "WARN": Color.YELLOW,
    "WARNING": Color.YELLOW,
    "ERROR": Color.RED,
    "DPANIC": Color.RED,
    "PANIC": Color.RED,
    "FATAL": Color.RED,
}


def level_color(level: Any) -> Optional[Color]:
    """Return the colour for a level given by name or by an object with a ``name``."""
    name = level if isinstance(level, str) else getattr(level, "name", None)
    if not isinstance(name, str):
        return None
    return _LEVEL_COLORS.get(name.upper())


class Slice(List[T]):
    """A list that shows at most its first 30 items when logged."""

    def format(self) -> List[T]:
        if len(self) >= SLICE_PRINT_LEN:
            return list(self[:SLICE_PRINT_LEN])
        return self


def align_message(message: str) -> str:
    """Left-align a log message, padding it to 50 characters."""
    return f"{message:<{MESSAGE_WIDTH}}"