"""A thread-safe FIFO queue with a fixed capacity."""

from __future__ import annotations

import operator
import threading
from collections import deque
from typing import Callable, Deque, Generic, Optional, TypeVar

T = TypeVar("T")

Equal = Callable[[T, T], bool]


class QueueFullError(Exception):
    """Raised when pushing onto a queue that has reached its capacity."""


class QueueEmptyError(Exception):
    """Raised when popping from an empty queue."""


class BoundedQueue(Generic[T]):
    """A FIFO queue that refuses new items once it holds ``capacity`` of them."""

    def __init__(self, capacity: int) -> None:
        self._capacity = capacity
        self._items: Deque[T] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def full(self) -> bool:
        return len(self) >= self._capacity

    def push(self, item: T) -> None:
        with self._lock:
            if len(self._items) >= self._capacity:
                raise QueueFullError("queue is full")
            self._items.append(item)

    def pop(self) -> T:
        with self._lock:
            if not self._items:
                raise QueueEmptyError("queue is empty")
            return self._items.popleft()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def contains(self, item: T, equal: Optional[Equal] = None) -> bool:
        """Tell whether an item equal to ``item`` is queued."""
        eq = equal or operator.eq
        with self._lock:
            return any(eq(queued, item) for queued in self._items)

    def remove(self, item: T, equal: Optional[Equal] = None) -> bool:
        """Remove the first item equal to ``item``; return whether one was found."""
        eq = equal or operator.eq
        with self._lock:
            for index, queued in enumerate(self._items):
                if eq(queued, item):
                    del self._items[index]
                    return True
            return False