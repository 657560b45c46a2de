"""Per-key processing queues backed by a shared global overflow queue."""

from __future__ import annotations

import enum
import operator
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Iterable, Optional, Tuple, TypeVar

from imkit.bounded import BoundedQueue

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


class Strategy(enum.Enum):
    """How a key is chosen for data inserted without one."""

    LEAST = 1


class GlobalQueueFullError(Exception):
    """Raised when data must go to the global queue and it is full."""


class WaitingQueueFullError(Exception):
    """Raised when a key's processing and waiting queues are both full."""


class DataNotFoundError(Exception):
    """Raised when deleting data that is not queued under the key."""


@dataclass
class _KeyQueues(Generic[T]):
    processing: BoundedQueue
    waiting: BoundedQueue


def least_task(manager: "QueueManager") -> Tuple[Optional[Any], bool]:
    """Return the key with the fewest processing items, and whether any key exists."""
    best_key = None
    min_len = -1
    for key, queues in manager._task_queues.items():
        length = len(queues.processing)
        if min_len == -1 or length < min_len:
            min_len = length
            best_key = key
    return best_key, min_len != -1


_STRATEGIES: Dict[Strategy, Callable[["QueueManager"], Tuple[Optional[Any], bool]]] = {
    Strategy.LEAST: least_task,
}


class QueueManager(Generic[T, K]):
    """Distributes data over per-key processing queues.

    Each key has a processing queue and a waiting queue. When an item leaves a
    processing queue, the next item comes from that key's waiting queue or,
    if that is empty, from the global queue.
    """

    def __init__(
        self,
        max_global: int,
        max_processing: int,
        max_waiting: int,
        equal: Optional[Callable[[T, T], bool]] = None,
        *,
        strategy: Strategy = Strategy.LEAST,
        after_process_push: Iterable[Callable[[K, T], None]] = (),
    ) -> None:
        try:
            self._assign = _STRATEGIES[strategy]
        except KeyError:
            raise ValueError(f"unknown strategy: {strategy!r}") from None
        self._global = BoundedQueue(max_global)
        self._task_queues: Dict[K, _KeyQueues] = {}
        self._max_processing = max_processing
        self._max_waiting = max_waiting
        self._equal = equal or operator.eq
        self._after_process_push = list(after_process_push)
        self._lock = threading.RLock()

    def _queues_for(self, key: K) -> _KeyQueues:
        queues = self._task_queues.get(key)
        if queues is None:
            queues = _KeyQueues(
                processing=BoundedQueue(self._max_processing),
                waiting=BoundedQueue(self._max_waiting),
            )
            self._task_queues[key] = queues
        return queues

    def _push_to_process(self, queues: _KeyQueues, key: K, data: T) -> None:
        queues.processing.push(data)
        for callback in self._after_process_push:
            callback(key, data)

    def _push_global(self, data: T) -> None:
        if self._global.full():
            raise GlobalQueueFullError("global queue is full")
        self._global.push(data)

    def insert(self, data: T) -> None:
        """Insert data under the key the strategy picks, or into the global queue."""
        with self._lock:
            key, assigned = self._assign(self)
            if not assigned:
                self._push_global(data)
                return
            queues = self._task_queues[key]
            if not queues.processing.full():
                queues.processing.push(data)
                return
            self._push_global(data)

    def insert_by_key(self, key: K, data: T) -> None:
        """Insert data under ``key``, into processing if there is room, else waiting."""
        with self._lock:
            queues = self._queues_for(key)
            if not queues.processing.full():
                self._push_to_process(queues, key, data)
                return
            if not queues.waiting.full():
                queues.waiting.push(data)
                return
            raise WaitingQueueFullError("waiting queue is full")

    def delete(self, key: K, data: T) -> None:
        """Remove data from ``key``'s queues, refilling processing when it shrinks."""
        with self._lock:
            queues = self._task_queues.get(key)
            if queues is None:
                raise DataNotFoundError("data not found")
            if queues.processing.remove(data, self._equal):
                source = queues.waiting if len(queues.waiting) else self._global
                if len(source):
                    self._push_to_process(queues, key, source.pop())
                return
            if queues.waiting.remove(data, self._equal):
                return
            raise DataNotFoundError("data not found")

    def processing_queue_lengths(self) -> Dict[K, int]:
        with self._lock:
            return {key: len(queues.processing) for key, queues in self._task_queues.items()}