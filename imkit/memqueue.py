"""An in-memory task queue served by a fixed pool of worker threads."""

from __future__ import annotations

import logging
import queue
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Sequence

PUSH_WAIT = 3.0
_POLL = 0.01

_log = logging.getLogger(__name__)
_STOP = object()

Task = Callable[[], None]


class QueueStoppedError(Exception):
    """Raised when pushing to a stopped queue."""


class QueueFullError(Exception):
    """Raised when the queue stays full for too long."""


class PushCancelledError(Exception):
    """Raised when a push is cancelled; ``pushed`` counts tasks already queued."""

    def __init__(self, message: str = "push cancelled", pushed: int = 0) -> None:
        super().__init__(message)
        self.pushed = pushed


class MemoryQueue:
    """Runs pushed callables on ``worker_count`` threads, buffering ``buffer_size`` of them."""

    def __init__(self, worker_count: int, buffer_size: int) -> None:
        if worker_count < 1 or buffer_size < 1:
            raise ValueError("worker_count and buffer_size must be greater than 0")
        self._tasks: queue.Queue = queue.Queue(maxsize=buffer_size)
        self._state = threading.Condition()
        self._stopped = False
        self._pending = 0
        self._workers = [
            threading.Thread(target=self._work, daemon=True) for _ in range(worker_count)
        ]
        for worker in self._workers:
            worker.start()

    def _work(self) -> None:
        while True:
            task = self._tasks.get()
            if task is _STOP:
                return
            try:
                task()
            except Exception:
                _log.exception("queued task failed")

    @contextmanager
    def _pushing(self) -> Iterator[None]:
        with self._state:
            self._pending += 1
            stopped = self._stopped
        try:
            if stopped:
                raise QueueStoppedError("push failed: queue is stopped")
            yield
        finally:
            with self._state:
                self._pending -= 1
                if self._pending == 0:
                    self._state.notify_all()

    def _put_until(self, task: Task, cancel: Optional[threading.Event]) -> bool:
        while True:
            try:
                self._tasks.put(task, timeout=_POLL)
                return True
            except queue.Full:
                if cancel is not None and cancel.is_set():
                    return False

    def push(self, task: Task) -> None:
        """Queue ``task``, waiting up to three seconds for room."""
        with self._pushing():
            try:
                self._tasks.put(task, timeout=PUSH_WAIT)
            except queue.Full:
                raise QueueFullError("push failed: queue is full") from None

    def push_until(self, task: Task, cancel: Optional[threading.Event]) -> None:
        """Queue ``task``, waiting for room until ``cancel`` is set."""
        with self._pushing():
            if not self._put_until(task, cancel):
                raise PushCancelledError()

    def batch_push(self, tasks: Sequence[Task], cancel: Optional[threading.Event]) -> int:
        """Queue all ``tasks`` in order; return how many were queued."""
        with self._pushing():
            for pushed, task in enumerate(tasks):
                if not self._put_until(task, cancel):
                    raise PushCancelledError(pushed=pushed)
            return len(tasks)

    def push_nowait(self, task: Task) -> None:
        """Queue ``task`` only if there is room right now."""
        with self._pushing():
            try:
                self._tasks.put_nowait(task)
            except queue.Full:
                raise QueueFullError("push failed: queue is full") from None

    def stop(self) -> None:
        """Refuse new tasks, run every queued one, and wait for the workers to end."""
        with self._state:
            if self._stopped:
                return
            self._stopped = True
            self._state.wait_for(lambda: self._pending == 0)
        for _ in self._workers:
            self._tasks.put(_STOP)
        for worker in self._workers:
            worker.join()