"""A simple in-memory message queue, with a registry of queues by topic."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Optional, Protocol, Tuple, runtime_checkable

DEFAULT_MQ_SIZE = 1024 * 16

Handler = Callable[[Any, str, bytes], Any]


@runtime_checkable
class Producer(Protocol):
    def send_message(self, ctx: Any, key: str, value: bytes, timeout: Optional[float] = None) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class Consumer(Protocol):
    def subscribe(self, handler: Handler, timeout: Optional[float] = None) -> None: ...

    def close(self) -> None: ...


class MQClosedError(Exception):
    """Raised when using a queue that has been closed."""


@dataclass(frozen=True)
class _Message:
    ctx: Any
    key: str
    value: bytes


class MemoryMQ:
    """A bounded in-memory queue that is both producer and consumer.

    Messages already queued when it is closed are still delivered.
    """

    def __init__(self, size: int, on_close: Optional[Callable[[], None]] = None) -> None:
        if size < 1:
            raise ValueError("size must be greater than 0")
        self._size = size
        self._on_close = on_close
        self._items: Deque[_Message] = deque()
        self._closed = False
        self._cond = threading.Condition()

    def subscribe(self, handler: Handler, timeout: Optional[float] = None) -> None:
        """Take one message and pass it to ``handler(ctx, key, value)``."""
        with self._cond:
            self._cond.wait_for(lambda: self._items or self._closed, timeout)
            if self._items:
                msg = self._items.popleft()
                self._cond.notify_all()
            elif self._closed:
                raise MQClosedError("memory mq closed")
            else:
                raise TimeoutError("no message arrived in time")
        handler(msg.ctx, msg.key, msg.value)

    def send_message(self, ctx: Any, key: str, value: bytes, timeout: Optional[float] = None) -> None:
        """Queue a message, waiting for room up to ``timeout`` seconds."""
        with self._cond:
            if self._closed:
                raise MQClosedError("memory mq closed")
            self._cond.wait_for(lambda: self._closed or len(self._items) < self._size, timeout)
            if self._closed:
                raise MQClosedError("memory mq closed")
            if len(self._items) >= self._size:
                raise TimeoutError("queue stayed full")
            self._items.append(_Message(ctx, key, value))
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
        if self._on_close is not None:
            self._on_close()


def new_memory(size: int) -> Tuple[Producer, Consumer]:
    """Create a queue and return it as a (producer, consumer) pair."""
    mq = MemoryMQ(size)
    return mq, mq


_topics: Dict[str, MemoryMQ] = {}
_topics_lock = threading.Lock()


def _topic_memory(topic: str) -> MemoryMQ:
    with _topics_lock:
        mq = _topics.get(topic)
        if mq is None:
            def forget() -> None:
                with _topics_lock:
                    if _topics.get(topic) is mq:
                        del _topics[topic]

            mq = MemoryMQ(DEFAULT_MQ_SIZE, forget)
            _topics[topic] = mq
        return mq


def get_topic_producer(topic: str) -> Producer:
    return _topic_memory(topic)


def get_topic_consumer(topic: str) -> Consumer:
    return _topic_memory(topic)