import threading

import pytest

from imkit.simmq import (
    Consumer,
    MemoryMQ,
    MQClosedError,
    Producer,
    get_topic_consumer,
    get_topic_producer,
    new_memory,
)


def test_topic_producers_and_consumer():
    topic = "test"
    received = []
    done = threading.Event()

    def handler(ctx, key, value):
        received.append((key, value))

    def consume():
        consumer = get_topic_consumer(topic)
        try:
            while True:
                consumer.subscribe(handler)
        except MQClosedError:
            done.set()

    consumer_thread = threading.Thread(target=consume)
    consumer_thread.start()

    lock = threading.Lock()
    counter = [0]

    def produce(key):
        producer = get_topic_producer(topic)
        for _ in range(10):
            with lock:
                counter[0] += 1
                value = f"value_{counter[0]}"
            producer.send_message(None, key, value.encode())

    producers = [threading.Thread(target=produce, args=(f"go_{i + 1}",)) for i in range(4)]
    for p in producers:
        p.start()
    for p in producers:
        p.join()
    shared = get_topic_producer(topic)
    assert get_topic_consumer(topic) is shared
    shared.close()
    consumer_thread.join(5)

    assert done.is_set()
    assert len(received) == 40
    assert {key for key, _ in received} == {"go_1", "go_2", "go_3", "go_4"}
    assert sorted(v.decode() for _, v in received) == sorted(f"value_{n}" for n in range(1, 41))

    fresh = get_topic_producer(topic)
    assert fresh is not shared
    fresh.close()


def test_same_topic_shares_queue_until_closed():
    first = get_topic_producer("shared-topic")
    assert get_topic_consumer("shared-topic") is first
    first.close()
    second = get_topic_producer("shared-topic")
    assert second is not first
    second.close()


def test_new_memory_pair_is_one_queue():
    producer, consumer = new_memory(4)
    assert isinstance(producer, Producer)
    assert isinstance(consumer, Consumer)
    ctx = {"operationID": "op"}
    producer.send_message(ctx, "k", b"v")
    got = []
    consumer.subscribe(lambda c, k, v: got.append((c, k, v)))
    assert got == [(ctx, "k", b"v")]


def test_buffered_messages_survive_close():
    mq = MemoryMQ(4)
    mq.send_message(None, "a", b"1")
    mq.send_message(None, "b", b"2")
    mq.close()
    with pytest.raises(MQClosedError):
        mq.send_message(None, "c", b"3")
    got = []
    mq.subscribe(lambda c, k, v: got.append(k))
    mq.subscribe(lambda c, k, v: got.append(k))
    assert got == ["a", "b"]
    with pytest.raises(MQClosedError):
        mq.subscribe(lambda c, k, v: None)


def test_subscribe_timeout():
    mq = MemoryMQ(1)
    with pytest.raises(TimeoutError):
        mq.subscribe(lambda c, k, v: None, timeout=0.05)


def test_send_timeout_when_full():
    mq = MemoryMQ(1)
    mq.send_message(None, "a", b"1")
    with pytest.raises(TimeoutError):
        mq.send_message(None, "b", b"2", timeout=0.05)


def test_handler_error_propagates():
    mq = MemoryMQ(1)
    mq.send_message(None, "a", b"1")

    def failing(ctx, key, value):
        raise RuntimeError("handler failed")

    with pytest.raises(RuntimeError, match="handler failed"):
        mq.subscribe(failing)


def test_close_runs_callback_once():
    calls = []
    mq = MemoryMQ(1, lambda: calls.append(1))
    mq.close()
    mq.close()
    assert calls == [1]


def test_close_wakes_blocked_sender():
    mq = MemoryMQ(1)
    mq.send_message(None, "a", b"1")
    errors = []

    def send():
        try:
            mq.send_message(None, "b", b"2")
        except MQClosedError as exc:
            errors.append(exc)

    sender = threading.Thread(target=send)
    sender.start()
    mq.close()
    sender.join(2)
    assert not sender.is_alive()
    assert len(errors) == 1
    with pytest.raises(MQClosedError):
        mq.send_message(None, "c", b"3")
    got = []
    mq.subscribe(lambda c, k, v: got.append((k, v)))
    assert got == [("a", b"1")]


def test_invalid_size():
    with pytest.raises(ValueError):
        MemoryMQ(0)