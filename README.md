# imkit

A small toolkit of building blocks for back-end services, using only the
Python standard library (Python 3.10 or later).

## Modules

- `imkit.rotatelogs`: `RotateLogs`, a writable log file whose name comes from
  a strftime pattern. It moves to a new file when the rotation period passes,
  when the current file reaches `rotation_size` bytes, or when `rotate()` is
  called; clashing names get `.1`, `.2`, ... suffixes. Old files are removed
  by age (`max_age`, seven days by default) or by count (`rotation_count`),
  not both. `link_name` keeps a symlink pointing at the current file, and
  `handler` is called with a `FileRotatedEvent` whenever a new file is
  opened. `write()` takes bytes or text. It is a context manager. Clocks:
  `local_clock`, `utc_clock`, `location_clock(tz)`. Errors raise
  `RotateLogsError`.
- `imkit.rotate_fileutil`: `generate_fn(pattern, clock, rotation_time)`, which
  turns a pattern and the clock's time, truncated to the rotation period,
  into a file name, and `create_file(filename)`, which creates parent
  directories and opens the file for appending.
- `imkit.zlog`: a levelled logger (`Logger`, `Level`) that writes console or
  JSON lines with key/value pairs, to standard output and/or rotating files.
  Values found in an `mcontext.Context` (operation ID, user ID, platform,
  connection ID, trigger ID, remote address) are added to each line.
  Package-level helpers: `init_logger_from_config`, `init_console_logger`,
  `zdebug`, `zinfo`, `zwarn`, `zerror`, `zpanic`, `zadaptive`, `cinfo`,
  `sdk_log`, `flush`, and the `ZkLogger` adapter with `printf`.
- `imkit.logcolor`: ANSI `Color` codes with `Color.add`, `level_color`,
  `align_message` (pads a message to 50 characters), and `Slice`, a list
  whose `format()` keeps at most its first 30 items.
- `imkit.mcontext`: an immutable `Context` with `with_value` and `value`,
  plus setters and getters for the operation ID, user ID, platform,
  connection ID, trigger ID and remote address. `get_must_ctx_info` and
  `get_ctx_infos` raise `MissingContextError` when required values are
  missing.
- `imkit.interceptors`: `intercept_chain(*interceptors)` combines
  interceptors of the form `interceptor(ctx, req, info, handler)` into one;
  the first given is the outermost.
- `imkit.bounded`: `BoundedQueue`, a thread-safe FIFO queue with a fixed
  capacity, raising `QueueFullError` and `QueueEmptyError`.
- `imkit.taskqueue`: `QueueManager`, which keeps a processing and a waiting
  queue per key and a shared global queue. `insert` picks the key with the
  fewest processing items (`Strategy.LEAST`, `least_task`); `insert_by_key`
  fills processing, then waiting; `delete` refills a processing queue from
  the waiting queue or the global queue. `after_process_push` callbacks run
  when data enters a processing queue.
- `imkit.memqueue`: `MemoryQueue`, a pool of worker threads running queued
  callables. `push` waits up to three seconds for room, `push_until` and
  `batch_push` wait until a `threading.Event` is set, `push_nowait` does not
  wait. `stop()` refuses new tasks, runs the queued ones and joins the
  workers.
- `imkit.simmq`: `MemoryMQ`, a bounded in-memory queue that is both
  producer and consumer (`new_memory`), and shared queues per topic
  (`get_topic_producer`, `get_topic_consumer`). Closing a topic's queue
  removes it from the registry; messages already queued are still
  delivered.

## Installation

```
pip install .
```

## Examples

Rotating log files:

```python
from datetime import timedelta
from imkit.rotatelogs import RotateLogs

with RotateLogs("logs/app.%Y-%m-%d", rotation_time=timedelta(days=1),
                rotation_count=7) as out:
    out.write(b"service started\n")
    print(out.current_filename())
```

Structured logging with request context:

```python
from imkit import mcontext, zlog

ctx = mcontext.new_ctx("op-1")
zlog.init_console_logger("gateway", zlog.Level.DEBUG, False, "1.0.0")
zlog.cinfo(ctx, "user joined", "userID", "u1")
```

On import, `imkit.zlog` sets up a default package logger at debug level
that writes to standard output and to daily files under `./logs/`. Call
`init_logger_from_config` to replace it before using `zdebug`, `zinfo` and
the other helpers.

A worker pool:

```python
from imkit.memqueue import MemoryQueue

queue = MemoryQueue(worker_count=4, buffer_size=128)
queue.push(lambda: print("work"))
queue.stop()
```

An in-memory topic:

```python
from imkit import simmq

producer = simmq.get_topic_producer("events")
consumer = simmq.get_topic_consumer("events")
producer.send_message(None, "key", b"value")
consumer.subscribe(lambda ctx, key, value: print(key, value))
producer.close()
```

## What it does not do

- `simmq` queues live inside one process; imkit does not connect to any
  external message broker.
- `intercept_chain` only composes plain callables; imkit has no RPC or HTTP
  server or client of its own.
- There is no command-line program.

## Running the tests

```
pip install .[test]
pytest
```