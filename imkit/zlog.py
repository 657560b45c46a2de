"""Structured logging with context values, level colours and rotating log files."""

from __future__ import annotations

import copy
import enum
import json
import os
import sys
import threading
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, TextIO, Tuple

from imkit import mcontext
from imkit.logcolor import align_message, level_color
from imkit.rotatelogs import RotateLogs


class Level(enum.IntEnum):
    """Configured log levels; a larger value lets more through."""

    FATAL = 0
    PANIC = 1
    ERROR = 2
    WARN = 3
    INFO = 4
    DEBUG = 5
    DEBUG_WITH_SQL = 6


class _Severity(enum.IntEnum):
    DEBUG = -1
    INFO = 0
    WARN = 1
    ERROR = 2
    DPANIC = 3
    PANIC = 4
    FATAL = 5


_LEVEL_SEVERITY = {
    Level.DEBUG_WITH_SQL: _Severity.DEBUG,
    Level.DEBUG: _Severity.DEBUG,
    Level.INFO: _Severity.INFO,
    Level.WARN: _Severity.WARN,
    Level.ERROR: _Severity.ERROR,
    Level.PANIC: _Severity.PANIC,
    Level.FATAL: _Severity.FATAL,
}

SERVER_INTERNAL_ERROR = 500
ADAPTIVE_DEFAULT_LEVEL = Level.WARN
ADAPTIVE_ERROR_CODE_LEVEL: Dict[int, Level] = {SERVER_INTERNAL_ERROR: Level.ERROR}
DISABLE_ASYNC = False

CALL_DEPTH = 1
ROTATE_COUNT = 1
HOURS_PER_DAY = 24
LOG_PATH = "./logs/"
VERSION = "undefined version"
IS_SIMPLIFY = False

_BUFFER_SIZE = 1024 * 512
_FLUSH_INTERVAL = 2.0
_WRITE_LOCK = threading.Lock()


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


def _pairs(kvs: Sequence[Any]) -> List[Tuple[str, Any]]:
    pairs: List[Tuple[str, Any]] = []
    items = iter(kvs)
    for key in items:
        try:
            value = next(items)
        except StopIteration:
            pairs.append(("ignored", key))
            break
        pairs.append((key if isinstance(key, str) else str(key), value))
    return pairs


def _append_error(kvs: Sequence[Any], err: Optional[BaseException]) -> List[Any]:
    kvs = list(kvs)
    if err is not None:
        kvs += ["error", str(err)]
    return kvs


def _pad(s: str, width: int) -> str:
    return s.ljust(width)


class _StreamSink:
    """Writes to a text stream; ``None`` means whatever ``sys.stdout`` is at write time."""

    def __init__(self, stream: Optional[TextIO]) -> None:
        self._stream = stream

    def _target(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def write(self, line: str) -> None:
        self._target().write(line)

    def flush(self) -> None:
        self._target().flush()


class _FileSink:
    def __init__(self, writer: RotateLogs) -> None:
        self._writer = writer

    def write(self, line: str) -> None:
        self._writer.write(line)

    def flush(self) -> None:
        pass


class _BufferedSink:
    """Collects lines and hands them on when full, on flush, or every two seconds."""

    def __init__(self, target: Any, size: int = _BUFFER_SIZE, interval: float = _FLUSH_INTERVAL) -> None:
        self._target = target
        self._size = size
        self._interval = interval
        self._buffer: List[str] = []
        self._buffered = 0
        self._lock = threading.Lock()
        self._ticker: Optional[threading.Thread] = None

    def write(self, line: str) -> None:
        with self._lock:
            self._buffer.append(line)
            self._buffered += len(line)
            if self._buffered >= self._size:
                self._flush_locked()
            if self._ticker is None:
                self._ticker = threading.Thread(target=self._tick, daemon=True)
                self._ticker.start()

    def _tick(self) -> None:
        while True:
            time.sleep(self._interval)
            try:
                self.flush()
            except OSError:
                pass

    def _flush_locked(self) -> None:
        if self._buffer:
            data = "".join(self._buffer)
            self._buffer.clear()
            self._buffered = 0
            self._target.write(data)
        self._target.flush()

    def flush(self) -> None:
        with self._lock:
            self._flush_locked()


class Logger:
    """A levelled logger writing console or JSON lines to stdout and/or rotating files."""

    def __init__(
        self,
        logger_prefix_name: str,
        module_name: str,
        sdk_type: str,
        platform_name: str,
        log_level: int,
        is_stdout: bool,
        is_json: bool,
        log_location: str,
        rotate_count: int,
        rotation_time: int,
        module_version: str,
        is_simplify: bool,
    ) -> None:
        self._setup(module_name, log_level, is_json, module_version)
        self._prefix = logger_prefix_name
        self._rotation_hours = rotation_time
        self._sdk_type = sdk_type
        self._platform_name = platform_name
        self._is_simplify = is_simplify
        self._align = True
        sinks: List[Any] = []
        if log_location:
            writer: Any = _FileSink(self._file_writer(log_location, rotate_count))
            if not is_stdout and not DISABLE_ASYNC:
                writer = _BufferedSink(writer)
            sinks.append(writer)
        if is_stdout:
            sinks.append(_StreamSink(None))
        self._sinks = sinks

    @classmethod
    def console(
        cls,
        module_name: str,
        log_level: int,
        is_json: bool,
        module_version: str,
        output: Optional[TextIO] = None,
    ) -> "Logger":
        """Build a logger writing only to ``output`` (standard output when None)."""
        logger = cls.__new__(cls)
        logger._setup(module_name, log_level, is_json, module_version)
        logger._prefix = ""
        logger._rotation_hours = 0
        logger._sdk_type = ""
        logger._platform_name = ""
        logger._is_simplify = False
        logger._align = False
        logger._sinks = [_StreamSink(output)]
        return logger

    def _setup(self, module_name: str, log_level: int, is_json: bool, module_version: str) -> None:
        self._severity = _LEVEL_SEVERITY.get(log_level, _Severity.INFO)
        self._module_name = module_name
        self._module_version = module_version
        self._is_json = is_json
        self._fields: List[Tuple[str, Any]] = []
        self._name = ""
        self._call_depth = 0

    def _file_writer(self, log_location: str, rotate_count: int) -> RotateLogs:
        base = log_location + os.sep + self._prefix
        if self._rotation_hours % HOURS_PER_DAY == 0:
            path = base + ".%Y-%m-%d"
        else:
            path = base + ".%Y-%m-%d_%H"
        return RotateLogs(path, rotation_count=rotate_count, rotation_time=self._rotation_hours * 3600)

    def debug(self, ctx: Any, msg: str, *args: Any) -> None:
        self._log(_Severity.DEBUG, ctx, msg, list(args))

    def info(self, ctx: Any, msg: str, *args: Any) -> None:
        self._log(_Severity.INFO, ctx, msg, list(args))

    def warn(self, ctx: Any, msg: str, err: Optional[BaseException], *args: Any) -> None:
        self._log(_Severity.WARN, ctx, msg, _append_error(args, err))

    def error(self, ctx: Any, msg: str, err: Optional[BaseException], *args: Any) -> None:
        self._log(_Severity.ERROR, ctx, msg, _append_error(args, err))

    def panic(self, ctx: Any, msg: str, err: Optional[BaseException], *args: Any) -> None:
        """Log at panic level, then raise RuntimeError."""
        if self._log(_Severity.PANIC, ctx, msg, _append_error(args, err)):
            raise RuntimeError(msg)

    def with_values(self, *args: Any) -> "Logger":
        dup = copy.copy(self)
        dup._fields = self._fields + _pairs(args)
        return dup

    def with_name(self, name: str) -> "Logger":
        dup = copy.copy(self)
        dup._name = f"{self._name}.{name}" if self._name else name
        return dup

    def with_call_depth(self, depth: int) -> "Logger":
        dup = copy.copy(self)
        dup._call_depth = self._call_depth + depth
        return dup

    def flush(self) -> None:
        for sink in self._sinks:
            try:
                sink.flush()
            except (OSError, ValueError) as exc:
                print("failed to flush logger", exc, file=sys.stderr)

    def _log(self, severity: _Severity, ctx: Any, msg: str, kvs: List[Any]) -> bool:
        if self._severity > severity:
            return False
        caller = self._caller(3 + self._call_depth)
        kvs = self._kv_append(ctx, kvs)
        line = self._render(severity, msg, self._fields + _pairs(kvs), caller)
        with _WRITE_LOCK:
            for sink in self._sinks:
                sink.write(line)
        return True

    @staticmethod
    def _caller(depth: int) -> str:
        try:
            frame = sys._getframe(depth)
        except ValueError:
            return "undefined"
        directory, base = os.path.split(frame.f_code.co_filename)
        parent = os.path.basename(directory)
        path = f"{parent}/{base}" if parent else base
        return f"{path}:{frame.f_lineno}"

    def _kv_append(self, ctx: Any, kvs: List[Any]) -> List[Any]:
        if ctx is None:
            return kvs
        if isinstance(ctx, mcontext.Context):
            values = [
                (mcontext.REMOTE_ADDR, mcontext.get_remote_addr(ctx)),
                (mcontext.OP_USER_PLATFORM, mcontext.get_op_user_platform(ctx)),
                (mcontext.TRIGGER_ID, mcontext.get_trigger_id(ctx)),
                (mcontext.CONN_ID, mcontext.get_conn_id(ctx)),
                (mcontext.OPERATION_ID, mcontext.get_operation_id(ctx)),
                (mcontext.OP_USER_ID, mcontext.get_op_user_id(ctx)),
            ]
        else:
            values = []

        if self._is_simplify:
            if len(kvs) % 2 == 0:
                for index in range(1, len(kvs), 2):
                    value = kvs[index]
                    formatter = getattr(value, "format", None)
                    if callable(formatter) and not isinstance(value, (str, bytes)):
                        kvs[index] = formatter()
            else:
                zerror(ctx, "keysAndValues length is not even", ValueError("server internal error"))

        prefix: List[Any] = []
        for key, value in values:
            if value:
                prefix += [key, value]
        return prefix + kvs

    def _level_parts(self, severity: _Severity) -> List[str]:
        color = level_color(severity)
        paint = color.add if color is not None else (lambda s: s)
        parts = [paint(severity.name), paint(_pad(f"[PID:{os.getpid()}]", 15))]
        if self._module_name:
            parts.append(paint(_pad(self._module_name, 25)))
        if self._module_version:
            parts.append(_pad(f"[{self._module_version}]", 30))
        return parts

    def _caller_parts(self, caller: str) -> List[str]:
        parts = []
        if self._sdk_type and self._platform_name:
            parts.append(_pad(f"[{self._sdk_type}/{self._platform_name}]", 50))
        parts.append(_pad(f"[{caller}]", 50))
        return parts

    def _render(self, severity: _Severity, msg: str, fields: List[Tuple[str, Any]], caller: str) -> str:
        if self._align:
            msg = align_message(msg)
        now = datetime.now()
        stamp = now.strftime("%Y-%m-%d %H:%M:%S.") + f"{now.microsecond // 1000:03d}"
        if self._is_json:
            parts: List[Tuple[str, Any]] = [("level", severity.name), ("time", stamp)]
            if self._name:
                parts.append(("logger", self._name))
            parts += [("caller", caller), ("msg", msg), ("PID", os.getpid()), ("version", self._module_version)]
            parts += fields
            return "{" + ",".join(f"{_dumps(k)}:{_dumps(v)}" for k, v in parts) + "}\n"
        items = [stamp, *self._level_parts(severity)]
        if self._name:
            items.append(self._name)
        items += self._caller_parts(caller)
        items.append(msg)
        line = "\t".join(items)
        if fields:
            line += "\t{" + ", ".join(f"{_dumps(k)}: {_dumps(v)}" for k, v in fields) + "}"
        return line + "\n"


_pkg_logger: Optional[Logger] = None
_os_stdout: Optional[Logger] = None


def init_logger_from_config(
    logger_prefix_name: str,
    module_name: str,
    sdk_type: str,
    platform_name: str,
    log_level: int,
    is_stdout: bool,
    is_json: bool,
    log_location: str,
    rotate_count: int,
    rotation_time: int,
    module_version: str,
    is_simplify: bool,
) -> None:
    """Replace the package logger used by the z* functions."""
    global _pkg_logger
    logger = Logger(
        logger_prefix_name, module_name, sdk_type, platform_name, log_level, is_stdout, is_json,
        log_location, rotate_count, rotation_time, module_version, is_simplify,
    ).with_call_depth(CALL_DEPTH)
    if is_json:
        logger = logger.with_name(module_name)
    _pkg_logger = logger


def init_console_logger(module_name: str, log_level: int, is_json: bool, module_version: str) -> None:
    """Set up the standard-output logger used by cinfo."""
    global _os_stdout
    logger = Logger.console(module_name, log_level, is_json, module_version, None).with_call_depth(CALL_DEPTH)
    if is_json:
        logger = logger.with_name(module_name)
    _os_stdout = logger


def zdebug(ctx: Any, msg: str, *args: Any) -> None:
    _pkg_logger.debug(ctx, msg, *args)


def zinfo(ctx: Any, msg: str, *args: Any) -> None:
    _pkg_logger.info(ctx, msg, *args)


def zwarn(ctx: Any, msg: str, err: Optional[BaseException], *args: Any) -> None:
    _pkg_logger.warn(ctx, msg, err, *args)


def zerror(ctx: Any, msg: str, err: Optional[BaseException], *args: Any) -> None:
    _pkg_logger.error(ctx, msg, err, *args)


def zpanic(ctx: Any, msg: str, err: Optional[BaseException], *args: Any) -> None:
    _pkg_logger.error(ctx, msg, err, *args)


def _error_code(err: Optional[BaseException]) -> Optional[int]:
    seen = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        code = getattr(err, "code", None)
        if isinstance(code, int) and not isinstance(code, bool):
            return code
        err = err.__cause__
    return None


def zadaptive(ctx: Any, msg: str, err: Optional[BaseException], *args: Any) -> None:
    """Log at the level configured for the error's code, or the default level."""
    code = _error_code(err)
    level = ADAPTIVE_ERROR_CODE_LEVEL.get(code, ADAPTIVE_DEFAULT_LEVEL) if code is not None else ADAPTIVE_DEFAULT_LEVEL
    if level == Level.DEBUG:
        _pkg_logger.debug(ctx, msg, *_append_error(args, err))
    elif level == Level.INFO:
        _pkg_logger.info(ctx, msg, *_append_error(args, err))
    elif level == Level.WARN:
        _pkg_logger.warn(ctx, msg, err, *args)
    elif level in (Level.ERROR, Level.PANIC):
        _pkg_logger.error(ctx, msg, err, *args)


def cinfo(ctx: Any, msg: str, *args: Any) -> None:
    if _os_stdout is None:
        return
    _os_stdout.info(ctx, msg, *args)


def flush() -> None:
    if _pkg_logger is None:
        return
    _pkg_logger.flush()


def sdk_log(
    ctx: Any,
    log_level: int,
    file: str,
    line: int,
    msg: str,
    err: Optional[BaseException],
    keys_and_values: Iterable[Any],
) -> None:
    """Log a message that carries the caller's own file and line."""
    kv = ["native_caller", f"[{file}:{line}]", *keys_and_values]
    if log_level == Level.DEBUG_WITH_SQL:
        zdebug(ctx, msg, *kv)
    elif log_level == Level.INFO:
        zinfo(ctx, msg, *kv)
    elif log_level == Level.WARN:
        zwarn(ctx, msg, err, *kv)
    elif log_level == Level.ERROR:
        zerror(ctx, msg, err, *kv)


class ZkLogger:
    """Routes printf-style output to the package logger at info level."""

    def printf(self, format: str, *args: Any) -> None:
        text = format % args if args else format
        zinfo(mcontext.Context(), "zookeeper output", "msg", text)


init_logger_from_config(
    "DefaultLogger",
    "DefaultLoggerModule",
    "",
    "",
    Level.DEBUG,
    True,
    False,
    LOG_PATH,
    ROTATE_COUNT,
    HOURS_PER_DAY,
    VERSION,
    IS_SIMPLIFY,
)