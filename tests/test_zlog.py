import io
import json
import os
import re

import pytest

from imkit import mcontext, zlog
from imkit.logcolor import Color, Slice
from imkit.mcontext import Context
from imkit.zlog import Level, Logger, ZkLogger


class CodedError(Exception):
    def __init__(self, code):
        super().__init__(f"code {code}")
        self.code = code


@pytest.fixture(autouse=True)
def _in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


def _records(text):
    return [json.loads(line) for line in text.splitlines() if line.strip()]


def test_sdk_log_writes_native_caller(tmp_path, capsys):
    zlog.init_logger_from_config(
        "testLogger", "testModule", "TestSDK", "testPlatform", 5, True, False,
        str(tmp_path), 5, 24, "1.0.0", False,
    )
    zlog.zdebug(Context(), "hello")
    for level in (5, 4, 3, 2):
        zlog.sdk_log(Context(), level, "cmd/abc.go", 666, "This is a test message", None, ["key", "value"])
    zlog.zwarn(Context(), "msg", None)
    out = capsys.readouterr().out
    lines = [line for line in out.splitlines() if "This is a test message" in line]
    assert len(lines) == 3
    assert all('"native_caller": "[cmd/abc.go:666]"' in line for line in lines)
    assert "[TestSDK/testPlatform]" in out
    assert Color.BLUE.add("INFO") in lines[0]
    assert Color.YELLOW.add("WARN") in lines[1]
    assert Color.RED.add("ERROR") in lines[2]
    files = list(tmp_path.glob("testLogger.*"))
    assert len(files) == 1
    assert "hello" in files[0].read_text()


def test_disable_async_writes_every_entry(tmp_path, monkeypatch):
    monkeypatch.setattr(zlog, "DISABLE_ASYNC", True)
    zlog.init_logger_from_config(
        "testLogger", "testModule", "TestSDK", "linux", 5, False, False,
        str(tmp_path), 5, 24, "1.0.0", False,
    )
    for index in range(1000):
        zlog.zdebug(Context(), "test debug message", "key", "value", "log_index", index)
    zlog.flush()
    files = list(tmp_path.glob("testLogger.*"))
    assert len(files) == 1
    lines = [line for line in files[0].read_text().splitlines() if "log_index" in line]
    assert len(lines) == 1000


def test_buffered_file_output_appears_after_flush(tmp_path, monkeypatch):
    monkeypatch.setattr(zlog, "DISABLE_ASYNC", False)
    zlog.init_logger_from_config(
        "buffered", "mod", "", "", Level.DEBUG, False, False, str(tmp_path), 1, 24, "v", False,
    )
    zlog.zinfo(Context(), "buffered line")
    assert list(tmp_path.glob("buffered.*")) == []
    zlog.flush()
    files = list(tmp_path.glob("buffered.*"))
    assert len(files) == 1
    assert "buffered line" in files[0].read_text()


def test_context_values_are_prepended_in_order():
    buf = io.StringIO()
    logger = Logger.console("mod", Level.DEBUG, True, "2.0", buf)
    ctx = mcontext.new_ctx("op-1")
    ctx = mcontext.set_op_user_id(ctx, "u-1")
    ctx = mcontext.set_conn_id(ctx, "c-1")
    ctx = mcontext.with_op_user_platform(ctx, "ios")
    logger.info(ctx, "hello", "k", "v")
    (rec,) = _records(buf.getvalue())
    assert list(rec) == [
        "level", "time", "caller", "msg", "PID", "version",
        "platform", "connID", "operationID", "opUserID", "k",
    ]
    assert rec["operationID"] == "op-1"
    assert rec["msg"] == "hello"
    assert rec["PID"] == os.getpid()
    assert rec["version"] == "2.0"
    assert rec["caller"].startswith("tests/test_zlog.py:")
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}", rec["time"])


def test_level_filtering_and_error_field():
    buf = io.StringIO()
    logger = Logger.console("mod", Level.WARN, True, "", buf)
    logger.debug(Context(), "d")
    logger.info(Context(), "i")
    logger.warn(Context(), "w", ValueError("boom"))
    logger.error(Context(), "e", None)
    recs = _records(buf.getvalue())
    assert [r["level"] for r in recs] == ["WARN", "ERROR"]
    assert recs[0]["error"] == "boom"
    assert "error" not in recs[1]


def test_panic_logs_then_raises():
    buf = io.StringIO()
    logger = Logger.console("mod", Level.DEBUG, True, "", buf)
    with pytest.raises(RuntimeError, match="bad"):
        logger.panic(Context(), "bad", ValueError("x"))
    (rec,) = _records(buf.getvalue())
    assert rec["level"] == "PANIC"
    assert rec["error"] == "x"


def test_panic_is_silent_at_fatal_level():
    buf = io.StringIO()
    logger = Logger.console("mod", Level.FATAL, True, "", buf)
    logger.panic(Context(), "bad", None)
    assert buf.getvalue() == ""


def test_with_name_and_with_values_return_new_loggers():
    buf = io.StringIO()
    base = Logger.console("mod", Level.DEBUG, True, "", buf)
    derived = base.with_name("a").with_name("b").with_values("svc", "x")
    derived.info(Context(), "one")
    base.info(Context(), "two")
    first, second = _records(buf.getvalue())
    assert first["logger"] == "a.b"
    assert first["svc"] == "x"
    assert "logger" not in second
    assert "svc" not in second


def test_odd_key_values_are_kept_as_ignored():
    buf = io.StringIO()
    Logger.console("mod", Level.DEBUG, True, "", buf).info(Context(), "m", "k", 1, "lonely")
    (rec,) = _records(buf.getvalue())
    assert rec["k"] == 1
    assert rec["ignored"] == "lonely"


def test_console_text_layout():
    buf = io.StringIO()
    Logger.console("testModule", Level.DEBUG, False, "1.0.0", buf).info(Context(), "hello", "k", 1)
    line = buf.getvalue()
    parts = line.rstrip("\n").split("\t")
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}", parts[0])
    assert parts[1] == Color.BLUE.add("INFO")
    assert parts[2] == Color.BLUE.add(f"[PID:{os.getpid()}]".ljust(15))
    assert parts[3] == Color.BLUE.add("testModule".ljust(25))
    assert parts[4] == "[1.0.0]".ljust(30)
    assert parts[-2] == "hello"
    assert line.endswith('\t{"k": 1}\n')


def test_simplify_truncates_slices_and_aligns_message(capsys):
    logger = Logger("p", "mod", "", "", Level.DEBUG, True, True, "", 1, 24, "v", True)
    logger.info(Context(), "hi", "ids", Slice(range(40)), "name", "plain")
    (rec,) = _records(capsys.readouterr().out)
    assert rec["ids"] == list(range(30))
    assert rec["name"] == "plain"
    assert rec["msg"] == "hi".ljust(50)


def test_package_functions_report_caller(capsys):
    zlog.init_logger_from_config("p", "mod", "", "", Level.DEBUG, True, True, "", 1, 24, "v", False)
    zlog.zinfo(Context(), "where")
    (rec,) = _records(capsys.readouterr().out)
    assert rec["caller"].startswith("tests/test_zlog.py:")
    assert rec["logger"] == "mod"


def test_zadaptive_picks_level_from_error_code(capsys, monkeypatch):
    zlog.init_logger_from_config("p", "mod", "", "", Level.DEBUG, True, True, "", 1, 24, "v", False)
    zlog.zadaptive(Context(), "internal", CodedError(500))
    zlog.zadaptive(Context(), "plain", Exception("x"))
    try:
        raise ValueError("outer") from CodedError(500)
    except ValueError as exc:
        zlog.zadaptive(Context(), "chained", exc)
    monkeypatch.setitem(zlog.ADAPTIVE_ERROR_CODE_LEVEL, 7, Level.INFO)
    zlog.zadaptive(Context(), "seven", CodedError(7))
    recs = _records(capsys.readouterr().out)
    assert [r["level"] for r in recs] == ["ERROR", "WARN", "ERROR", "INFO"]
    assert recs[3]["error"] == "code 7"


def test_cinfo_uses_console_logger(capsys):
    zlog.init_console_logger("mod", Level.DEBUG, True, "1.0")
    zlog.cinfo(Context(), "to console", "a", 1)
    (rec,) = _records(capsys.readouterr().out)
    assert rec["logger"] == "mod"
    assert rec["a"] == 1
    assert rec["msg"] == "to console"


def test_zk_logger_printf(capsys):
    zlog.init_logger_from_config("p", "mod", "", "", Level.DEBUG, True, False, "", 1, 24, "v", False)
    ZkLogger().printf("connected %d", 3)
    out = capsys.readouterr().out
    assert "zookeeper output" in out
    assert '"msg": "connected 3"' in out


def test_info_level_config_drops_debug(capsys):
    zlog.init_logger_from_config("p", "mod", "", "", Level.INFO, True, True, "", 1, 24, "v", False)
    zlog.zdebug(Context(), "hidden")
    zlog.zinfo(Context(), "shown")
    recs = _records(capsys.readouterr().out)
    assert [r["msg"].strip() for r in recs] == ["shown"]