import io
import json

import pytest

from pbench.logger import FatalError, Level, Logger, get_logger, set_global_logger
from pbench.marshal import Marshaller


@pytest.fixture
def buffer():
    return io.StringIO()


def test_log_lines(buffer):
    logger = Logger(buffer)
    logger.log(Level.NO_LEVEL, "hello %d %s" % (12, "world"), key="value", yes=True, num=24)
    logger.info("another line")
    assert buffer.getvalue() == (
        '{"key":"value","yes":true,"num":24,"message":"hello 12 world"}\n'
        '{"level":"info","message":"another line"}\n'
    )


def test_fatal_override(buffer):
    logger = Logger(buffer, override_fatal=True)
    logger.fatal(None, error=Exception("test error"))
    assert buffer.getvalue() == '{"level":"fatal","error":"test error"}\n'


def test_fatal_raises_after_writing(buffer):
    logger = Logger(buffer)
    with pytest.raises(FatalError) as info:
        logger.fatal("boom")
    assert info.value.code == 1
    assert str(info.value) == "boom"
    assert buffer.getvalue() == '{"level":"fatal","message":"boom"}\n'


def test_debug_line(buffer):
    Logger(buffer).debug("test log line")
    assert buffer.getvalue() == '{"level":"debug","message":"test log line"}\n'


def test_string_array_field(buffer):
    Logger(buffer).info(None, arr=Marshaller(["a", "b", "c", "d\ne"]))
    assert buffer.getvalue() == '{"level":"info","arr":["a","b","c","d\\ne"]}\n'


def test_string_map_field(buffer):
    Logger(buffer).info("test map", map=Marshaller({"name": "Tom", "friend": "Jerry"}))
    assert buffer.getvalue() == (
        '{"level":"info","map":{"friend":"Jerry","name":"Tom"},"message":"test map"}\n'
    )


def test_level_filtering(buffer):
    logger = Logger(buffer).with_level(Level.WARN)
    logger.info("hidden")
    logger.warn("shown")
    logger.log(Level.NO_LEVEL, "always")
    assert buffer.getvalue() == (
        '{"level":"warn","message":"shown"}\n{"message":"always"}\n'
    )


def test_disabled_logger_writes_nothing(buffer):
    logger = Logger(buffer, level=Level.DISABLED)
    logger.error("nope")
    logger.log(Level.NO_LEVEL, "nope")
    assert buffer.getvalue() == ""


def test_bind_orders_fields(buffer):
    logger = Logger(buffer).bind(run="r1")
    logger.error("failed", path="/tmp/x")
    assert buffer.getvalue() == (
        '{"level":"error","run":"r1","path":"/tmp/x","message":"failed"}\n'
    )


def test_with_output_leaves_original(buffer):
    other = io.StringIO()
    logger = Logger(buffer)
    logger.with_output(other).info("moved")
    assert other.getvalue() == '{"level":"info","message":"moved"}\n'
    assert buffer.getvalue() == ""


def test_global_logger_roundtrip(buffer):
    previous = get_logger()
    replacement = Logger(buffer)
    try:
        set_global_logger(replacement)
        get_logger().info("global")
        assert get_logger() is replacement
    finally:
        set_global_logger(previous)
    assert buffer.getvalue() == '{"level":"info","message":"global"}\n'


def test_level_labels_in_output(buffer):
    logger = Logger(buffer, override_fatal=True)
    logger.debug("d")
    logger.warn("w")
    logger.fatal("f")
    levels = [json.loads(line)["level"] for line in buffer.getvalue().splitlines()]
    assert levels == ["debug", "warn", "fatal"]