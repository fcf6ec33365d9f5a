import logging

from netproxy.trace import (
    TraceLevel,
    enable_tracing,
    set_trace_function,
    settings,
    trace,
    trace_error,
    trace_info,
)


def test_trace_levels():
    assert [level.value for level in TraceLevel] == list(range(8))
    assert TraceLevel.EMERGENCY < TraceLevel.ERROR < TraceLevel.DEBUG
    assert TraceLevel.ERROR.logging_level == logging.ERROR
    assert TraceLevel.INFORMATIONAL.logging_level == logging.INFO
    assert TraceLevel.DEBUG.logging_level == logging.DEBUG


def test_tracing_is_disabled_by_default(caplog):
    calls = []
    set_trace_function(lambda *args: calls.append(args))

    with caplog.at_level(logging.DEBUG, logger="netproxy"):
        trace_info("hello %s", "world")
        trace_error("oops")

    assert calls == []
    assert caplog.records == []


def test_user_trace_function():
    calls = []
    set_trace_function(lambda *args: calls.append(args))
    enable_tracing()

    trace_info("hello %s", "world")
    trace_error("oops %d", 42)
    trace(TraceLevel.ALERT, "alert")

    assert calls == [
        ("hello %s", TraceLevel.INFORMATIONAL, "world"),
        ("oops %d", TraceLevel.ERROR, 42),
        ("alert", TraceLevel.ALERT),
    ]

    enable_tracing(False)
    trace_info("ignored")
    assert len(calls) == 3


def test_default_logger(caplog):
    enable_tracing()

    with caplog.at_level(logging.DEBUG, logger="netproxy"):
        trace_info("hello %s", "world")
        trace_error("oops %d", 42)
        trace(TraceLevel.EMERGENCY, "fire")

    assert [(r.name, r.levelno, r.getMessage()) for r in caplog.records] == [
        ("netproxy", logging.INFO, "hello world"),
        ("netproxy", logging.ERROR, "oops 42"),
        ("netproxy", logging.CRITICAL, "fire"),
    ]


def test_removing_user_trace_function_restores_logger(caplog):
    calls = []
    set_trace_function(calls.append)
    set_trace_function(None)
    enable_tracing()

    with caplog.at_level(logging.INFO, logger="netproxy"):
        trace_info("back to logging")

    assert calls == []
    assert [r.getMessage() for r in caplog.records] == ["back to logging"]


def test_failing_trace_function_is_contained(caplog):
    def explode(format, level, *args):
        raise RuntimeError("broken sink")

    set_trace_function(explode)
    enable_tracing()

    with caplog.at_level(logging.ERROR, logger="netproxy"):
        trace_error("this should not raise")

    assert "Trace function raised an exception" in caplog.text


def test_reset():
    set_trace_function(print)
    enable_tracing()

    settings.reset()

    assert not settings.enabled
    assert settings.function is None


def test_logger_configuration_is_left_to_the_application():
    logger = logging.getLogger("netproxy")
    assert logger.level == logging.NOTSET
    assert logger.handlers == []
