from pytest import fixture

from netproxy.trace import TraceLevel, settings


@fixture(autouse=True)
def reset_trace_settings():
    settings.reset()
    yield
    settings.reset()


@fixture
def traces():
    """Enables tracing and collects the formatted trace messages."""
    messages: list[tuple[TraceLevel, str]] = []

    def collect(format, level, *args):
        messages.append((level, format % args))

    settings.function = collect
    settings.enabled = True
    return messages
