"""Minimal callback-driven TCP and UDP proxies built on Trio.

A proxy binds a single socket, receives data on it and passes the raw data
to a user-defined handler function. TCP proxies run a separate session for
each accepted connection; UDP proxies dispatch each received datagram in a
separate task.
"""

from .config import ListenerConfig
from .errors import (
    BindError,
    ConfigError,
    HandlerMissingError,
    ProxyError,
    UnknownProxyTypeError,
)
from .factory import create_proxy, create_proxy_factory
from .proxies import (
    DatagramProxy,
    ProxyState,
    StreamConnection,
    StreamProxy,
)
from .trace import (
    TraceLevel,
    enable_tracing,
    set_trace_function,
    trace_error,
    trace_info,
)
from .version import __version__

__all__ = (
    "BindError",
    "ConfigError",
    "DatagramProxy",
    "HandlerMissingError",
    "ListenerConfig",
    "ProxyError",
    "ProxyState",
    "StreamConnection",
    "StreamProxy",
    "TraceLevel",
    "UnknownProxyTypeError",
    "__version__",
    "create_proxy",
    "create_proxy_factory",
    "enable_tracing",
    "set_trace_function",
    "trace_error",
    "trace_info",
)
