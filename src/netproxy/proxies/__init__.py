"""Package that holds the proxy classes: TCP proxies that accept incoming
connections and UDP proxies that receive incoming datagrams, passing the
received data to a user-defined handler function in both cases.

Proxies have a standard lifecycle. A proxy starts from the "closed" state.
When it is instructed to open, it will first transition to the "preparing"
state while its socket is being bound, and then to the "open" state. When the
proxy is instructed to shut down, it will transition to the "closing" state
and then move back to "closed". The "preparing" and "closing" states are
considered transient, while the "open" and "closed" states are stable.
"""

from .base import (
    BUFFER_SIZE,
    Handler,
    ProxyState,
    SocketProxyBase,
    call_handler,
)
from .datagram import DatagramProxy
from .stream import StreamConnection, StreamProxy

__all__ = (
    "BUFFER_SIZE",
    "DatagramProxy",
    "Handler",
    "ProxyState",
    "SocketProxyBase",
    "StreamConnection",
    "StreamProxy",
    "call_handler",
)
