"""Middleware that wrap the handler of a proxy to provide additional
functionality on top of it.
"""

from functools import partial, wraps
from typing import Callable, Iterable, Optional, TYPE_CHECKING, TypeVar, Union

from .proxies.base import Handler, call_handler
from .trace import TraceLevel, trace

if TYPE_CHECKING:
    from .proxies.base import SocketProxyBase

__all__ = ("format_payload_for_logging", "log_payloads", "logging_handler")


P = TypeVar("P", bound="SocketProxyBase")

_printable = frozenset(range(0x20, 0x7F))


def format_payload_for_logging(
    data: Union[bytes, bytearray, memoryview], width: int = 16
) -> Iterable[str]:
    """Formats a payload into hex dump lines, each line containing the
    hexadecimal representation of at most `width` bytes in two groups,
    followed by the printable ASCII characters of the same bytes.
    """
    data = bytes(data)
    half = width // 2
    padded_width = width * 3
    for offset in range(0, len(data), width):
        chunk = data[offset : offset + width]
        hex_part = " ".join(f"{b:02X}" for b in chunk[:half])
        if len(chunk) > half:
            hex_part += "  " + " ".join(f"{b:02X}" for b in chunk[half:])
        text_part = "".join(chr(b) if b in _printable else "." for b in chunk)
        yield f" {hex_part.ljust(padded_width)}  {text_part}"


def logging_handler(
    handler: Handler, writer: Optional[Callable[[str], None]] = None
) -> Handler:
    """Wraps a handler such that every payload passed to it is written to the
    given writer as a hex dump first.

    Parameters:
        handler: the handler to wrap
        writer: function that is called with each line of the hex dump;
            ``None`` means to trace the lines at the ``DEBUG`` level
    """
    write = writer or partial(trace, TraceLevel.DEBUG, "%s")

    @wraps(handler)
    async def wrapped(target, address, data, length: int):
        for line in format_payload_for_logging(memoryview(data)[:length]):
            write(f"<-- {line}")
        return await call_handler(handler, target, address, data, length)

    return wrapped


def log_payloads(
    proxy: P, writer: Optional[Callable[[str], None]] = None
) -> P:
    """Middleware that makes the given proxy log every incoming payload
    before passing it to the handler of the proxy.

    Proxies without a handler are returned intact.
    """
    if proxy.handler is not None:
        proxy.handler = logging_handler(proxy.handler, writer)
    return proxy
