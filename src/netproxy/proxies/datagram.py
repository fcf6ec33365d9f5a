"""Proxy that receives UDP datagrams and passes each of them to a
user-defined handler.
"""

from blinker import Signal
from trio import ClosedResourceError, Nursery
from trio.socket import SOCK_DGRAM, SocketType
from typing import Tuple

from ..config import ListenerConfig
from ..factory import create_proxy
from ..networking import create_socket
from ..trace import trace_error, trace_info
from .base import BUFFER_SIZE, Handler, SocketProxyBase, call_handler

__all__ = ("DatagramProxy",)


@create_proxy.register("udp")
class DatagramProxy(SocketProxyBase):
    """Proxy that receives UDP datagrams on a given address.

    Each received datagram is dispatched in its own task that calls the
    handler of the proxy as ``handler(socket, address, data, length)``,
    where `socket` is the bound socket of the proxy (which the handler may
    use to send a reply to `address`), `address` is the address of the
    sender and `data` holds exactly the `length` bytes of the datagram.
    Datagrams longer than 4096 bytes are truncated.

    The receive loop never waits for the handler, so datagrams are handled
    concurrently. Errors raised by the handler are traced and discarded.
    The receive loop has no read timeout; it waits for the next datagram
    indefinitely.
    """

    datagram_received = Signal(
        doc="""\
        Signal sent for each datagram received by the proxy, before the
        datagram is dispatched to the handler.

        Parameters:
            address: the address of the sender
            data: the payload of the datagram
        """
    )

    _tag = "udproxy"

    def _create_socket(self, family: int) -> SocketType:
        # No SO_REUSEADDR here; it would let another socket silently share
        # the port on most platforms
        return create_socket(SOCK_DGRAM, family)

    async def _serve(
        self, sock: SocketType, config: ListenerConfig, nursery: Nursery
    ) -> None:
        handler = config.handler
        assert handler is not None

        while True:
            try:
                data, address = await sock.recvfrom(BUFFER_SIZE)
            except ClosedResourceError:
                break
            except OSError as ex:
                if sock.fileno() < 0:
                    break
                trace_error("[udproxy] udp receive failed, %s", ex)
                continue

            address = address[:2]
            try:
                self.datagram_received.send(self, address=address, data=data)
            except Exception as ex:
                trace_error("[udproxy] datagram_received receiver failed, %r", ex)

            nursery.start_soon(self._dispatch, handler, sock, address, data)

        trace_info("[udproxy] socket closed: %s", config.address)

    async def _dispatch(
        self,
        handler: Handler,
        sock: SocketType,
        address: Tuple[str, int],
        data: bytes,
    ) -> None:
        """Passes a single datagram to the handler and discards any error
        raised by the handler.
        """
        try:
            await call_handler(handler, sock, address, data, len(data))
        except Exception as ex:
            trace_error("[udproxy] handle packet panic, %r", ex)
