"""Proxy that accepts TCP connections and passes the data arriving on each
connection to a user-defined handler.
"""

from attrs import evolve
from blinker import Signal
from errno import EMFILE, ENFILE, ENOBUFS, ENOMEM
from math import inf
from trio import (
    CancelScope,
    ClosedResourceError,
    Nursery,
    TooSlowError,
    current_time,
    fail_at,
    sleep,
)
from trio.lowlevel import checkpoint
from trio.socket import SOCK_STREAM, SocketType
from typing import Optional, Tuple

from ..config import ListenerConfig, deadline_after
from ..factory import create_proxy
from ..networking import create_socket
from ..trace import trace_error, trace_info
from .base import BUFFER_SIZE, Handler, SocketProxyBase, call_handler

__all__ = ("StreamConnection", "StreamProxy")


ACCEPT_CAPACITY_ERRNOS = frozenset({EMFILE, ENFILE, ENOMEM, ENOBUFS})
"""Errors raised by ``accept()`` when the process is out of resources. The
accept loop backs off for a while when it encounters one of these.
"""

ACCEPT_BACKOFF = 0.1
"""Number of seconds to wait after an accept error caused by the lack of
resources.
"""


class StreamConnection:
    """A single TCP connection accepted by a StreamProxy_, as seen by the
    handler of the proxy.

    The connection is owned by the session of the proxy; the session reads
    from it and closes it when the session ends. Handlers should only write
    to it.
    """

    address: Tuple[str, int]
    """The address of the remote end of the connection."""

    read_deadline: float
    """Deadline of the current read operation on the Trio clock."""

    write_deadline: float
    """Deadline of the write operations in the current iteration on the Trio
    clock. Writes that do not complete until then fail with TooSlowError_.
    """

    def __init__(self, socket: SocketType, address: Tuple[str, int]):
        """Constructor.

        Parameters:
            socket: the Trio socket that leads to the connected client
            address: the address of the client
        """
        self._socket = socket
        self.address = address
        self.read_deadline = inf
        self.write_deadline = inf

    @property
    def is_closed(self) -> bool:
        """Returns whether the connection has been closed."""
        return self._socket.fileno() < 0

    @property
    def socket(self) -> SocketType:
        """Returns the socket of the connection."""
        return self._socket

    def set_deadlines(self, read_deadline: float, write_deadline: float) -> None:
        """Sets the read and write deadlines of the connection."""
        self.read_deadline = read_deadline
        self.write_deadline = write_deadline

    async def close(self) -> None:
        """Closes the connection. No-op if the connection is closed already."""
        self._socket.close()
        await checkpoint()

    async def read_into(self, buffer: bytearray) -> int:
        """Reads some data from the connection into the given buffer, subject
        to the read deadline.

        Returns:
            the number of bytes read; zero if the remote end closed the
            connection

        Raises:
            TooSlowError: if the read deadline passed before any data arrived
        """
        with fail_at(self.read_deadline):
            return await self._socket.recv_into(buffer)

    async def write(self, data: bytes) -> None:
        """Writes all the given data to the connection, subject to the write
        deadline.

        Raises:
            TooSlowError: if the write deadline passed before all the data
                was sent
        """
        view = memoryview(data)
        with fail_at(self.write_deadline):
            while view:
                sent = await self._socket.send(view)
                view = view[sent:]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} address={self.address!r}>"


@create_proxy.register("tcp")
class StreamProxy(SocketProxyBase):
    """Proxy that listens for incoming TCP connections on a given address.

    Each accepted connection gets its own session task. The session reads
    the incoming data in chunks of at most 4096 bytes and calls the handler
    of the proxy with each chunk as
    ``handler(connection, address, buffer, length)``, where `connection` is
    a StreamConnection_, `address` is the remote address and the first
    `length` bytes of `buffer` hold the chunk. The buffer is reused between
    calls.

    The session ends and the connection is closed when the remote end closes
    the connection, when a read fails or times out, or when the handler
    raises an exception. Errors in a session never affect the proxy or the
    other sessions.
    """

    session_started = Signal(
        doc="""\
        Signal sent when a new connection was accepted, before the first read.

        Parameters:
            connection: the StreamConnection_ object of the session
        """
    )
    session_ended = Signal(
        doc="""\
        Signal sent after a session ended and its connection was closed.

        Parameters:
            connection: the StreamConnection_ object of the session
        """
    )

    read_timeout: Optional[float]
    """Read timeout in minutes; ``None`` means no timeout, zero means that
    reads time out immediately.
    """

    write_timeout: Optional[float]
    """Write timeout in minutes; ``None`` means no timeout, zero means that
    writes time out immediately.
    """

    _tag = "tcproxy"

    def __init__(
        self,
        address: str = "",
        handler: Optional[Handler] = None,
        *,
        read_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
        **kwds,
    ):
        """Constructor.

        Parameters:
            read_timeout: read timeout in minutes
            write_timeout: write timeout in minutes

        See SocketProxyBase_ for the other parameters.
        """
        super().__init__(address, handler, **kwds)
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    def _create_socket(self, family: int) -> SocketType:
        return create_socket(SOCK_STREAM, family, reuse_address=True)

    def _get_config(self) -> ListenerConfig:
        return evolve(
            super()._get_config(),
            read_timeout=self.read_timeout,
            write_timeout=self.write_timeout,
        )

    def _prepare_socket(self, sock: SocketType) -> None:
        sock.listen()

    async def _serve(
        self, sock: SocketType, config: ListenerConfig, nursery: Nursery
    ) -> None:
        while True:
            try:
                client, address = await sock.accept()
            except ClosedResourceError:
                break
            except OSError as ex:
                if sock.fileno() < 0:
                    break
                trace_error("[tcproxy] tcp accept failed, %s", ex)
                if ex.errno in ACCEPT_CAPACITY_ERRNOS:
                    await sleep(ACCEPT_BACKOFF)
                continue

            connection = StreamConnection(client, address[:2])
            nursery.start_soon(
                self._run_session, connection, bytearray(BUFFER_SIZE), config
            )

        trace_info("[tcproxy] listener closed: %s", config.address)

    async def _run_session(
        self, connection: StreamConnection, buffer: bytearray, config: ListenerConfig
    ) -> None:
        """Reads data from a single accepted connection and passes it to the
        handler until an error happens or the remote end closes the
        connection.
        """
        address = connection.address
        trace_info("[tcproxy] new tcp connected: -> %s", address)
        try:
            self.session_started.send(self, connection=connection)
            await self._handle_session(connection, buffer, config)
        except TooSlowError:
            trace_error("[tcproxy] tcp session timed out: %s", address)
        except OSError as ex:
            trace_error("[tcproxy] tcp session failed, %s", ex)
        except Exception as ex:
            trace_error("[tcproxy] handle packet panic, %r", ex)
        finally:
            trace_info("[tcproxy] tcp client close: <- %s", address)
            with CancelScope(shield=True):
                await connection.close()
            try:
                self.session_ended.send(self, connection=connection)
            except Exception as ex:
                trace_error("[tcproxy] session_ended receiver failed, %r", ex)

    async def _handle_session(
        self, connection: StreamConnection, buffer: bytearray, config: ListenerConfig
    ) -> None:
        """The read loop of a single session."""
        handler = config.handler
        assert handler is not None

        while True:
            now = current_time()
            connection.set_deadlines(
                deadline_after(config.read_timeout, now),
                deadline_after(config.write_timeout, now),
            )

            length = await connection.read_into(buffer)
            if not length:
                trace_info("[tcproxy] tcp read data failed, EOF: %s", connection.address)
                return

            await call_handler(handler, connection, connection.address, buffer, length)
