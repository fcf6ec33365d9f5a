"""Base class of the proxies: socket binding, the serving task and the
open/close lifecycle around it.
"""

from abc import ABCMeta, abstractmethod
from blinker import Signal
from enum import Enum
from inspect import isawaitable
from trio import (
    CancelScope,
    Event,
    Nursery,
    TASK_STATUS_IGNORED,
    open_nursery,
)
from trio.socket import AF_INET, AF_INET6, SocketType
from trio_util import AsyncValue
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

from ..config import ListenerConfig
from ..errors import BindError
from ..networking import format_socket_address
from ..trace import trace_error, trace_info

__all__ = (
    "BUFFER_SIZE",
    "Handler",
    "ProxyState",
    "SocketProxyBase",
    "call_handler",
)


BUFFER_SIZE = 4096
"""Size of the receive buffers of the proxies, in bytes."""

Handler = Callable[..., Union[Any, Awaitable[Any]]]
"""Type of user-defined handler functions. Handlers are called with the
connection (or socket), the remote address, the buffer holding the payload and
the length of the payload. They may be synchronous or asynchronous. A handler
signals an error by raising an exception.
"""


class ProxyState(Enum):
    """Lifecycle states of a proxy opened with `SocketProxyBase.open()`."""

    CLOSED = "closed"
    PREPARING = "preparing"
    OPEN = "open"
    CLOSING = "closing"

    @property
    def is_transitioning(self) -> bool:
        return self is ProxyState.PREPARING or self is ProxyState.CLOSING


def _is_stable(state: ProxyState) -> bool:
    return not state.is_transitioning


async def call_handler(handler: Handler, *args: Any) -> Any:
    """Calls a synchronous or asynchronous handler with the given arguments
    and returns its result.
    """
    result = handler(*args)
    if isawaitable(result):
        result = await result
    return result


class SocketProxyBase(metaclass=ABCMeta):
    """Base class for proxies that own a single bound socket and pass the
    data arriving on it to a user-defined handler.

    The entry point of a proxy is `start()`, which validates the
    configuration, binds the socket and then serves clients until the socket
    is closed or the task is cancelled. It can be used directly as a Trio
    task::

        address = await nursery.start(proxy.start)

    Alternatively, the proxy can be opened and closed with `open()` and
    `close()` (or an ``async with`` block) if a nursery was provided to the
    constructor or in the `nursery` property. Only proxies managed this way
    go through the states of ProxyState_ and send the `opened`, `closed` and
    `state_changed` signals.

    The attributes of the proxy may be modified freely; `start()` takes a
    snapshot of them when it is invoked.
    """

    opened = Signal(doc="Signal sent after the proxy was opened.")
    closed = Signal(doc="Signal sent after the proxy was closed.")
    state_changed = Signal(
        doc="""\
        Signal sent whenever the state of the proxy changes.

        Parameters:
            old_state: the old state
            new_state: the new state
        """
    )

    address: str
    """The address to bind to, in ``host:port`` format."""

    handler: Optional[Handler]
    """The user-defined handler function."""

    name: str
    """Name of the proxy. Used in trace messages only."""

    nursery: Optional[Nursery]
    """The Trio nursery that runs `start()` when the proxy is opened with
    `open()`.
    """

    _tag: str = "proxy"
    """Tag that is prepended to the trace messages of the proxy."""

    _bound_address: Optional[Tuple[str, int]]
    _cancel_scope: Optional[CancelScope]
    _state: AsyncValue
    _task_exited: Optional[Event]

    def __init__(
        self,
        address: str = "",
        handler: Optional[Handler] = None,
        *,
        name: str = "",
        nursery: Optional[Nursery] = None,
    ):
        """Constructor.

        Parameters:
            address: the address to bind to, in ``host:port`` format. An
                empty host means all interfaces, port zero means that the
                OS picks an ephemeral port.
            handler: the handler function that will be called for every
                payload that was received
            name: name of the proxy, used in trace messages only
            nursery: the Trio nursery that will be the owner of the proxy
                task spawned by `open()`
        """
        self.address = address
        self.handler = handler
        self.name = name
        self.nursery = nursery

        self._bound_address = None
        self._cancel_scope = None
        self._state = AsyncValue(ProxyState.CLOSED)
        self._task_exited = None

    @property
    def bound_address(self) -> Optional[Tuple[str, int]]:
        """The host and port that the socket of the proxy is bound to while
        the proxy is running; ``None`` otherwise.
        """
        return self._bound_address

    @property
    def state(self) -> ProxyState:
        return self._state.value

    @property
    def is_closed(self) -> bool:
        return self._state.value is ProxyState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state.value is ProxyState.OPEN

    async def start(self, *, task_status=TASK_STATUS_IGNORED) -> None:
        """Starts the proxy and serves clients until the socket of the proxy
        is closed or the task is cancelled.

        Reports the host and port that the socket was bound to via
        `task_status` once the socket is ready.

        Raises:
            ConfigError: if the address is empty or a timeout is invalid
            HandlerMissingError: if there is no handler
            BindError: if the address cannot be resolved or the socket cannot
                be bound to it
        """
        config = self._get_config()
        config.validate()

        sock = await self._bind(config)
        try:
            self._bound_address = sock.getsockname()[:2]
            trace_info(
                "[%s] %s listening on %s",
                self._tag,
                config.name or self.__class__.__name__,
                format_socket_address(self._bound_address),
            )
            task_status.started(self._bound_address)

            async with open_nursery() as nursery:
                await self._serve(sock, config, nursery)
        finally:
            self._bound_address = None
            sock.close()

    async def open(self) -> None:
        """Runs `start()` in the nursery of the proxy and waits until the
        socket of the proxy is bound. No-op if the proxy is open already.

        Raises:
            RuntimeError: if the proxy has no nursery
            ProxyError: if the proxy could not be started
        """
        if await self._wait_until_stable() is ProxyState.OPEN:
            return

        if self.nursery is None:
            raise RuntimeError(
                f"You must assign a nursery to {self!r} before opening it"
            )

        self._set_state(ProxyState.PREPARING)
        try:
            await self.nursery.start(self._run_in_nursery)
        except BaseException:
            self._set_state(ProxyState.CLOSED)
            raise

        self._set_state(ProxyState.OPEN)

        # start() may have returned already if the socket was closed right
        # after it had been bound
        assert self._task_exited is not None
        if self._task_exited.is_set():
            self._mark_closed()

    async def close(self) -> None:
        """Cancels the task running `start()` and waits until it exits.
        No-op if the proxy is closed already.
        """
        if await self._wait_until_stable() is ProxyState.CLOSED:
            return

        self._set_state(ProxyState.CLOSING)
        try:
            if self._cancel_scope is not None:
                self._cancel_scope.cancel()
            if self._task_exited is not None:
                await self._task_exited.wait()
        finally:
            self._set_state(ProxyState.CLOSED)

    async def wait_until_open(self) -> None:
        await self._state.wait_value(ProxyState.OPEN)

    async def wait_until_closed(self) -> None:
        await self._state.wait_value(ProxyState.CLOSED)

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.close()

    def _get_config(self) -> ListenerConfig:
        """Takes a snapshot of the attributes of the proxy."""
        return ListenerConfig(
            address=self.address, handler=self.handler, name=self.name
        )

    async def _bind(self, config: ListenerConfig) -> SocketType:
        """Creates the socket of the proxy and binds it to the address in
        the configuration.

        Raises:
            BindError: if the address cannot be resolved or the socket cannot
                be bound to it
        """
        host, port = config.resolve_address()
        sock = self._create_socket(AF_INET6 if ":" in host else AF_INET)
        try:
            await sock.bind((host, port))
            self._prepare_socket(sock)
        except OSError as ex:
            sock.close()
            trace_error("[%s] listen port failed, %s", self._tag, ex)
            raise BindError(config.address, ex) from ex
        except BaseException:
            sock.close()
            raise
        return sock

    @abstractmethod
    def _create_socket(self, family: int) -> SocketType:
        """Creates the socket of the proxy with the given address family."""
        raise NotImplementedError

    def _prepare_socket(self, sock: SocketType) -> None:
        """Prepares the socket of the proxy after it was bound.

        The default implementation does nothing.
        """
        pass

    @abstractmethod
    async def _serve(
        self, sock: SocketType, config: ListenerConfig, nursery: Nursery
    ) -> None:
        """Serves clients on the given bound socket until the socket is
        closed.

        Parameters:
            sock: the bound socket
            config: the configuration snapshot of the proxy
            nursery: nursery in which the tasks serving individual
                connections or datagrams are spawned
        """
        raise NotImplementedError

    async def _run_in_nursery(self, *, task_status=TASK_STATUS_IGNORED) -> None:
        """Runs `start()` in a cancel scope that `close()` can cancel."""
        self._cancel_scope = CancelScope()
        self._task_exited = Event()

        try:
            with self._cancel_scope:
                await self.start(task_status=task_status)
        finally:
            self._cancel_scope = None
            self._task_exited.set()
            self._mark_closed()

    def _mark_closed(self) -> None:
        """Moves an open proxy to the closed state after its task exited on
        its own, without `close()` being called.
        """
        if self._state.value is ProxyState.OPEN:
            self._set_state(ProxyState.CLOSING)
            self._set_state(ProxyState.CLOSED)

    def _set_state(self, new_state: ProxyState) -> None:
        old_state = self._state.value
        if new_state is old_state:
            return

        self._state.value = new_state
        self.state_changed.send(self, old_state=old_state, new_state=new_state)

        if new_state is ProxyState.OPEN:
            self.opened.send(self)
        elif new_state is ProxyState.CLOSED:
            self.closed.send(self)

    async def _wait_until_stable(self) -> ProxyState:
        """Waits until the proxy is neither preparing nor closing and returns
        its state.
        """
        while self._state.value.is_transitioning:
            await self._state.wait_value(_is_stable)
        return self._state.value
