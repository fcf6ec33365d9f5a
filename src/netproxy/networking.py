"""Generic networking-related utility functions."""

from typing import Tuple

import trio.socket

__all__ = (
    "create_socket",
    "format_socket_address",
    "get_socket_address",
    "parse_address",
)


def create_socket(
    socket_type, family=trio.socket.AF_INET, *, reuse_address: bool = False
) -> trio.socket.SocketType:
    """Creates an asynchronous socket with the given type.

    Asynchronous sockets have asynchronous sender and receiver methods so
    you need to use the `await` keyword with them.

    Parameters:
        socket_type: the type of the socket (``socket.SOCK_STREAM`` for
            TCP sockets, ``socket.SOCK_DGRAM`` for UDP sockets)
        family: the address family of the socket
        reuse_address: whether to set ``SO_REUSEADDR`` on the socket. Note
            that on most platforms this allows UDP sockets to share a port,
            so it should be used for listening TCP sockets only.

    Returns:
        the newly created socket
    """
    sock = trio.socket.socket(family, socket_type)
    if reuse_address and hasattr(trio.socket, "SO_REUSEADDR"):
        # SO_REUSEADDR does not exist on Windows, but we don't really need
        # it on Windows either
        sock.setsockopt(trio.socket.SOL_SOCKET, trio.socket.SO_REUSEADDR, 1)
    return sock


def parse_address(address: str) -> Tuple[str, int]:
    """Parses an address in ``host:port`` format.

    The host may be empty (meaning all interfaces) and it may be an IPv6
    address enclosed in square brackets.

    Parameters:
        address: the address to parse

    Returns:
        the host and the port, in a tuple

    Raises:
        ValueError: if the address is not in ``host:port`` format or the port
            is not a valid port number
    """
    host, sep, port = address.strip().rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"IPv6 addresses must be enclosed in brackets: {address!r}")

    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None

    if port_number < 0 or port_number > 65535:
        raise ValueError(f"port out of range in address {address!r}")

    return host, port_number


def format_socket_address(sock, format: str = "{host}:{port}") -> str:
    """Formats the address that the given socket is bound to in the
    standard hostname-port format.

    Parameters:
        sock: the socket to format, or a tuple containing a host and a port
        format: format string in brace-style that is used by
            ``str.format()``. The tokens ``{host}`` and ``{port}`` will be
            replaced by the hostname and port.

    Returns:
        str: a formatted representation of the address and port of the
            socket
    """
    host, port = get_socket_address(sock)
    if ":" in host:
        host = f"[{host}]"
    return format.format(host=host, port=port)


def get_socket_address(sock) -> Tuple[str, int]:
    """Gets the hostname and port that the given socket is bound to.

    Parameters:
        sock: the socket for which we need its address, or a socket address
            tuple as returned by ``getsockname()`` or ``recvfrom()``

    Returns:
        the host and port where the socket is bound to
    """
    if hasattr(sock, "getsockname"):
        address = sock.getsockname()
    else:
        address = sock

    # IPv6 addresses also contain the flow info and the scope ID
    host, port = address[0], address[1]

    # Canonicalize the value of 'host'
    if host in ("0.0.0.0", "::"):
        host = ""

    return host, port
