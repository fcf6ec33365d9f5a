from typing import Optional

__all__ = (
    "BindError",
    "ConfigError",
    "HandlerMissingError",
    "ProxyError",
    "UnknownProxyTypeError",
)


class ProxyError(RuntimeError):
    """Base class for proxy-related errors."""

    pass


class ConfigError(ProxyError):
    """Error thrown when a proxy is started with an invalid configuration."""

    pass


class HandlerMissingError(ConfigError):
    """Error thrown when a proxy is started without a user-specified handler
    function.
    """

    def __init__(self, message: str = ""):
        super().__init__(message or "define user-specified callback function first")


class BindError(ProxyError):
    """Error thrown when the address of a proxy cannot be resolved or the
    socket of the proxy cannot be bound to it.
    """

    address: Optional[str]
    """The address that the proxy tried to bind to."""

    def __init__(self, address: Optional[str], reason: object = None):
        """Constructor.

        Parameters:
            address: the address that the proxy tried to bind to
            reason: the underlying error or a short description of what
                went wrong
        """
        self.address = address
        message = f"cannot bind to {address!r}"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnknownProxyTypeError(ProxyError):
    """Exception thrown when trying to construct a proxy with an unknown
    type.
    """

    def __init__(self, proxy_type: str):
        """Constructor.

        Parameters:
            proxy_type: the proxy type that the user tried to construct.
        """
        super().__init__(f"Unknown proxy type: {proxy_type!r}")
