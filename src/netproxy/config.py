"""Configuration objects of the proxies."""

from attrs import field, frozen
from math import inf
from numbers import Real
from typing import Any, Callable, Optional, Tuple

from .errors import BindError, ConfigError, HandlerMissingError
from .networking import parse_address

__all__ = ("ListenerConfig", "deadline_after")


def deadline_after(minutes: Optional[float], now: float) -> float:
    """Returns the absolute deadline that lies the given number of minutes
    after `now`.

    ``None`` means that there is no deadline; zero minutes means that the
    deadline is `now` itself, i.e. an operation guarded by the deadline
    fails immediately.
    """
    return inf if minutes is None else now + minutes * 60


def _validate_timeout(instance, attribute, value) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigError(f"{attribute.name} must be a number of minutes or None")
    if value < 0:
        raise ConfigError(f"{attribute.name} must not be negative")


@frozen
class ListenerConfig:
    """Immutable snapshot of the configuration of a proxy, taken when the
    proxy is started.
    """

    address: str = ""
    """The address to bind to, in ``host:port`` format."""

    handler: Optional[Callable[..., Any]] = None
    """The user-defined handler function."""

    name: str = ""
    """Name of the proxy; used in log messages only. Does not have to be
    unique.
    """

    read_timeout: Optional[float] = field(default=None, validator=_validate_timeout)
    """Read timeout in minutes; ``None`` means no timeout."""

    write_timeout: Optional[float] = field(default=None, validator=_validate_timeout)
    """Write timeout in minutes; ``None`` means no timeout. Used by stream
    proxies only.
    """

    def validate(self) -> None:
        """Checks whether the configuration is complete enough to start a
        proxy with it.

        Raises:
            ConfigError: if the address is empty
            HandlerMissingError: if there is no handler
        """
        if not self.address:
            raise ConfigError("addr is empty")
        if self.handler is None:
            raise HandlerMissingError()

    def resolve_address(self) -> Tuple[str, int]:
        """Splits the address of the configuration into a host and a port.

        Raises:
            BindError: if the address is malformed
        """
        try:
            return parse_address(self.address)
        except ValueError as ex:
            raise BindError(self.address, ex) from ex
