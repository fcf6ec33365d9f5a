"""Construction of proxies from URLs such as
``tcp://127.0.0.1:9000?read_timeout=5`` or from equivalent dicts.
"""

from functools import partial
from typing import Any, Callable, Optional, TYPE_CHECKING, Union
from urllib.parse import parse_qs, urlparse

from .errors import UnknownProxyTypeError

if TYPE_CHECKING:
    from .proxies.base import SocketProxyBase

__all__ = ("ProxyFactory", "create_proxy", "create_proxy_factory")


ProxySpec = Union[str, dict[str, Any]]
Middleware = Callable[["SocketProxyBase"], "SocketProxyBase"]


def _parse_query_value(value: str) -> Union[int, str]:
    try:
        return int(value)
    except ValueError:
        return value


def parse_proxy_url(url: str) -> dict[str, Any]:
    """Turns a proxy URL into the dict form accepted by
    `ProxyFactory.create()`.

    The scheme is the proxy type, optionally followed by ``+``-separated
    middleware names; the network location is the address to bind to and
    the query holds the remaining keyword arguments of the proxy. Query
    values made of digits are converted to integers.
    """
    parts = urlparse(url, allow_fragments=False)
    if not parts.scheme:
        # A bare "tcp" or "udp+log" without "://"
        proxy_type, *middleware = url.split("+")
        return {"type": proxy_type, "middleware": middleware}

    parameters = {}
    for key, values in parse_qs(parts.query).items():
        if len(values) > 1:
            raise ValueError(f"repeated parameters are not supported: {key!r}")
        parameters[key] = _parse_query_value(values[0])

    proxy_type, *middleware = parts.scheme.split("+")
    result = {"type": proxy_type, "middleware": middleware, "parameters": parameters}

    # The brackets of IPv6 hosts are kept; the proxy parses the address
    host, sep, port = parts.netloc.rpartition(":")
    if not sep or "]" in port:
        host, port = parts.netloc, ""
    if host or port:
        result["address"] = f"{host}:{port}"

    return result


class ProxyFactory:
    """Registry of proxy classes and middleware, keyed by the names used in
    the scheme of proxy URLs.
    """

    _proxy_types: dict[str, Callable[..., "SocketProxyBase"]]
    _middleware: dict[str, Middleware]

    def __init__(self):
        self._proxy_types = {}
        self._middleware = {}

    def register(self, name: str, proxy_type=None):
        """Registers a proxy class under the given name. Returns a class
        decorator when no class is given.
        """
        if proxy_type is None:
            return partial(self.register, name)
        self._proxy_types[name] = proxy_type
        return proxy_type

    def register_middleware(self, name: str, middleware: Optional[Middleware] = None):
        """Registers a middleware under the given name. A middleware takes a
        freshly created proxy and returns the proxy to use in its place.
        Returns a decorator when no middleware is given.
        """
        if middleware is None:
            return partial(self.register_middleware, name)
        self._middleware[name] = middleware
        return middleware

    def create(self, spec: ProxySpec, **kwds) -> "SocketProxyBase":
        """Creates a proxy from a URL or from a dict.

        URLs look like ``udp+log://[::1]:5353?name=dns``; see
        `parse_proxy_url()`. Dicts have a ``type`` key and optional
        ``middleware``, ``address`` and ``parameters`` keys; their parameters
        are passed to the proxy class as they are.

        Keyword arguments override the parameters of the spec. This is how
        the handler of the proxy is usually passed, since it cannot be
        written in a URL.

        Raises:
            UnknownProxyTypeError: if the proxy type or one of the middleware
                is not registered
            ValueError: if a URL parameter is repeated
        """
        if isinstance(spec, str):
            spec = parse_proxy_url(spec)

        proxy_type = spec["type"]
        factory = self._proxy_types.get(proxy_type)
        if factory is None:
            raise UnknownProxyTypeError(proxy_type)

        middleware = []
        for name in spec.get("middleware", ()):
            if name not in self._middleware:
                raise UnknownProxyTypeError(f"{proxy_type}+{name}")
            middleware.append(self._middleware[name])

        kwds = {**spec.get("parameters", {}), **kwds}
        if "address" in spec:
            kwds.setdefault("address", spec["address"])

        proxy = factory(**kwds)
        for func in middleware:
            proxy = func(proxy)
        return proxy

    __call__ = create


create_proxy = ProxyFactory()
"""Proxy factory that knows about the ``tcp`` and ``udp`` proxies and the
``log`` middleware.
"""


def _register_log_middleware() -> None:
    from .middleware import log_payloads

    create_proxy.register_middleware("log", log_payloads)


_register_log_middleware()


def create_proxy_factory(*args, **kwds) -> Callable[[], "SocketProxyBase"]:
    """Returns a function that creates a new proxy from the given arguments
    of `create_proxy()` every time it is called.
    """
    return partial(create_proxy, *args, **kwds)
