from pytest import raises

from netproxy import (
    DatagramProxy,
    StreamProxy,
    UnknownProxyTypeError,
    create_proxy,
    create_proxy_factory,
)
from netproxy.factory import ProxyFactory


async def handler(connection, address, data, length):
    pass


def test_create_tcp_proxy_from_url():
    proxy = create_proxy(
        "tcp://127.0.0.1:9000?read_timeout=5&write_timeout=1&name=echo",
        handler=handler,
    )

    assert isinstance(proxy, StreamProxy)
    assert proxy.address == "127.0.0.1:9000"
    assert proxy.handler is handler
    assert proxy.name == "echo"
    assert proxy.read_timeout == 5
    assert proxy.write_timeout == 1


def test_create_udp_proxy_from_url():
    proxy = create_proxy("udp://:5353", handler=handler)

    assert isinstance(proxy, DatagramProxy)
    assert proxy.address == ":5353"


def test_datagram_proxy_has_no_read_timeout():
    with raises(TypeError):
        create_proxy("udp://:5353?read_timeout=1", handler=handler)


def test_create_proxy_with_ipv6_address():
    proxy = create_proxy("udp://[::1]:5353")
    assert proxy.address == "[::1]:5353"
    assert proxy.handler is None


def test_create_proxy_from_dict():
    proxy = create_proxy(
        {"type": "tcp", "address": "localhost:0", "parameters": {"name": "foo"}},
        handler=handler,
    )

    assert isinstance(proxy, StreamProxy)
    assert proxy.address == "localhost:0"
    assert proxy.name == "foo"


def test_create_proxy_without_address():
    proxy = create_proxy("tcp")
    assert isinstance(proxy, StreamProxy)
    assert proxy.address == ""


def test_unknown_proxy_type():
    with raises(UnknownProxyTypeError, match="sctp"):
        create_proxy("sctp://127.0.0.1:9000")

    with raises(UnknownProxyTypeError, match="nope"):
        create_proxy("tcp+nope://127.0.0.1:9000")


def test_repeated_parameters():
    with raises(ValueError, match="repeated"):
        create_proxy("tcp://127.0.0.1:9000?name=a&name=b")


def test_logging_middleware():
    proxy = create_proxy("tcp+log://127.0.0.1:9000", handler=handler)
    assert isinstance(proxy, StreamProxy)
    assert proxy.handler is not handler
    assert proxy.handler.__wrapped__ is handler


def test_create_proxy_factory():
    factory = create_proxy_factory("udp://127.0.0.1:0", handler=handler)

    first, second = factory(), factory()
    assert isinstance(first, DatagramProxy)
    assert first is not second
    assert first.handler is second.handler is handler


def test_custom_factory():
    factory = ProxyFactory()
    factory.register("tcp", StreamProxy)

    @factory.register_middleware("rename")
    def rename(proxy):
        proxy.name = "renamed"
        return proxy

    proxy = factory("tcp+rename://:0?name=original", handler=handler)
    assert isinstance(proxy, StreamProxy)
    assert proxy.name == "renamed"
    assert proxy.address == ":0"

    with raises(UnknownProxyTypeError):
        factory("udp://:0")


def test_keyword_arguments_override_url_parameters():
    proxy = create_proxy("tcp://127.0.0.1:9000?name=a", name="b", address=":1")
    assert proxy.name == "b"
    assert proxy.address == ":1"
