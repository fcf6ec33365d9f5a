from pytest import raises
from trio import fail_after, open_nursery, open_tcp_stream
from trio.socket import SOCK_DGRAM, SOCK_STREAM, socket

from netproxy import BindError, DatagramProxy, ProxyState, StreamProxy


async def echo(connection, address, data, length):
    await connection.write(bytes(data[:length]))


async def test_open_without_nursery():
    proxy = StreamProxy("127.0.0.1:0", echo)

    with raises(RuntimeError, match="assign a nursery"):
        await proxy.open()

    assert proxy.is_closed


async def test_open_close(nursery):
    proxy = StreamProxy("127.0.0.1:0", echo, nursery=nursery)
    events = []

    def on_state_changed(sender, old_state, new_state):
        events.append((old_state, new_state))

    with (
        proxy.state_changed.connected_to(on_state_changed, sender=proxy),
        proxy.opened.connected_to(lambda sender: events.append("opened"), sender=proxy),
        proxy.closed.connected_to(lambda sender: events.append("closed"), sender=proxy),
    ):
        assert proxy.is_closed
        assert proxy.bound_address is None

        async with proxy:
            assert proxy.is_open
            host, port = proxy.bound_address

            with fail_after(5):
                stream = await open_tcp_stream(host, port)
                async with stream:
                    await stream.send_all(b"hello")
                    assert await stream.receive_some() == b"hello"

        assert proxy.is_closed
        assert proxy.bound_address is None

    assert events == [
        (ProxyState.CLOSED, ProxyState.PREPARING),
        (ProxyState.PREPARING, ProxyState.OPEN),
        "opened",
        (ProxyState.OPEN, ProxyState.CLOSING),
        (ProxyState.CLOSING, ProxyState.CLOSED),
        "closed",
    ]


async def test_open_twice_and_close_twice(nursery):
    proxy = DatagramProxy("127.0.0.1:0", echo, nursery=nursery)

    await proxy.open()
    address = proxy.bound_address
    await proxy.open()
    assert proxy.bound_address == address

    await proxy.close()
    await proxy.close()
    assert proxy.is_closed


async def test_open_fails_when_address_is_taken(nursery):
    sock = socket(type=SOCK_STREAM)
    with sock:
        await sock.bind(("127.0.0.1", 0))
        sock.listen()
        _, port = sock.getsockname()

        proxy = StreamProxy(f"127.0.0.1:{port}", echo, nursery=nursery)
        with raises(BindError):
            await proxy.open()

        assert proxy.is_closed


async def test_reopen_after_close(nursery):
    proxy = StreamProxy("127.0.0.1:0", echo, nursery=nursery)

    async with proxy:
        _, port = proxy.bound_address

    proxy.address = f"127.0.0.1:{port}"
    async with proxy:
        assert proxy.bound_address == ("127.0.0.1", port)


async def test_proxy_closes_itself_when_socket_is_closed(nursery):
    async def close_socket(sock, address, data, length):
        sock.close()

    proxy = DatagramProxy("127.0.0.1:0", close_socket, nursery=nursery)
    await proxy.open()

    client = socket(type=SOCK_DGRAM)
    with client:
        await client.sendto(b"bye", proxy.bound_address)

        with fail_after(5):
            await proxy.wait_until_closed()

    assert proxy.is_closed
    assert proxy.bound_address is None


async def test_close_releases_the_socket(nursery):
    proxy = DatagramProxy("127.0.0.1:0", echo, nursery=nursery)
    await proxy.open()
    address = proxy.bound_address

    await proxy.close()
    assert proxy.state is ProxyState.CLOSED
    assert proxy.bound_address is None

    sock = socket(type=SOCK_DGRAM)
    with sock:
        await sock.bind(address)


async def test_concurrent_open_calls_share_one_task(nursery):
    proxy = StreamProxy("127.0.0.1:0", echo, nursery=nursery)
    addresses = []

    async def open_and_record():
        await proxy.open()
        addresses.append(proxy.bound_address)

    async with open_nursery() as inner:
        inner.start_soon(open_and_record)
        inner.start_soon(open_and_record)

    assert proxy.is_open
    assert addresses[0] == addresses[1]

    await proxy.close()
    assert proxy.is_closed
