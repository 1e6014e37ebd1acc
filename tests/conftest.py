import asyncio
import socket
import pytest
import pytest_asyncio
from crypto.cipher import CipherCodec, generate_key
from peer.listener import ConnectionListener


@pytest.fixture
def key():
    return generate_key()


@pytest.fixture
def codec(key):
    return CipherCodec(key)


@pytest.fixture
def closed_port():
    """A localhost port nothing is listening on."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.fixture
def wait_until():
    async def _wait_until(predicate, timeout=2.0):
        for _ in range(int(timeout / 0.02)):
            if predicate():
                return True
            await asyncio.sleep(0.02)
        return predicate()

    return _wait_until


@pytest_asyncio.fixture
async def listener_factory():
    """Start listeners on 127.0.0.1 with an OS-picked port; stop them afterwards."""
    listeners = []

    async def _create(codec, display, port=0):
        listener = ConnectionListener("127.0.0.1", port, codec, display)
        await listener.start()
        listeners.append(listener)
        return listener

    yield _create

    for listener in listeners:
        await listener.stop()
