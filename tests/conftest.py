import logging

import pytest

from wisp.codec import ConnectionState, Request
from wisp.config import ServerConfig
from wisp.dispatcher import Dispatcher
from wisp.packets import encode_client_packet
from wisp.server import GameServer
from wisp.state import ServerState

# Suppress INFO & DEBUG logs from the server during tests
logging.basicConfig(level=logging.WARNING)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Records every datagram instead of touching the network."""

    address = ("127.0.0.1", 5000)

    def __init__(self) -> None:
        self.sent = []
        self.failing = set()
        self.closed = False

    def send_to(self, data, address):
        if address in self.failing:
            raise OSError("network unreachable")
        self.sent.append((data, address))

    def recv(self):
        return None

    def close(self):
        self.closed = True

    def sent_to(self, address):
        return [data for data, addr in self.sent if addr == address]


def _connecting(name):
    return encode_client_packet(ConnectionState.CONNECTING, name)


def _verification(name):
    return encode_client_packet(ConnectionState.VERIFICATION, name)


def _request(name, req, **body):
    return encode_client_packet(ConnectionState.CONNECTED, name, req, **body)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return ServerConfig(port=0, tick_rate=30, handshake_repeat=10, step_size=0.01, reap_after=0)


@pytest.fixture
def state(config, clock):
    return ServerState(config=config, clock=clock)


@pytest.fixture
def dispatcher(state):
    return Dispatcher(state)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def server(config, transport, clock):
    return GameServer(config, transport=transport, clock=clock)


@pytest.fixture
def connect(dispatcher):
    """Drive one address through the full handshake and return its session."""

    def _connect(address, name, *, join=False):
        dispatcher.handle(_connecting(name), address)
        dispatcher.handle(_verification(name), address)
        if join:
            dispatcher.handle(_request(name, Request.JOIN_GAME), address)
        return dispatcher.state.sessions.get(address)

    return _connect
