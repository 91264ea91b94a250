"""Shared fixtures for coordinator and client tests."""

import pytest

from helpers.fakes import FakeServer, PeerConnectionFactory, RecordingSignaling
from use_cases.queue_manager import ConnectionRegistry, QueueCoordinator
from use_cases.session_relay import SessionRelay, SocketIOTransport


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def transport(server) -> SocketIOTransport:
    transport = SocketIOTransport(server)
    for address in ("mod-1", "mod-2", "alice-sid", "bob-sid", "carol-sid"):
        transport.attach(address)
    return transport


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def coordinator(registry, transport) -> QueueCoordinator:
    return QueueCoordinator(registry, transport)


@pytest.fixture
def relay(transport) -> SessionRelay:
    return SessionRelay(transport)


@pytest.fixture
def signaling() -> RecordingSignaling:
    return RecordingSignaling()


@pytest.fixture
def pc_factory() -> PeerConnectionFactory:
    return PeerConnectionFactory()
