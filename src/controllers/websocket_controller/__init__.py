"""
Websocket Controller

Coordinator side of the Socket.IO protocol. Every inbound topic is validated
and handed to the queue coordinator or the session relay; handlers run to
completion on the event loop, one at a time.
"""

from dataclasses import dataclass

from .topics import initialize_all
from tools import config
from tools.logger import *
from tools.config import parse_url_list
from controllers.session_controller import configure_socketio_logging
from use_cases.queue_manager import ConnectionRegistry, QueueCoordinator
from use_cases.session_relay import SessionRelay, SocketIOTransport
import socketio


@dataclass
class CoordinatorServices:
    registry: ConnectionRegistry
    coordinator: QueueCoordinator
    relay: SessionRelay
    transport: SocketIOTransport


def _cors_allowed_origins(value):
    origins = parse_url_list(value)
    if origins == ["*"]:
        return "*"
    return origins


def get_server(cors_allowed_origins=None):
    configure_socketio_logging(["socketio", "engineio", "socketio.server", "engineio.server"])

    return socketio.AsyncServer(
        async_mode="aiohttp",
        cors_allowed_origins=_cors_allowed_origins(
            config.CORS_ALLOWED_ORIGINS if cors_allowed_origins is None else cors_allowed_origins
        ),
        logger=True,
        engineio_logger=False,
    )


def build_services(server) -> CoordinatorServices:
    registry = ConnectionRegistry()
    transport = SocketIOTransport(server)
    return CoordinatorServices(
        registry=registry,
        coordinator=QueueCoordinator(registry, transport),
        relay=SessionRelay(transport),
        transport=transport,
    )


def init(server, services: CoordinatorServices):
    """
    Initialize the Websocket controller by registering necessary topics.
    """
    log_info("Initializing Websocket Controller...")

    initialize_all(server, services)

    log_info("Websocket Controller initialized successfully.")
