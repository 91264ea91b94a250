"""
Session Controller

Client-side half of the system: a connection-scoped SignalingClient wrapping
one Socket.IO client, and the participant / moderator lifecycle controllers
that drive a PeerNegotiationEngine from relayed lifecycle events.
"""

from tools.logger import *
from tools.protocol import Topic, is_known_topic
from tools.contract_validation import USER_INFO, require_contract
import logging
import socketio


class PingPongFilter(logging.Filter):
    """Filter to suppress keep-alive ping/pong chatter from socketio/engineio."""

    def filter(self, record):
        message = record.getMessage().lower()
        if "packet ping" in message or "packet pong" in message:
            return False
        return True


def configure_socketio_logging(logger_names):
    """Attach the ping/pong filter to the given socketio/engineio loggers."""
    ping_filter = PingPongFilter()

    for logger_name in logger_names:
        logger = logging.getLogger(logger_name)
        logger.addFilter(ping_filter)


async def get_client():
    configure_socketio_logging(["socketio", "engineio", "socketio.client", "engineio.client"])

    client = socketio.AsyncClient(
        reconnection=True,
        reconnection_attempts=0,
        reconnection_delay=1,
        reconnection_delay_max=5,
        logger=True,
        engineio_logger=True,
    )

    @client.event
    async def connect_error(data):
        log_error(f"Socket.IO connection error: {data}")

    @client.on("*")
    async def unrecognized(event, *args):
        if is_known_topic(event):
            log_debug(f"No handler registered for {event}, ignoring")
        else:
            log_warning(f"Dropping unrecognized event: {event}")

    return client


class SignalingClient:
    """
    Outbound half of one client connection.

    Every method emits one protocol event. While the socket is down the emit is
    dropped and logged; callers treat the coordinator as fire-and-forget.
    """

    def __init__(self, client):
        self.client = client

    @property
    def sid(self):
        return self.client.get_sid()

    @property
    def connected(self) -> bool:
        return bool(self.client.connected)

    async def emit(self, topic: Topic, data=None) -> bool:
        if not self.connected:
            log_warning(f"Not connected, dropping {topic.value}")
            return False
        try:
            await self.client.emit(topic.value, data)
        except socketio.exceptions.SocketIOError as e:
            log_warning(f"Failed to emit {topic.value}: {e}")
            return False
        return True

    # Registry
    async def join(self, identity: str, display_name: str, user_info: dict) -> bool:
        require_contract(USER_INFO, user_info)
        return await self.emit(
            Topic.PARTICIPANT_JOIN,
            {"id": identity, "name": display_name, **user_info},
        )

    async def leave(self) -> bool:
        return await self.emit(Topic.PARTICIPANT_LEAVE)

    async def connect_as_moderator(self) -> bool:
        return await self.emit(Topic.MODERATOR_CONNECT)

    async def request_queue(self) -> bool:
        return await self.emit(Topic.QUEUE_REQUEST)

    # Inspection lifecycle
    async def start_inspection(self, participant_id: str) -> bool:
        return await self.emit(Topic.INSPECTION_START, {"participant_id": participant_id})

    async def admit(self, participant_id: str) -> bool:
        return await self.emit(Topic.PARTICIPANT_ADMIT, {"participant_id": participant_id})

    async def remove(self, participant_id: str) -> bool:
        return await self.emit(Topic.PARTICIPANT_REMOVE, {"participant_id": participant_id})

    async def cancel_inspection(self, participant_id: str) -> bool:
        return await self.emit(Topic.INSPECTION_CANCEL, {"participant_id": participant_id})

    async def suggest_device(self, participant_id: str, device_id: str, device_label: str) -> bool:
        return await self.emit(
            Topic.DEVICE_SUGGEST,
            {"participant_id": participant_id, "device_id": device_id, "device_label": device_label},
        )

    # Relayed peer payloads
    async def send_offer(self, to: str, offer: dict) -> bool:
        return await self.emit(Topic.OFFER, {"to": to, "offer": offer})

    async def send_answer(self, to: str, answer: dict) -> bool:
        return await self.emit(Topic.ANSWER, {"to": to, "answer": answer})

    async def send_ice_candidate(self, to: str, candidate) -> bool:
        return await self.emit(Topic.ICE_CANDIDATE, {"to": to, "candidate": candidate})

    async def share_devices(self, to: str, devices: list) -> bool:
        return await self.emit(Topic.DEVICES_SHARE, {"to": to, "devices": devices})

    async def send_participant_info(self, to: str, user_info: dict) -> bool:
        return await self.emit(Topic.PARTICIPANT_INFO, {"to": to, "user_info": user_info})

    async def send_mute_status(self, to: str, is_muted: bool) -> bool:
        return await self.emit(Topic.MUTE_STATUS, {"to": to, "is_muted": is_muted})

    async def request_mute(self, to: str, mute: bool) -> bool:
        return await self.emit(Topic.MUTE_REQUEST, {"to": to, "mute": mute})

    async def disconnect(self) -> None:
        if self.connected:
            await self.client.disconnect()
