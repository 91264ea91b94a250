"""
Session relay.

Routes peer-to-peer payloads between two transport addresses without
interpreting them. Fire-and-forget: no buffering, no acknowledgement, a
target that is not connected simply loses the message.
"""

from enum import Enum
from typing import Optional

from tools.logger import log_debug
from tools.protocol import Topic
from .transport import SocketIOTransport


class RelayKind(Enum):
    """Relayable payload kinds, mapped to (inbound topic, delivered topic)."""

    OFFER = (Topic.OFFER, Topic.OFFER)
    ANSWER = (Topic.ANSWER, Topic.ANSWER)
    ICE_CANDIDATE = (Topic.ICE_CANDIDATE, Topic.ICE_CANDIDATE)
    MUTE_STATUS = (Topic.MUTE_STATUS, Topic.MUTE_STATUS)
    MUTE_REQUEST = (Topic.MUTE_REQUEST, Topic.MUTE_REQUEST)
    PARTICIPANT_INFO = (Topic.PARTICIPANT_INFO, Topic.PARTICIPANT_INFO)
    DEVICE_LIST_SHARE = (Topic.DEVICES_SHARE, Topic.DEVICES_LIST)
    DEVICE_SUGGESTION = (Topic.DEVICE_SUGGEST, Topic.DEVICE_SUGGESTION)

    @property
    def inbound(self) -> Topic:
        return self.value[0]

    @property
    def delivered(self) -> Topic:
        return self.value[1]


# Routing keys stripped from the delivered payload
ADDRESSING_KEYS = ("to", "participant_id")


class SessionRelay:

    def __init__(self, transport):
        self.transport = transport

    async def relay(
        self,
        kind: RelayKind,
        target_address: str,
        payload: Optional[dict],
        from_address: str,
    ) -> bool:
        """
        Forward the payload verbatim to target_address, annotated with the
        sender's address under "from". Returns False if it was dropped.
        """
        delivered = {
            key: value
            for key, value in (payload or {}).items()
            if key not in ADDRESSING_KEYS
        }
        delivered["from"] = from_address

        log_debug(f"Relaying {kind.name.lower()} from {from_address} to {target_address}")
        return await self.transport.send(target_address, kind.delivered.value, delivered)


__all__ = ["RelayKind", "SessionRelay", "SocketIOTransport"]
