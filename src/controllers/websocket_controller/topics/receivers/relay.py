"""
Addressed peer payloads.

Each kind carries {"to": <sid>} plus its own required fields and is forwarded
untouched to that sid with the sender's sid added under "from".
"""

from tools.logger import *
from tools.contract_validation import (
    ADDRESSED_MESSAGE,
    BooleanType,
    DEVICE,
    ICE_CANDIDATE,
    ListType,
    OptionalType,
    SESSION_DESCRIPTION,
    USER_INFO,
)
from use_cases.session_relay import RelayKind
from . import topic, validate_message, status_response

MESSAGE_TYPES = {
    RelayKind.OFFER: {**ADDRESSED_MESSAGE, "offer": SESSION_DESCRIPTION},
    RelayKind.ANSWER: {**ADDRESSED_MESSAGE, "answer": SESSION_DESCRIPTION},
    RelayKind.ICE_CANDIDATE: {
        **ADDRESSED_MESSAGE,
        "candidate": OptionalType(ICE_CANDIDATE),  # null for end-of-candidates
    },
    RelayKind.MUTE_STATUS: {**ADDRESSED_MESSAGE, "is_muted": BooleanType},
    RelayKind.MUTE_REQUEST: {**ADDRESSED_MESSAGE, "mute": BooleanType},
    RelayKind.PARTICIPANT_INFO: {**ADDRESSED_MESSAGE, "user_info": USER_INFO},
    RelayKind.DEVICE_LIST_SHARE: {**ADDRESSED_MESSAGE, "devices": ListType(DEVICE)},
}


def _register(server, services, kind):
    name = kind.inbound.value

    @server.on(name)
    @validate_message(MESSAGE_TYPES[kind], name)
    async def callback(sid, message):
        delivered = await services.relay.relay(kind, message["to"], message, sid)
        return status_response(name, delivered)


def init(server, services):
    for kind in MESSAGE_TYPES:
        topic(kind.inbound.value)(_register)(server, services, kind)
