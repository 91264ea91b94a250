"""
Wire vocabulary shared by the coordinator and its clients.

Every Socket.IO event exchanged by the system is a member of Topic. Anything
else arriving on a socket is unrecognized and dropped by the catch-all
handlers.
"""

from enum import Enum


class Topic(str, Enum):
    # Registry
    PARTICIPANT_JOIN = "participant:join"
    PARTICIPANT_LEAVE = "participant:leave"
    MODERATOR_CONNECT = "moderator:connect"
    QUEUE_REQUEST = "queue:request"
    QUEUE_UPDATE = "queue:update"
    QUEUE_NEXT = "queue:next"
    PARTICIPANT_JOINED = "participant:joined"

    # Inspection lifecycle
    INSPECTION_START = "inspection:start"
    INSPECTION_STARTED = "inspection:started"
    INSPECTION_READY = "inspection:ready"
    INSPECTION_CANCEL = "inspection:cancel"
    INSPECTION_CANCELLED = "inspection:cancelled"
    PARTICIPANT_ADMIT = "participant:admit"
    PARTICIPANT_ADMITTED = "participant:admitted"
    PARTICIPANT_REMOVE = "participant:remove"
    PARTICIPANT_REMOVED = "participant:removed"

    # Relayed between peers
    OFFER = "webrtc:offer"
    ANSWER = "webrtc:answer"
    ICE_CANDIDATE = "webrtc:ice-candidate"
    DEVICES_SHARE = "devices:share"
    DEVICES_LIST = "devices:list"
    DEVICE_SUGGEST = "device:suggest"
    DEVICE_SUGGESTION = "device:suggestion"
    MUTE_STATUS = "mute:status"
    MUTE_REQUEST = "mute:request"
    PARTICIPANT_INFO = "participant:info"

    # Socket.IO reserved
    CONNECT = "connect"
    DISCONNECT = "disconnect"


KNOWN_TOPICS = frozenset(topic.value for topic in Topic)


def is_known_topic(name) -> bool:
    return name in KNOWN_TOPICS
