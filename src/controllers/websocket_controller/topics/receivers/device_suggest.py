from tools.logger import *
from tools.protocol import Topic
from tools.contract_validation import NonEmptyStringType, StringType
from use_cases.session_relay import RelayKind
from . import topic, validate_message, status_response

NAME = Topic.DEVICE_SUGGEST.value

MESSAGE_TYPE = {
    "participant_id": NonEmptyStringType,
    "device_id": NonEmptyStringType,
    "device_label": StringType,
}


@topic(NAME)
def init(server, services):
    """
    Handle the 'device:suggest' topic.

    The moderator addresses the participant by identity; the registry
    resolves it to the participant's current sid before relaying.
    """

    @server.on(NAME)
    @validate_message(MESSAGE_TYPE, NAME)
    async def callback(sid, message):
        participant = services.registry.lookup(message["participant_id"])
        if participant is None:
            log_warning(f"Device suggestion for unknown participant {message['participant_id']}")
            return status_response(NAME, False)

        delivered = await services.relay.relay(
            RelayKind.DEVICE_SUGGESTION, participant.transport_address, message, sid
        )
        return status_response(NAME, delivered)
