from tools.logger import *
from tools.protocol import Topic
from tools.contract_validation import (
    NonEmptyStringType,
    OptionalType,
    StringType,
)
from . import topic, validate_message, status_response

NAME = Topic.PARTICIPANT_JOIN.value

MESSAGE_TYPE = {
    "id": NonEmptyStringType,
    "name": NonEmptyStringType,
    "browser": OptionalType(StringType),
    "os": OptionalType(StringType),
    "device_type": OptionalType(StringType),
}


@topic(NAME)
def init(server, services):
    """
    Handle the 'participant:join' topic.

    Registers (or re-registers at the back of the queue) the identity under
    the sender's sid, announces it to moderators and answers the joiner with
    the current snapshot.
    """

    @server.on(NAME)
    @validate_message(MESSAGE_TYPE, NAME)
    async def callback(sid, message):
        participant = await services.coordinator.join(
            sid,
            message["id"],
            message["name"],
            browser=message.get("browser") or "",
            os=message.get("os") or "",
            device_type=message.get("device_type") or "",
        )
        log_info(f"Participant joined: {participant.display_name}")
        return status_response(NAME, True)
