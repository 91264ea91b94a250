"""
Moderator-issued inspection lifecycle topics.

All four carry {"participant_id"} and are no-ops when the participant is
absent or held by another moderator.
"""

from tools.logger import *
from tools.protocol import Topic
from tools.contract_validation import PARTICIPANT_MESSAGE
from . import topic, validate_message, status_response

OPERATIONS = {
    Topic.INSPECTION_START.value: "start_inspection",
    Topic.INSPECTION_CANCEL.value: "cancel_inspection",
    Topic.PARTICIPANT_ADMIT.value: "admit",
    Topic.PARTICIPANT_REMOVE.value: "remove",
}


def _register(server, name, operation):

    @server.on(name)
    @validate_message(PARTICIPANT_MESSAGE, name)
    async def callback(sid, message):
        succeeded = await operation(sid, message["participant_id"])
        return status_response(name, succeeded)


def init(server, services):
    for name, attribute in OPERATIONS.items():
        topic(name)(_register)(server, name, getattr(services.coordinator, attribute))
