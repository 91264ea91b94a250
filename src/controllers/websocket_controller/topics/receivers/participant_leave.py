from tools.logger import *
from tools.protocol import Topic
from . import topic, status_response

NAME = Topic.PARTICIPANT_LEAVE.value


@topic(NAME)
def init(server, services):
    """
    Handle the 'participant:leave' topic, the acknowledgement a participant
    sends once its admitted/removed teardown is done.
    """

    @server.on(NAME)
    async def callback(sid, *args):
        removed = await services.coordinator.leave(sid)
        return status_response(NAME, removed)
