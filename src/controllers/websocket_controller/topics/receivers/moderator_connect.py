from tools.logger import *
from tools.protocol import Topic
from . import topic, status_response

NAME = Topic.MODERATOR_CONNECT.value


@topic(NAME)
def init(server, services):
    """
    Handle the 'moderator:connect' topic: subscribe the sid to queue
    broadcasts and send it the current snapshot.
    """

    @server.on(NAME)
    async def callback(sid, *args):
        await services.coordinator.connect_moderator(sid)
        log_info(f"Moderator connected: {sid}")
        return status_response(NAME, True)
