from tools.logger import *
from tools.protocol import Topic
from . import topic

NAME = Topic.DISCONNECT.value


@topic(NAME)
def init(server, services):
    """
    Handle the 'disconnect' topic: purge everything bound to the closed sid.
    """

    @server.on(NAME)
    async def callback(sid, *args):
        services.transport.detach(sid)
        removed = await services.coordinator.handle_disconnect(sid)
        if removed is not None:
            log_info(f"Participant disconnected: {removed.display_name}")
        else:
            log_info(f"Client disconnected: {sid}")
