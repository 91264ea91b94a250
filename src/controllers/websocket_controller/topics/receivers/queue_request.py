from tools.protocol import Topic
from . import topic, status_response

NAME = Topic.QUEUE_REQUEST.value


@topic(NAME)
def init(server, services):
    """
    Handle the 'queue:request' topic with a snapshot for the requester only.
    """

    @server.on(NAME)
    async def callback(sid, *args):
        await services.coordinator.send_snapshot(sid)
        return status_response(NAME, True)
