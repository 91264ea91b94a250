from tools.logger import *
from tools.protocol import Topic
from . import topic

NAME = Topic.CONNECT.value


@topic(NAME)
def init(server, services):
    """
    Handle the 'connect' topic: the sid becomes a reachable transport address.
    """

    @server.on(NAME)
    async def callback(sid, environ=None, auth=None):
        services.transport.attach(sid)
        log_info(f"Client connected: {sid}")
