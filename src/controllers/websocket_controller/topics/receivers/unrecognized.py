from tools.logger import *
from tools.protocol import is_known_topic
from . import topic

NAME = "*"


@topic(NAME)
def init(server, services):
    """
    Catch-all for events without a registered handler.
    """

    @server.on(NAME)
    async def callback(event, sid, *args):
        if is_known_topic(event):
            log_warning(f"{event} from {sid} is not accepted by the coordinator, dropping")
        else:
            log_warning(f"Dropping unrecognized event {event} from {sid}")
        return {"action": event, "status": "error", "error": "Unrecognized event"}
