from .receivers.connect import init as init_connect
from .receivers.disconnect import init as init_disconnect
from .receivers.participant_join import init as init_participant_join
from .receivers.participant_leave import init as init_participant_leave
from .receivers.moderator_connect import init as init_moderator_connect
from .receivers.queue_request import init as init_queue_request
from .receivers.inspection import init as init_inspection
from .receivers.device_suggest import init as init_device_suggest
from .receivers.relay import init as init_relay
from .receivers.unrecognized import init as init_unrecognized


def initialize_all(server, services):

    # Initialize all topic receivers
    init_connect(server, services)
    init_disconnect(server, services)
    init_participant_join(server, services)
    init_participant_leave(server, services)
    init_moderator_connect(server, services)
    init_queue_request(server, services)
    init_inspection(server, services)
    init_device_suggest(server, services)
    init_relay(server, services)
    init_unrecognized(server, services)
