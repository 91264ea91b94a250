"""
WebRTC Signaling Module

Handles relayed WebRTC signaling messages (offer, answer, ICE candidates)
arriving on the client's Socket.IO connection.
"""

from .offer_handler import init as init_offer_handler
from .answer_handler import init as init_answer_handler
from .ice_handler import init as init_ice_handler


def initialize_signaling(client, session):
    """
    Initialize all signaling handlers.

    Args:
        client: Socket.IO client
        session: lifecycle controller that owns the pairing's engine
    """
    init_offer_handler(client, session)
    init_answer_handler(client, session)
    init_ice_handler(client, session)
