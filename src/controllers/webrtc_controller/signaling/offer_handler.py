"""
WebRTC Offer Handler

Handles SDP offers relayed from the remote peer. The lifecycle controller picks
(or builds) the engine for the pairing, which answers through the relay.
"""

from tools.logger import log_info, log_warning
from tools.protocol import Topic
from tools.contract_validation import (
    NonEmptyStringType,
    SESSION_DESCRIPTION,
    validate_contract_with_error_response,
)


NAME = Topic.OFFER.value

MESSAGE_CONTRACT = {
    "from": NonEmptyStringType,
    "offer": SESSION_DESCRIPTION,
}


def init(client, session):
    """
    Initialize the WebRTC offer handler.

    Args:
        client: Socket.IO client
        session: lifecycle controller owning the negotiation engine
    """
    log_info(f"Registering topic: {NAME}")

    @client.on(NAME)
    async def handle_offer(message):
        """
        Handle incoming WebRTC offer.

        Flow:
        1. Validate message
        2. Get the engine for this pairing (fresh one if the last cycle ended)
        3. Apply the offer; the engine sends the answer back
        """
        is_valid, error_response = validate_contract_with_error_response(
            MESSAGE_CONTRACT, message
        )
        if not is_valid:
            error_response["action"] = NAME
            return error_response

        from_address = message["from"]
        log_info(f"Received offer from {from_address}")

        engine = await session.engine_for_offer(from_address)
        if engine is None:
            log_warning(f"No pairing accepts an offer from {from_address}")
            return {"action": NAME, "status": "error", "error": "Offer not expected"}

        answered = await engine.handle_offer(message["offer"], from_address)
        return {"action": NAME, "status": "success" if answered else "ignored"}
