"""
WebRTC ICE Candidate Handler

Handles ICE candidate exchange for NAT traversal. Candidates that arrive before
the remote description are buffered by the engine, so the engine is created on
demand here.
"""

from tools.logger import log_debug, log_info, log_warning
from tools.protocol import Topic
from tools.contract_validation import (
    ICE_CANDIDATE,
    NonEmptyStringType,
    OptionalType,
    validate_contract_with_error_response,
)


NAME = Topic.ICE_CANDIDATE.value

MESSAGE_CONTRACT = {
    "from": NonEmptyStringType,
    "candidate": OptionalType(ICE_CANDIDATE),  # null for end-of-candidates
}


def init(client, session):
    log_info(f"Registering topic: {NAME}")

    @client.on(NAME)
    async def handle_ice_candidate(message):
        is_valid, error_response = validate_contract_with_error_response(
            MESSAGE_CONTRACT, message
        )
        if not is_valid:
            error_response["action"] = NAME
            return error_response

        from_address = message["from"]
        log_debug(f"Received ICE candidate from {from_address}")

        engine = await session.engine_for_candidate(from_address)
        if engine is None:
            log_warning(f"ICE candidate from {from_address} has no pairing, ignoring")
            return {"action": NAME, "status": "ignored"}

        accepted = await engine.handle_ice_candidate(message.get("candidate"), from_address)
        return {"action": NAME, "status": "success" if accepted else "ignored"}
