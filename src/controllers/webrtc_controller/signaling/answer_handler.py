"""
WebRTC Answer Handler

Applies the remote answer to the pairing that sent the outstanding offer.
"""

from tools.logger import log_info, log_warning
from tools.protocol import Topic
from tools.contract_validation import (
    NonEmptyStringType,
    SESSION_DESCRIPTION,
    validate_contract_with_error_response,
)


NAME = Topic.ANSWER.value

MESSAGE_CONTRACT = {
    "from": NonEmptyStringType,
    "answer": SESSION_DESCRIPTION,
}


def init(client, session):
    log_info(f"Registering topic: {NAME}")

    @client.on(NAME)
    async def handle_answer(message):
        is_valid, error_response = validate_contract_with_error_response(
            MESSAGE_CONTRACT, message
        )
        if not is_valid:
            error_response["action"] = NAME
            return error_response

        from_address = message["from"]
        log_info(f"Received answer from {from_address}")

        engine = session.current_engine()
        if engine is None:
            log_warning(f"Answer from {from_address} has no pairing, ignoring")
            return {"action": NAME, "status": "ignored"}

        applied = await engine.handle_answer(message["answer"], from_address)
        return {"action": NAME, "status": "success" if applied else "ignored"}
