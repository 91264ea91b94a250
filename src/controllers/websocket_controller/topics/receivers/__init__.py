from functools import wraps
from tools.logger import *
from tools.contract_validation import validate_contract_with_error_response


def topic(name):
    """
    Decorator to register a topic handler.
    """

    def wrapper(init):
        log_info(f"Registering topic: {name}")
        return init

    return wrapper


def validate_message(contract, name):
    """
    Decorator to validate incoming messages against a contract schema.

    The wrapped handler receives (sid, message). When validation fails the
    handler is not called and the error response is returned to the sender
    as the event acknowledgement.

    Args:
        contract: The contract schema to validate against
        name: The topic name (used for action field in error responses)

    Returns:
        Decorator function
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(sid, message=None, *args, **kwargs):
            is_valid, error_response = validate_contract_with_error_response(
                contract, message
            )
            if not is_valid:
                log_warning(f"Rejected {name} from {sid}")
                error_response["action"] = name
                return error_response

            return await func(sid, message, *args, **kwargs)

        return wrapper

    return decorator


def status_response(name, succeeded):
    return {"action": name, "status": "success" if succeeded else "ignored"}
