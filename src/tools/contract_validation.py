class BaseType:

    def __init__(self):
        raise Exception("Cannot instantiate")

    @staticmethod
    def validate():
        raise NotImplementedError("Subclasses should implement this!")


class NumberType(BaseType):

    @staticmethod
    def validate(value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError("Value must be a number.")


class StringType(BaseType):

    @staticmethod
    def validate(value):
        if not isinstance(value, str):
            raise TypeError("Value must be a string.")


class NonEmptyStringType(BaseType):

    @staticmethod
    def validate(value):
        if not isinstance(value, str):
            raise TypeError("Value must be a string.")
        if not value.strip():
            raise TypeError("Value must not be empty.")


class BooleanType(BaseType):

    @staticmethod
    def validate(value):
        if not isinstance(value, bool):
            raise TypeError("Value must be a boolean.")


class EnumType(BaseType):

    def __init__(self, *choices):
        self.choices = choices

    def validate(self, value):
        if value not in self.choices:
            raise TypeError(f"Value must be one of {', '.join(self.choices)}.")


class ListType(BaseType):

    def __init__(self, item_type):
        self.item_type = item_type

    def validate(self, value):

        if not isinstance(value, list):
            raise TypeError("Value must be a list.")

        for item in value:
            if isinstance(self.item_type, dict):
                validate_contract(self.item_type, item)
            else:
                self.item_type.validate(item)


class OptionalType(BaseType):

    def __init__(self, item_type):
        self.item_type = item_type

    def validate(self, value):
        if value is None:
            return
        if isinstance(self.item_type, dict):
            validate_contract(self.item_type, value)
        else:
            self.item_type.validate(value)


## Shared payload shapes
SESSION_DESCRIPTION = {
    "sdp": StringType,
    "type": EnumType("offer", "answer"),
}

ICE_CANDIDATE = {
    "candidate": StringType,
    "sdp_mid": OptionalType(StringType),
    "sdp_mline_index": OptionalType(NumberType),
}

DEVICE = {
    "device_id": StringType,
    "label": StringType,
    "kind": EnumType("videoinput", "audioinput"),
}

USER_INFO = {
    "browser": StringType,
    "os": StringType,
    "device_type": StringType,
}

ADDRESSED_MESSAGE = {"to": NonEmptyStringType}

PARTICIPANT_MESSAGE = {"participant_id": NonEmptyStringType}


def validate_contract(contract, data):
    if not isinstance(data, dict):
        raise TypeError("Message must be an object.")
    for key, value in contract.items():
        if key not in data:
            if isinstance(value, OptionalType):
                continue
            raise KeyError(f"Missing key: {key}")
        if isinstance(value, dict):
            validate_contract(value, data[key])
        else:
            value.validate(data[key])


class ContractValidationError(Exception):
    """Exception raised when contract validation fails."""

    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        self.message = message
        super().__init__(message)


def validate_contract_with_error_response(contract, data):
    """
    Validate a contract and return an error response if validation fails.

    Args:
        contract: The contract schema to validate against
        data: The data to validate

    Returns:
        tuple: (is_valid: bool, error_response: dict or None)
            - If valid: (True, None)
            - If invalid: (False, error_response_dict with status and error fields)
    """
    from tools.logger import log_error

    try:
        validate_contract(contract, data)
        return (True, None)
    except KeyError as e:
        log_error(f"Contract validation error - missing field: {e}")
        return (
            False,
            {
                "status": "error",
                "error": f"Missing required field: {str(e)}",
            },
        )
    except TypeError as e:
        log_error(f"Contract validation error - type mismatch: {e}")
        return (
            False,
            {
                "status": "error",
                "error": f"Invalid field type: {str(e)}",
            },
        )


def require_contract(contract, data):
    """
    Validate a payload, raising ContractValidationError instead of returning.

    Used by client-side code that builds outbound payloads.
    """
    try:
        validate_contract(contract, data)
    except KeyError as e:
        raise ContractValidationError("missing_field", str(e)) from e
    except TypeError as e:
        raise ContractValidationError("type_mismatch", str(e)) from e
