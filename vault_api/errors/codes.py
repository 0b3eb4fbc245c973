"""
Error codes and user-facing messages

Every error response carries an ERR-XXXX code so clients can branch on it
without parsing messages.
"""

from enum import Enum
from typing import Any, Dict

from vault_api.errors.types import ErrorType


class ErrorCode(str, Enum):
    # Authentication (1xxx)
    AUTH_REQUIRED = "ERR-1001"

    # Vault client errors (4xxx)
    VAULT_INVALID_ARGUMENT = "ERR-4001"
    VAULT_PERMISSION_DENIED = "ERR-4003"
    VAULT_ITEM_NOT_FOUND = "ERR-4004"
    VAULT_ALREADY_EXISTS = "ERR-4009"
    VAULT_CONCURRENT_MODIFICATION = "ERR-4010"
    VAULT_RESOURCE_EXHAUSTED = "ERR-4029"

    # Server errors (5xxx)
    SYSTEM_INTERNAL_ERROR = "ERR-5000"


ERROR_MESSAGES: Dict[ErrorCode, Dict[str, str]] = {
    ErrorCode.AUTH_REQUIRED: {
        "user_message": "Authentication required",
        "suggestion": "Sign in and retry the request.",
        "technical": "No authenticated principal on the request",
    },
    ErrorCode.VAULT_INVALID_ARGUMENT: {
        "user_message": "The request contains invalid data",
        "suggestion": "Check the name, type and size of the item and try again.",
        "technical": "Input validation failed",
    },
    ErrorCode.VAULT_PERMISSION_DENIED: {
        "user_message": "You do not have permission to do that",
        "suggestion": "Ask the owner to share the item with you.",
        "technical": "Access level insufficient for operation",
    },
    ErrorCode.VAULT_ITEM_NOT_FOUND: {
        "user_message": "The item could not be found",
        "suggestion": "It may have been deleted. Refresh and try again.",
        "technical": "Item missing or soft-deleted",
    },
    ErrorCode.VAULT_ALREADY_EXISTS: {
        "user_message": "An item with that name already exists here",
        "suggestion": "Choose a different name.",
        "technical": "Sibling name collision",
    },
    ErrorCode.VAULT_CONCURRENT_MODIFICATION: {
        "user_message": "The item was changed by someone else",
        "suggestion": "Refresh and try again.",
        "technical": "Optimistic version check failed",
    },
    ErrorCode.VAULT_RESOURCE_EXHAUSTED: {
        "user_message": "A vault limit was reached",
        "suggestion": "Free up space or work on a smaller folder.",
        "technical": "Quota or traversal ceiling exceeded",
    },
    ErrorCode.SYSTEM_INTERNAL_ERROR: {
        "user_message": "Something went wrong on our side",
        "suggestion": "Try again later. Quote error id {error_id} if it persists.",
        "technical": "Unhandled exception",
    },
}

ERROR_TYPE_CODES: Dict[ErrorType, ErrorCode] = {
    ErrorType.INVALID_ARGUMENT: ErrorCode.VAULT_INVALID_ARGUMENT,
    ErrorType.NOT_FOUND: ErrorCode.VAULT_ITEM_NOT_FOUND,
    ErrorType.PERMISSION_DENIED: ErrorCode.VAULT_PERMISSION_DENIED,
    ErrorType.ALREADY_EXISTS: ErrorCode.VAULT_ALREADY_EXISTS,
    ErrorType.RESOURCE_EXHAUSTED: ErrorCode.VAULT_RESOURCE_EXHAUSTED,
    ErrorType.ABORTED: ErrorCode.VAULT_CONCURRENT_MODIFICATION,
    ErrorType.INTERNAL: ErrorCode.SYSTEM_INTERNAL_ERROR,
}


def get_error_message(error_code: ErrorCode, **context: Any) -> Dict[str, str]:
    """Return the message set for a code with ``context`` substituted"""
    template = ERROR_MESSAGES.get(error_code, ERROR_MESSAGES[ErrorCode.SYSTEM_INTERNAL_ERROR])
    formatted = {}
    for key, value in template.items():
        try:
            formatted[key] = value.format(**context)
        except (KeyError, IndexError):
            formatted[key] = value
    return formatted
