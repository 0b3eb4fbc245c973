"""
Errors Package

Provides standardized error handling for the Vault API:
- ErrorCode enum with standardized error codes (ERR-XXXX)
- ErrorType enum for the vault error taxonomy
- Exception classes (VaultError and subclasses)
- AppException and FastAPI exception handlers
"""

# Error codes and messages
from vault_api.errors.codes import ErrorCode, ERROR_MESSAGES, ERROR_TYPE_CODES, get_error_message

# Error types and exception classes
from vault_api.errors.types import (
    ErrorType,
    VaultError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    AlreadyExistsError,
    ResourceExhaustedError,
    ConcurrentModificationError,
    InternalError,
)

# HTTP error responses
from vault_api.errors.responses import (
    AppException,
    unauthorized,
    app_exception_handler,
    vault_error_handler,
    generic_exception_handler,
    register_exception_handlers,
)

__all__ = [
    # Codes
    "ErrorCode",
    "ERROR_MESSAGES",
    "ERROR_TYPE_CODES",
    "get_error_message",
    # Types
    "ErrorType",
    "VaultError",
    "InvalidArgumentError",
    "NotFoundError",
    "PermissionDeniedError",
    "AlreadyExistsError",
    "ResourceExhaustedError",
    "ConcurrentModificationError",
    "InternalError",
    # Responses
    "AppException",
    "unauthorized",
    "app_exception_handler",
    "vault_error_handler",
    "generic_exception_handler",
    "register_exception_handlers",
]
