"""
Error Types - Enums and exception classes for vault error handling

Contains:
- ErrorType enum (the vault's error taxonomy)
- Exception classes (VaultError and one subclass per kind)
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorType(Enum):
    """Standard error types"""
    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    ALREADY_EXISTS = "already_exists"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    ABORTED = "aborted"
    INTERNAL = "internal"


class VaultError(Exception):
    """Base exception for vault operations"""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidArgumentError(VaultError):
    """Malformed or policy-violating input"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_type=ErrorType.INVALID_ARGUMENT,
            status_code=400,  # Bad Request
            details=details
        )


class NotFoundError(VaultError):
    """Item missing or soft-deleted"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_type=ErrorType.NOT_FOUND,
            status_code=404,  # Not Found
            details=details
        )


class PermissionDeniedError(VaultError):
    """Caller's access level is insufficient"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_type=ErrorType.PERMISSION_DENIED,
            status_code=403,  # Forbidden
            details=details
        )


class AlreadyExistsError(VaultError):
    """Sibling name collision"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_type=ErrorType.ALREADY_EXISTS,
            status_code=409,  # Conflict
            details=details
        )


class ResourceExhaustedError(VaultError):
    """Storage quota or tree-traversal ceiling exceeded"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_type=ErrorType.RESOURCE_EXHAUSTED,
            status_code=429,  # Too Many Requests
            details=details
        )


class ConcurrentModificationError(VaultError):
    """An item changed between read and write; nothing was written"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_type=ErrorType.ABORTED,
            status_code=409,  # Conflict
            details=details
        )


class InternalError(VaultError):
    """Unexpected store or storage-backend failure"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_type=ErrorType.INTERNAL,
            status_code=500,  # Internal Server Error
            details=details
        )
