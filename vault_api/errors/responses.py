"""
Error Response System for the Vault API
Provides user-friendly error messages with actionable suggestions
"""

import logging
import uuid
from typing import Optional, Dict, Any
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from vault_api.config import get_settings
from vault_api.errors.codes import ErrorCode, ERROR_TYPE_CODES, get_error_message
from vault_api.errors.types import VaultError

logger = logging.getLogger(__name__)


class AppException(HTTPException):
    """
    HTTPException with error codes and user-friendly messages

    The response body carries:
    - Standardized error code (ERR-XXXX)
    - User-friendly message and suggestion
    - Technical details (in debug mode only)
    - Unique error ID for debugging
    """

    def __init__(
        self,
        status_code: int,
        error_code: ErrorCode,
        context: Optional[Dict[str, Any]] = None,
        technical_detail: Optional[str] = None,
        log_error: bool = True
    ):
        """
        Create an application exception

        Args:
            status_code: HTTP status code
            error_code: Standardized error code from ErrorCode enum
            context: Context variables for message formatting
            technical_detail: Additional technical details (shown only in debug mode)
            log_error: Whether to log this error (default: True)
        """
        self.error_code = error_code
        self.error_id = str(uuid.uuid4())[:8]
        self.context = context or {}

        error_info = get_error_message(error_code, **self.context)

        detail = {
            "error_code": error_code.value,
            "error_id": self.error_id,
            "message": error_info["user_message"],
            "suggestion": error_info["suggestion"],
        }

        if get_settings().debug:
            detail["technical"] = technical_detail or error_info["technical"]
            if context:
                detail["context"] = context

        if log_error:
            log_level = logging.ERROR if status_code >= 500 else logging.WARNING
            logger.log(
                log_level,
                f"[{self.error_id}] {error_code.value}: {error_info['user_message']} "
                f"| Technical: {technical_detail or error_info['technical']}"
            )

        super().__init__(status_code=status_code, detail=detail)


def unauthorized(error_code: ErrorCode = ErrorCode.AUTH_REQUIRED, **context) -> AppException:
    """401 Unauthorized - Authentication required or failed"""
    return AppException(401, error_code, context)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render AppException with its prepared detail body"""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.detail,
        headers=getattr(exc, "headers", None)
    )


async def vault_error_handler(request: Request, exc: VaultError) -> JSONResponse:
    """
    Render a service-layer VaultError

    The message of a VaultError is written for the caller, so it replaces the
    generic user message of its code. Internal errors keep the generic text.
    """
    error_id = str(uuid.uuid4())[:8]
    error_code = ERROR_TYPE_CODES[exc.error_type]
    error_info = get_error_message(error_code, error_id=error_id)

    detail: Dict[str, Any] = {
        "error_code": error_code.value,
        "error_id": error_id,
        "type": exc.error_type.value,
        "message": error_info["user_message"] if exc.status_code >= 500 else exc.message,
        "suggestion": error_info["suggestion"],
    }

    if get_settings().debug:
        detail["technical"] = exc.message
        if exc.details:
            detail["details"] = exc.details

    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(log_level, f"[{error_id}] {error_code.value} {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=detail)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all exception handler for unexpected errors

    Converts unhandled exceptions to standardized error responses
    """
    error_id = str(uuid.uuid4())[:8]

    logger.exception(f"[{error_id}] Unhandled exception: {str(exc)}")

    error_code = ErrorCode.SYSTEM_INTERNAL_ERROR
    error_info = get_error_message(error_code, error_id=error_id)

    detail = {
        "error_code": error_code.value,
        "error_id": error_id,
        "type": "internal",
        "message": error_info["user_message"],
        "suggestion": error_info["suggestion"],
    }

    if get_settings().debug:
        detail["technical"] = str(exc)
        detail["exception"] = type(exc).__name__

    return JSONResponse(status_code=500, content=detail)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the vault's exception handlers on an application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(VaultError, vault_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
