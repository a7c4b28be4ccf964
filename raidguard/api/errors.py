"""
RaidGuard - API Error System
============================

Centralized error codes and exception handling for consistent API responses.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCode(str, Enum):
    """
    Centralized error codes for the API.

    Format: CATEGORY_SPECIFIC_ERROR
    """

    # Engine errors (503)
    ENGINE_NOT_INITIALIZED = "ENGINE_NOT_INITIALIZED"

    # Validation errors (400)
    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_INVALID_TYPE = "VALIDATION_INVALID_TYPE"

    # Server errors (500)
    SERVER_ERROR = "SERVER_ERROR"


# =============================================================================
# Error Messages
# =============================================================================

ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.ENGINE_NOT_INITIALIZED: "Detection engine is not initialized",
    ErrorCode.VALIDATION_FAILED: "Request validation failed",
    ErrorCode.VALIDATION_INVALID_TYPE: "Invalid detection type specified",
    ErrorCode.SERVER_ERROR: "An internal server error occurred",
}


# =============================================================================
# Default Status Codes
# =============================================================================

ERROR_STATUS_CODES: Dict[ErrorCode, int] = {
    ErrorCode.ENGINE_NOT_INITIALIZED: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.VALIDATION_FAILED: HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_INVALID_TYPE: HTTP_400_BAD_REQUEST,
    ErrorCode.SERVER_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
}


# =============================================================================
# API Error Exception
# =============================================================================

class APIError(HTTPException):
    """
    Custom API exception with error codes.

    Usage:
        raise APIError(ErrorCode.ENGINE_NOT_INITIALIZED)
        raise APIError(ErrorCode.VALIDATION_FAILED, details={"field": "type"})
    """

    def __init__(
        self,
        code: ErrorCode,
        status_code: Optional[int] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error_code = code
        self.error_message = message or ERROR_MESSAGES.get(code, "An error occurred")
        self.error_details = details

        if status_code is None:
            status_code = ERROR_STATUS_CODES.get(code, HTTP_400_BAD_REQUEST)

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error_code": code.value,
                "message": self.error_message,
                "details": details,
            },
            headers=headers,
        )


# =============================================================================
# Helper Functions
# =============================================================================

def error_response(
    code: ErrorCode,
    status_code: Optional[int] = None,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """
    Create a JSON error response without raising an exception.

    Useful for returning errors in exception handlers.
    """
    if status_code is None:
        status_code = ERROR_STATUS_CODES.get(code, HTTP_400_BAD_REQUEST)

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error_code": code.value,
            "message": message or ERROR_MESSAGES.get(code, "An error occurred"),
            "details": details,
        },
    )


def bad_request(code: ErrorCode = ErrorCode.VALIDATION_FAILED, details: Optional[Dict[str, Any]] = None) -> APIError:
    """Shorthand for 400 errors."""
    return APIError(code, details=details)


__all__ = [
    "ErrorCode",
    "ERROR_MESSAGES",
    "ERROR_STATUS_CODES",
    "APIError",
    "error_response",
    "bad_request",
]
