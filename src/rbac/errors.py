"""Standardized authorization error responses."""

from enum import Enum
from typing import Any, Dict, Optional

from starlette.responses import JSONResponse


class ErrorCode(str, Enum):
    """Standardized error codes for consistent client handling."""
    AUTH_REQUIRED = "AUTH_REQUIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CLIENT_ACCESS_DENIED = "CLIENT_ACCESS_DENIED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_STATUS_CODES = {
    ErrorCode.AUTH_REQUIRED: 401,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.CLIENT_ACCESS_DENIED: 403,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INTERNAL_ERROR: 500,
}

_DEFAULT_MESSAGES = {
    ErrorCode.AUTH_REQUIRED: "Authentication required",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
}


def create_error_response(
    code: ErrorCode,
    message: Optional[str] = None,
    status_code: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Create a standardized error response."""
    content: Dict[str, Any] = {
        "error": code.value,
        "code": code.value,
        "message": message or _DEFAULT_MESSAGES.get(code, code.value),
    }
    if details:
        content["details"] = details

    return JSONResponse(
        status_code=status_code or _STATUS_CODES.get(code, 400),
        content=content,
    )
