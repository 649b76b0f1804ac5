"""
Standardised error handling for WanlyConsole.
"""

from wanly_console.core.constants import ErrorCode, RETRYABLE_ERRORS


class ApiError(Exception):
    """Raised when a call to the queue service or worker registry fails."""

    def __init__(self, code: str, message: str, retryable: bool | None = None,
                 status_code: int | None = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        # auto-detect retryable from code if not explicitly set
        self.retryable = retryable if retryable is not None else (code in RETRYABLE_ERRORS)
        super().__init__(f"[{code}] {message}")


def is_retryable(code: str) -> bool:
    return code in RETRYABLE_ERRORS


def code_for_status(status_code: int) -> str:
    """Map a non-2xx HTTP status to an error code."""
    if status_code in (401, 403):
        return ErrorCode.UNAUTHORIZED
    if status_code == 404:
        return ErrorCode.NOT_FOUND
    if status_code == 409:
        return ErrorCode.CONFLICT
    if status_code == 429 or status_code >= 500:
        return ErrorCode.SERVER
    return ErrorCode.REQUEST_FAILED
