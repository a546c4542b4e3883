"""API error taxonomy shared by services and the HTTP layer.

Services raise :class:`ApiError` subclasses; ``famtree_web`` turns them into
JSON responses.  Only the safe, generic message for a code ever reaches the
client; the underlying detail is logged server-side via :func:`log_error`.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_log = logging.getLogger('famtree.errors')


class ErrorCode:
    """Error codes for client-side handling."""
    UNAUTHORIZED = 'UNAUTHORIZED'
    FORBIDDEN = 'FORBIDDEN'
    NOT_FOUND = 'NOT_FOUND'
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    CONFLICT = 'CONFLICT'
    INTERNAL_ERROR = 'INTERNAL_ERROR'
    UPLOAD_FAILED = 'UPLOAD_FAILED'
    DATABASE_ERROR = 'DATABASE_ERROR'


SAFE_MESSAGES: Dict[str, str] = {
    ErrorCode.UNAUTHORIZED: 'Authentication required',
    ErrorCode.FORBIDDEN: 'You do not have permission to perform this action',
    ErrorCode.NOT_FOUND: 'The requested resource was not found',
    ErrorCode.VALIDATION_ERROR: 'Invalid request data',
    ErrorCode.CONFLICT: 'This resource already exists',
    ErrorCode.INTERNAL_ERROR: 'An unexpected error occurred',
    ErrorCode.UPLOAD_FAILED: 'File upload failed',
    ErrorCode.DATABASE_ERROR: 'Unable to complete the operation',
}

STATUS_CODES: Dict[str, int] = {
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.UPLOAD_FAILED: 500,
    ErrorCode.DATABASE_ERROR: 500,
}


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response.

    Args:
        message: Client-facing message.  Falls back to the safe message for
                 *code* when omitted.
        code:    One of the :class:`ErrorCode` constants.
    """

    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: Optional[str] = None,
                 code: Optional[str] = None) -> None:
        if code:
            self.code = code
        self.message = message or SAFE_MESSAGES[self.code]
        super().__init__(self.message)

    @property
    def status(self) -> int:
        return STATUS_CODES.get(self.code, 500)

    def to_dict(self) -> Dict[str, str]:
        return {'error': self.message, 'code': self.code}


class ValidationError(ApiError):
    code = ErrorCode.VALIDATION_ERROR


class NotFoundError(ApiError):
    code = ErrorCode.NOT_FOUND


class FamilyNotFoundError(NotFoundError):
    """Raised when a family id or slug does not resolve."""

    def __init__(self, family_ref: str) -> None:
        self.family_ref = family_ref
        super().__init__(f'Family not found: {family_ref}')


class ConflictError(ApiError):
    code = ErrorCode.CONFLICT


def log_error(code: str, error: Any, **context: Any) -> None:
    """Log full error details server-side as one JSON line.

    Never send the output of this function to a client.
    """
    entry = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'level': 'error',
        'code': code,
        'message': str(error),
    }
    entry.update(context)
    _log.error(json.dumps(entry, default=str), exc_info=isinstance(error, BaseException))


def internal_error(error: Exception, **context: Any) -> ApiError:
    """Log *error* and return a generic INTERNAL_ERROR safe for clients."""
    log_error(ErrorCode.INTERNAL_ERROR, error, **context)
    return ApiError(code=ErrorCode.INTERNAL_ERROR)
