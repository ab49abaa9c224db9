"""
Error taxonomy for Beamdrop client operations.

Every failure surfaces as a StorageError subclass tagged with an ErrorKind.
The tag is decided once, from the HTTP status code, by error_from_status().
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Origin of a failed operation."""
    CONNECTION = "connection"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    LOCKED = "locked"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    SERVER_ERROR = "server_error"


class StorageError(Exception):
    """
    Base storage error.

    Attributes:
        kind: ErrorKind tag
        status_code: HTTP status (0 when no response was received)
        message: Human-readable message
        body: Decoded JSON error body, or None
    """

    kind = ErrorKind.SERVER_ERROR
    retryable = False

    def __init__(self, message: str, status_code: int = 0, body: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class StorageConnectionError(StorageError):
    """Storage server is unreachable, timed out, or redirected too often."""
    kind = ErrorKind.CONNECTION


class StorageNotFoundError(StorageError):
    """Storage resource not found (bucket, object, presigned token)."""
    kind = ErrorKind.NOT_FOUND


class StorageConflictError(StorageError):
    """Bucket already exists, or bucket is not empty on delete."""
    kind = ErrorKind.CONFLICT


class StorageLockedError(StorageError):
    """Object is locked by a concurrent operation. Retry after a short delay."""
    kind = ErrorKind.LOCKED
    retryable = True


class StorageRateLimitError(StorageError):
    """Too many requests. Honour retry_after when the server sent one."""
    kind = ErrorKind.RATE_LIMITED
    retryable = True

    def __init__(
        self,
        message: str,
        status_code: int = 429,
        body: Optional[Any] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message, status_code, body)
        self.retry_after = retry_after


class StorageAuthError(StorageError):
    """Storage authentication failed or credentials are missing."""
    kind = ErrorKind.UNAUTHORIZED


class StorageServerError(StorageError):
    """Any other non-2xx response."""
    kind = ErrorKind.SERVER_ERROR


_STATUS_ERRORS = {
    401: StorageAuthError,
    403: StorageAuthError,
    404: StorageNotFoundError,
    409: StorageConflictError,
    423: StorageLockedError,
}


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse a Retry-After header given in seconds. HTTP-date form is ignored."""
    if not value:
        return None
    try:
        return max(int(value.strip()), 0)
    except ValueError:
        return None


def error_from_status(
    status_code: int,
    message: str,
    body: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
) -> StorageError:
    """
    Build the StorageError subclass matching an HTTP status code.

    Args:
        status_code: Non-2xx HTTP status
        message: Human-readable message extracted from the body
        body: Decoded JSON error body, or None
        headers: Lower-cased response headers

    Returns:
        StorageError instance (not raised)
    """
    if status_code == 429:
        retry_after = _parse_retry_after((headers or {}).get("retry-after"))
        return StorageRateLimitError(message, status_code, body, retry_after=retry_after)

    error_cls = _STATUS_ERRORS.get(status_code, StorageServerError)
    return error_cls(message, status_code, body)
