"""
Response decoding.

Two modes, chosen by the calling operation:
- decode_json: structured JSON endpoints (buckets, listings, presign registry)
- decode_content: raw-content endpoints (object download and HEAD)
"""
import json
import logging
from typing import Any, Dict, Optional, Union

from .errors import StorageError, StorageLockedError, StorageRateLimitError, error_from_status
from .models import ObjectContent, ObjectMetadata
from .transport import RawResponse


logger = logging.getLogger(__name__)


def _parse_json(body: bytes) -> Optional[Any]:
    """Decode a JSON body, or None if it is empty or not JSON."""
    if not body:
        return None
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None


def error_message(decoded: Optional[Any], status_code: int) -> str:
    """
    Pick a human-readable message from an error body.

    Lookup order: error.message, then message, then a generic fallback.
    """
    if isinstance(decoded, dict):
        error = decoded.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if decoded.get("message"):
            return str(decoded["message"])
    return f"Beamdrop request failed with status {status_code}"


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def build_error(response: RawResponse) -> StorageError:
    """Turn a non-2xx response into the matching StorageError."""
    decoded = _parse_json(response.body)
    message = error_message(decoded, response.status_code)
    error = error_from_status(response.status_code, message, decoded, dict(response.headers))

    if isinstance(error, (StorageLockedError, StorageRateLimitError)):
        logger.warning(f"{response.method} returned {response.status_code}: {message}")
    return error


def decode_json(response: RawResponse) -> Dict[str, Any]:
    """
    Decode a structured JSON response.

    Returns:
        Decoded JSON object; {} for 204, an unparseable body, or a
        body that is not a JSON object

    Raises:
        StorageError subclass for any non-2xx status
    """
    if response.status_code == 204:
        return {}

    if not _is_success(response.status_code):
        raise build_error(response)

    decoded = _parse_json(response.body)
    return decoded if isinstance(decoded, dict) else {}


def metadata_from_headers(response: RawResponse) -> ObjectMetadata:
    """Derive object metadata from lower-cased response headers."""
    headers = response.headers
    try:
        content_length = int(headers.get("content-length", 0))
    except ValueError:
        content_length = 0

    return ObjectMetadata(
        content_type=headers.get("content-type", "application/octet-stream"),
        content_length=content_length,
        etag=headers.get("etag", "").strip('"'),
        last_modified=headers.get("last-modified", ""),
    )


def decode_content(response: RawResponse) -> Union[ObjectMetadata, ObjectContent]:
    """
    Decode a raw-content response.

    Returns:
        ObjectMetadata for HEAD, ObjectContent (metadata + body) otherwise

    Raises:
        StorageError subclass for any non-2xx status
    """
    if not _is_success(response.status_code):
        raise build_error(response)

    metadata = metadata_from_headers(response)
    if response.method == "HEAD":
        return metadata
    return ObjectContent(metadata=metadata, body=response.body)
