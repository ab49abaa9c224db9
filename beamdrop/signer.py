"""
HMAC-SHA256 request signing and client-side presigned URL tokens.

No network access happens here. Both schemes are pure functions of the
secret key and per-call parameters:

    Request signature:
        StringToSign = METHOD + "\\n" + PATH + "\\n" + TIMESTAMP
        Signature    = Base64(HMAC-SHA256(StringToSign, SecretKey))
        Header       = Authorization: Bearer ACCESS_KEY:SIGNATURE

    Presigned token:
        Message = METHOD + "\\n" + BUCKET + "\\n" + KEY + "\\n" + UNIX_EXPIRY
        Token   = Base64URL(HMAC-SHA256(Message, SecretKey)), no padding
"""
import base64
import hashlib
import hmac
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional
from urllib.parse import urlencode, urlsplit

from .models import Credentials, PresignedLink


logger = logging.getLogger(__name__)


AUTH_HEADER = "Authorization"
DATE_HEADER = "X-Beamdrop-Date"

# Second precision, always UTC
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(unix_seconds: float) -> str:
    """Format a unix time as YYYY-MM-DDThh:mm:ssZ."""
    return datetime.fromtimestamp(int(unix_seconds), tz=timezone.utc).strftime(TIMESTAMP_FORMAT)


def string_to_sign(method: str, path: str, timestamp: str) -> str:
    """
    Build the canonical request string.

    The query string is not part of the signed path.
    """
    sign_path = urlsplit(path).path or path
    return "\n".join([method.upper(), sign_path, timestamp])


def _hmac_sha256(secret: str, message: str) -> bytes:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).digest()


def _b64url(data: bytes) -> str:
    """Base64 URL-safe encoding without padding."""
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


class Signer:
    """
    Produces authentication material for one set of credentials.

    Holds no mutable state; a fresh timestamp is read from the clock on
    every call, so signatures are never reused between requests.
    """

    def __init__(self, credentials: Credentials, clock: Optional[Callable[[], float]] = None):
        """
        Initialize signer.

        Args:
            credentials: Access/secret key pair
            clock: Returns current unix time (defaults to time.time)
        """
        self._credentials = credentials
        self._clock = clock or time.time

    @property
    def access_key(self) -> str:
        return self._credentials.access_key

    def now(self) -> int:
        return int(self._clock())

    def sign(self, method: str, path: str, timestamp: str) -> str:
        """Compute the Base64 request signature for a canonical string."""
        message = string_to_sign(method, path, timestamp)
        digest = _hmac_sha256(self._credentials.secret_key.get_secret_value(), message)
        return base64.b64encode(digest).decode()

    def auth_headers(self, method: str, path: str) -> Dict[str, str]:
        """
        Build Authorization and date headers for a request sent now.

        Args:
            method: HTTP method
            path: Request path, query string allowed (it is ignored for signing)

        Returns:
            Header dict
        """
        timestamp = format_timestamp(self.now())
        signature = self.sign(method, path, timestamp)
        return {
            AUTH_HEADER: f"Bearer {self.access_key}:{signature}",
            DATE_HEADER: timestamp,
        }

    def presign_token(self, bucket: str, key: str, expires_at: int, method: str = "GET") -> str:
        """Compute the URL-safe token binding method, bucket, key and expiry."""
        message = "\n".join([method.upper(), bucket, key, str(int(expires_at))])
        return _b64url(_hmac_sha256(self._credentials.secret_key.get_secret_value(), message))

    def presign(
        self,
        base_url: str,
        bucket: str,
        key: str,
        expires_in: int,
        method: str = "GET",
    ) -> PresignedLink:
        """
        Mint a client-side presigned link.

        expires_in is not validated: zero or negative values yield a link
        that is already expired.

        Args:
            base_url: Server base URL without trailing slash
            bucket: Bucket name
            key: Object key
            expires_in: Seconds until expiry
            method: HTTP method the link is valid for

        Returns:
            PresignedLink with token and full URL
        """
        method = method.upper()
        expires_at = self.now() + int(expires_in)
        token = self.presign_token(bucket, key, expires_at, method)

        query = urlencode({
            "token": token,
            "expires": format_timestamp(expires_at),
            "access_key": self.access_key,
        })
        url = f"{base_url}/api/v1/buckets/{bucket}/{key}?{query}"

        logger.debug(f"Presigned {method} {bucket}/{key} (expires at {format_timestamp(expires_at)})")
        return PresignedLink(
            bucket=bucket,
            key=key,
            method=method,
            expires_at=expires_at,
            token=token,
            url=url,
        )
