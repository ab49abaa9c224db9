"""
Beamdrop storage client.

Signed HTTP client for a Beamdrop S3-like server: bucket and object
management, listings, and two kinds of temporary download links:

1. Client-side presigned URLs, computed locally from the secret key.
   No server round trip. They cannot be revoked individually; rotating or
   disabling the key invalidates all of them.
2. Server-side ("pretty") presigned URLs, registered via /api/v1/presign.
   Short /dl/{token} URLs with optional expiry and download limit,
   individually revocable, independent of key rotation.
"""
import json
import logging
import os
from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union, cast

import httpx
from pydantic import BaseModel, ValidationError

from .decoder import decode_content, decode_json
from .errors import StorageAuthError, StorageNotFoundError, StorageServerError
from .models import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    BucketInfo,
    BucketList,
    ClientConfig,
    Credentials,
    ObjectContent,
    ObjectListing,
    ObjectMetadata,
    PresignedLink,
    PrettyPresignedUrl,
    PrettyPresignedUrlList,
    PutObjectResult,
)
from .signer import Signer
from .transport import Transport


logger = logging.getLogger(__name__)


API_PREFIX = "/api/v1"

DEFAULT_MAX_KEYS = 1000

ModelT = TypeVar("ModelT", bound=BaseModel)


class StorageClient:
    """
    Beamdrop API client.

    Immutable after construction and safe to share between threads: every
    operation performs one synchronous request with a fresh signature.
    """

    def __init__(
        self,
        base_url: str,
        access_key: str,
        secret_key: str,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize storage client.

        Args:
            base_url: Server base URL (e.g. https://files.example.com)
            access_key: API access key ID
            secret_key: API secret key
            connect_timeout: Connection timeout in seconds
            request_timeout: Total request timeout in seconds
            transport: Optional httpx transport (used by tests)
            clock: Optional unix-time source (used by tests)
        """
        self.config = ClientConfig(
            base_url=base_url,
            connect_timeout=connect_timeout,
            request_timeout=request_timeout,
        )
        self.signer = Signer(Credentials(access_key=access_key, secret_key=secret_key), clock=clock)
        self.transport = Transport(self.config, self.signer, transport=transport)
        logger.info(f"Initialized Beamdrop client for {self.config.base_url}")

    @classmethod
    def from_env(cls, **kwargs) -> "StorageClient":
        """
        Build a client from environment variables.

        Reads BEAMDROP_URL, BEAMDROP_ACCESS_KEY, BEAMDROP_SECRET_KEY and
        optionally BEAMDROP_CONNECT_TIMEOUT, BEAMDROP_TIMEOUT.

        Raises:
            StorageAuthError: A required variable is missing
        """
        base_url = os.getenv("BEAMDROP_URL")
        access_key = os.getenv("BEAMDROP_ACCESS_KEY")
        secret_key = os.getenv("BEAMDROP_SECRET_KEY")

        if not all([base_url, access_key, secret_key]):
            missing = []
            if not base_url:
                missing.append("BEAMDROP_URL")
            if not access_key:
                missing.append("BEAMDROP_ACCESS_KEY")
            if not secret_key:
                missing.append("BEAMDROP_SECRET_KEY")
            raise StorageAuthError(
                f"Missing required storage credentials: {', '.join(missing)}. "
                "Check environment variables."
            )

        return cls(
            base_url=base_url,
            access_key=access_key,
            secret_key=secret_key,
            connect_timeout=float(os.getenv("BEAMDROP_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT)),
            request_timeout=float(os.getenv("BEAMDROP_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)),
            **kwargs,
        )

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def access_key(self) -> str:
        return self.signer.access_key

    # Internal helpers

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[bytes] = None,
        model: Optional[Type[ModelT]] = None,
        defaults: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a structured request and decode its JSON payload.

        Args:
            method: HTTP method
            path: Path below /api/v1
            params: Query parameters
            body: Raw request body
            model: Result model to build from the payload (returns the dict if None)
            defaults: Request-side values used where the payload omits a field

        Raises:
            StorageServerError: 2xx payload does not fit the result model
        """
        response = self.transport.send(method, API_PREFIX + path, params=params, body=body)
        payload = decode_json(response)
        if model is None:
            return payload

        try:
            return model.model_validate({**(defaults or {}), **payload})
        except ValidationError as e:
            logger.warning(f"{method} {path} returned an unusable {model.__name__} payload")
            raise StorageServerError(
                f"Unexpected {model.__name__} response from Beamdrop: {e.error_count()} invalid field(s)",
                response.status_code,
                payload,
            ) from e

    def _raw_request(self, method: str, path: str) -> Union[ObjectMetadata, ObjectContent]:
        """Send a raw-content request (download or HEAD)."""
        return decode_content(self.transport.send(method, API_PREFIX + path))

    # Bucket operations

    def create_bucket(self, name: str) -> BucketInfo:
        """
        Create a new bucket.

        Raises:
            StorageConflictError: Bucket already exists
        """
        info = self._request("PUT", f"/buckets/{name}", model=BucketInfo, defaults={"bucket": name})
        logger.info(f"Created bucket {name}")
        return info

    def create_bucket_if_not_exists(self, name: str) -> BucketInfo:
        """
        Create a bucket unless it already exists.

        The server answers 200 with exists=true instead of 409, so this
        never raises StorageConflictError.
        """
        info = self._request(
            "PUT",
            f"/buckets/{name}",
            params={"createIfNotExists": "true"},
            model=BucketInfo,
            defaults={"bucket": name},
        )
        if info.exists:
            logger.debug(f"Bucket {name} already exists")
        else:
            logger.info(f"Created bucket {name}")
        return info

    def delete_bucket(self, name: str) -> None:
        """
        Delete an empty bucket.

        Raises:
            StorageNotFoundError: Bucket not found
            StorageConflictError: Bucket is not empty
        """
        self._request("DELETE", f"/buckets/{name}")
        logger.info(f"Deleted bucket {name}")

    def list_buckets(self) -> BucketList:
        return self._request("GET", "/buckets", model=BucketList)

    def bucket_exists(self, name: str) -> bool:
        """
        Check whether a bucket exists (HEAD, no body transferred).

        Only 404 maps to False; any other failure is raised.
        """
        try:
            self._request("HEAD", f"/buckets/{name}")
            return True
        except StorageNotFoundError:
            return False

    # Object operations

    def put_object(self, bucket: str, key: str, body: Union[bytes, str]) -> PutObjectResult:
        """
        Upload raw bytes.

        Args:
            bucket: Bucket name (must exist)
            key: Object key, may contain slashes (e.g. "user-1/avatar.jpg")
            body: File contents; str is encoded as UTF-8

        Raises:
            StorageNotFoundError: Bucket not found
            StorageLockedError: Object locked by a concurrent operation
            StorageRateLimitError: Rate limited
        """
        if isinstance(body, str):
            body = body.encode("utf-8")

        result = self._request(
            "PUT",
            f"/buckets/{bucket}/{key}",
            body=body,
            model=PutObjectResult,
            defaults={"bucket": bucket, "key": key, "size": len(body)},
        )
        logger.info(f"Uploaded {bucket}/{key} ({len(body)} bytes)")
        return result

    def get_object(self, bucket: str, key: str) -> ObjectContent:
        """
        Download an object.

        Raises:
            StorageNotFoundError: Bucket or object not found
        """
        return cast(ObjectContent, self._raw_request("GET", f"/buckets/{bucket}/{key}"))

    def delete_object(self, bucket: str, key: str) -> None:
        """
        Delete an object.

        Raises:
            StorageNotFoundError: Object not found
            StorageLockedError: Object locked by a concurrent operation
        """
        self._request("DELETE", f"/buckets/{bucket}/{key}")
        logger.info(f"Deleted {bucket}/{key}")

    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        """Get object metadata without downloading the body."""
        return cast(ObjectMetadata, self._raw_request("HEAD", f"/buckets/{bucket}/{key}"))

    def object_exists(self, bucket: str, key: str) -> bool:
        """
        Check whether an object exists.

        Only 404 maps to False; any other failure is raised.
        """
        try:
            self.head_object(bucket, key)
            return True
        except StorageNotFoundError:
            return False

    def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        max_keys: int = DEFAULT_MAX_KEYS,
    ) -> ObjectListing:
        """
        List objects in a bucket.

        Query parameters are sent only when they differ from the defaults.

        Args:
            bucket: Bucket name
            prefix: Only return keys starting with this prefix
            delimiter: Single character (usually "/") to group keys into common_prefixes
            max_keys: Maximum number of results (1-1000)
        """
        if delimiter is not None and len(delimiter) != 1:
            raise ValueError("delimiter must be exactly one character")

        params = {}
        if prefix is not None:
            params["prefix"] = prefix
        if delimiter is not None:
            params["delimiter"] = delimiter
        if max_keys != DEFAULT_MAX_KEYS:
            params["max-keys"] = str(max_keys)

        return self._request(
            "GET",
            f"/buckets/{bucket}",
            params=params or None,
            model=ObjectListing,
            defaults={"bucket": bucket},
        )

    # Client-side presigned URLs

    def presign(self, bucket: str, key: str, expires_in: int, method: str = "GET") -> PresignedLink:
        """
        Mint a client-side presigned link locally (no server request).

        The link is valid until now + expires_in, for the given method only.
        """
        return self.signer.presign(self.base_url, bucket, key, expires_in, method)

    def presigned_url(self, bucket: str, key: str, expires_in: int, method: str = "GET") -> str:
        """
        Generate a client-side presigned URL.

        Args:
            bucket: Bucket name
            key: Object key
            expires_in: Seconds until the URL expires (e.g. 3600 = 1 hour)
            method: HTTP method the URL is valid for

        Returns:
            Full URL with token, expires and access_key query parameters
        """
        return self.presign(bucket, key, expires_in, method).url

    # Server-side (pretty) presigned URLs

    def create_pretty_presigned_url(
        self,
        bucket: str,
        key: str,
        expires_in: Optional[int] = None,
        max_downloads: Optional[int] = None,
        method: str = "GET",
    ) -> PrettyPresignedUrl:
        """
        Register a short /dl/{token} download URL on the server.

        Args:
            bucket: Bucket name
            key: Object key
            expires_in: Seconds until expiry (None = no expiry)
            max_downloads: Download limit (None = unlimited)
            method: HTTP method the URL is valid for

        Raises:
            StorageServerError: Response carries no usable token
        """
        payload = {"bucket": bucket, "key": key, "method": method.upper()}
        if expires_in is not None:
            payload["expiresIn"] = expires_in
        if max_downloads is not None:
            payload["maxDownloads"] = max_downloads

        link = self._request(
            "POST",
            "/presign",
            body=json.dumps(payload).encode(),
            model=PrettyPresignedUrl,
            defaults={"bucket": bucket, "key": key, "method": payload["method"]},
        )
        logger.info(f"Registered presigned URL for {bucket}/{key}")
        return link

    def revoke_pretty_presigned_url(self, token: str) -> None:
        """
        Revoke a server-side presigned URL. Its /dl/ URL returns 404 afterwards.

        Raises:
            StorageNotFoundError: Token not found
        """
        self._request("DELETE", f"/presign/{token}")
        logger.info("Revoked presigned URL")

    def list_pretty_presigned_urls(self) -> PrettyPresignedUrlList:
        return self._request("GET", "/presign", model=PrettyPresignedUrlList)
