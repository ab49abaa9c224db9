"""Beamdrop client package: signed requests and presigned URLs for Beamdrop object storage."""

from .client import StorageClient
from .errors import (
    ErrorKind,
    StorageError,
    StorageConnectionError,
    StorageNotFoundError,
    StorageConflictError,
    StorageLockedError,
    StorageRateLimitError,
    StorageAuthError,
    StorageServerError,
)
from .models import (
    Credentials,
    ClientConfig,
    BucketInfo,
    Bucket,
    BucketList,
    PutObjectResult,
    ObjectEntry,
    ObjectListing,
    ObjectMetadata,
    ObjectContent,
    PresignedLink,
    PrettyPresignedUrl,
    PrettyPresignedUrlList,
)
from .signer import Signer
from .transport import Transport, RawResponse, guess_content_type

__all__ = [
    "StorageClient",
    "ErrorKind",
    "StorageError",
    "StorageConnectionError",
    "StorageNotFoundError",
    "StorageConflictError",
    "StorageLockedError",
    "StorageRateLimitError",
    "StorageAuthError",
    "StorageServerError",
    "Credentials",
    "ClientConfig",
    "BucketInfo",
    "Bucket",
    "BucketList",
    "PutObjectResult",
    "ObjectEntry",
    "ObjectListing",
    "ObjectMetadata",
    "ObjectContent",
    "PresignedLink",
    "PrettyPresignedUrl",
    "PrettyPresignedUrlList",
    "Signer",
    "Transport",
    "RawResponse",
    "guess_content_type",
]
