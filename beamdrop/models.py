"""
Configuration and result models for the Beamdrop client.
"""
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


# Seconds
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_REQUEST_TIMEOUT = 120.0


class Credentials(BaseModel):
    """
    API key pair.

    The secret key never leaves the process; it is only used to derive
    signatures locally.
    """
    model_config = ConfigDict(frozen=True)

    access_key: str = Field(..., description="API access key ID (starts with BDK_)")
    secret_key: SecretStr = Field(..., description="API secret key (starts with sk_)")

    @field_validator('access_key')
    @classmethod
    def validate_access_key(cls, v: str) -> str:
        """Access key must be non-blank."""
        if not v or not v.strip():
            raise ValueError('access_key cannot be empty')
        return v.strip()

    @field_validator('secret_key')
    @classmethod
    def validate_secret_key(cls, v: SecretStr) -> SecretStr:
        """Secret key must be non-empty."""
        if not v.get_secret_value():
            raise ValueError('secret_key cannot be empty')
        return v


class ClientConfig(BaseModel):
    """Connection settings, fixed for the lifetime of a client."""
    model_config = ConfigDict(frozen=True)

    base_url: str = Field(..., description="Server base URL (trailing slash is stripped)")
    connect_timeout: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT, gt=0, description="Connection timeout in seconds"
    )
    request_timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT, gt=0, description="Total request timeout in seconds"
    )

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate URL scheme and strip trailing slashes."""
        v = v.strip()
        if not v.startswith(('http://', 'https://')):
            raise ValueError('base_url must start with http:// or https://')
        return v.rstrip('/')


class _ApiModel(BaseModel):
    """Base for models parsed from server JSON (camelCase keys, extra fields kept)."""
    model_config = ConfigDict(populate_by_name=True, extra='allow')


class BucketInfo(_ApiModel):
    """Result of creating a bucket."""
    bucket: str
    created: Optional[str] = None
    exists: bool = False
    location: Optional[str] = None


class Bucket(_ApiModel):
    name: str
    created_at: Optional[str] = Field(default=None, alias='createdAt')


class BucketList(_ApiModel):
    buckets: List[Bucket] = Field(default_factory=list)
    count: int = 0


class PutObjectResult(_ApiModel):
    """Result of uploading an object."""
    bucket: str
    key: str
    etag: str = ""
    size: int = 0
    url: Optional[str] = None


class ObjectEntry(_ApiModel):
    """One object in a listing."""
    key: str
    size: int = 0
    etag: str = ""
    last_modified: Optional[str] = Field(default=None, alias='lastModified')


class ObjectListing(_ApiModel):
    """
    Result of listing a bucket.

    common_prefixes is filled by the server when a delimiter was given.
    """
    bucket: str
    prefix: str = ""
    delimiter: str = ""
    max_keys: int = Field(default=1000, alias='maxKeys')
    is_truncated: bool = Field(default=False, alias='isTruncated')
    contents: List[ObjectEntry] = Field(default_factory=list)
    common_prefixes: List[str] = Field(default_factory=list, alias='commonPrefixes')

    @field_validator('common_prefixes', mode='before')
    @classmethod
    def flatten_prefixes(cls, v: Any) -> Any:
        """Accept both ["a/"] and [{"prefix": "a/"}] forms."""
        if isinstance(v, list):
            return [p.get('prefix', '') if isinstance(p, dict) else p for p in v]
        return v

    @field_validator('prefix', 'delimiter', mode='before')
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class PrettyPresignedUrl(_ApiModel):
    """Server-registered short download link (/dl/{token})."""
    token: str
    url: Optional[str] = None
    bucket: str
    key: str
    method: str = "GET"
    expires_at: Optional[str] = Field(default=None, alias='expiresAt')
    max_downloads: Optional[int] = Field(default=None, alias='maxDownloads')
    download_count: int = Field(default=0, alias='downloadCount')
    created_at: Optional[str] = Field(default=None, alias='createdAt')


class PrettyPresignedUrlList(_ApiModel):
    urls: List[PrettyPresignedUrl] = Field(default_factory=list)
    count: int = 0


@dataclass(frozen=True)
class ObjectMetadata:
    """Object metadata derived from response headers."""
    content_type: str
    content_length: int
    etag: str
    last_modified: str


@dataclass(frozen=True)
class ObjectContent:
    """Downloaded object: metadata plus the raw body."""
    metadata: ObjectMetadata
    body: bytes


@dataclass(frozen=True)
class PresignedLink:
    """
    Client-side presigned link.

    Computed locally from the secret key; the server keeps no record of it.
    """
    bucket: str
    key: str
    method: str
    expires_at: int
    token: str
    url: str
