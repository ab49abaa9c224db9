"""Shared fixtures: a fixed clock and an in-memory fake Beamdrop server."""

import hashlib
import json
import secrets
from datetime import datetime, timezone

import httpx
import pytest

from beamdrop import Credentials, Signer, StorageClient
from beamdrop.signer import DATE_HEADER, TIMESTAMP_FORMAT, format_timestamp


ACCESS_KEY = "BDK_test"
SECRET_KEY = "sk_test"
BASE_URL = "https://files.example.com"

# 2026-01-01T00:00:00Z
START_TIME = 1767225600

# Server-side clock skew tolerance
MAX_SKEW_SECONDS = 15 * 60


class FakeClock:
    """Controllable unix-time source shared by client and fake server."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def _error(status_code: int, message: str, code: str = "Error") -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"code": code, "message": message}})


class FakeBeamdrop:
    """
    Minimal Beamdrop server for tests.

    Verifies request signatures and presigned tokens, keeps buckets, objects
    and pretty links in memory, and records every request it receives.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.keys = {ACCESS_KEY: SECRET_KEY}
        self.buckets = {}
        self.links = {}
        self.locked = set()
        self.requests = []

    def rotate_key(self, access_key: str, new_secret: str) -> None:
        self.keys[access_key] = new_secret

    def _signer(self, access_key: str) -> Signer:
        return Signer(Credentials(access_key=access_key, secret_key=self.keys[access_key]), clock=self.clock)

    # Auth

    def _check_signature(self, request: httpx.Request):
        auth = request.headers.get("authorization", "")
        timestamp = request.headers.get(DATE_HEADER, "")
        if not auth.startswith("Bearer ") or ":" not in auth:
            return _error(401, "Missing or malformed Authorization header", "Unauthorized")

        access_key, signature = auth[len("Bearer "):].split(":", 1)
        if access_key not in self.keys:
            return _error(403, "Unknown access key", "Forbidden")

        try:
            signed_at = datetime.strptime(timestamp, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            return _error(401, "Invalid date header", "Unauthorized")
        if abs(self.clock() - signed_at.timestamp()) > MAX_SKEW_SECONDS:
            return _error(401, "Request timestamp outside allowed window", "RequestTimeTooSkewed")

        expected = self._signer(access_key).sign(request.method, request.url.path, timestamp)
        if signature != expected:
            return _error(403, "Signature does not match", "SignatureDoesNotMatch")
        return None

    def _check_presigned(self, request: httpx.Request, bucket: str, key: str):
        params = request.url.params
        access_key = params.get("access_key", "")
        if access_key not in self.keys:
            return _error(403, "Unknown access key", "Forbidden")

        expires_at = int(
            datetime.strptime(params.get("expires", ""), TIMESTAMP_FORMAT)
            .replace(tzinfo=timezone.utc)
            .timestamp()
        )
        if self.clock() >= expires_at:
            return _error(403, "Presigned URL has expired", "ExpiredToken")

        expected = self._signer(access_key).presign_token(bucket, key, expires_at, request.method)
        if params.get("token") != expected:
            return _error(403, "Invalid presigned token", "SignatureDoesNotMatch")
        return None

    # Handlers

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.split("/")

        if request.url.path.startswith("/dl/"):
            return self._download_pretty(parts[2])

        if parts[1:3] != ["api", "v1"]:
            return _error(404, "No such route", "NotFound")

        if parts[3] == "buckets" and len(parts) > 5 and "token" in request.url.params:
            bucket, key = parts[4], "/".join(parts[5:])
            denied = self._check_presigned(request, bucket, key)
            return denied or self._object(request, bucket, key)

        denied = self._check_signature(request)
        if denied:
            return denied

        if parts[3] == "buckets":
            if len(parts) == 4:
                return self._list_buckets()
            if len(parts) == 5:
                return self._bucket(request, parts[4])
            return self._object(request, parts[4], "/".join(parts[5:]))
        if parts[3] == "presign":
            return self._presign(request, parts[4] if len(parts) > 4 else None)
        return _error(404, "No such route", "NotFound")

    def _list_buckets(self) -> httpx.Response:
        buckets = [{"name": name, "createdAt": "2026-01-01T00:00:00Z"} for name in sorted(self.buckets)]
        return httpx.Response(200, json={"buckets": buckets, "count": len(buckets)})

    def _bucket(self, request: httpx.Request, name: str) -> httpx.Response:
        exists = name in self.buckets
        location = f"/api/v1/buckets/{name}"

        if request.method == "HEAD":
            return httpx.Response(200 if exists else 404)

        if request.method == "PUT":
            if exists:
                if request.url.params.get("createIfNotExists") == "true":
                    return httpx.Response(200, json={"bucket": name, "exists": True, "location": location})
                return _error(409, f"Bucket '{name}' already exists", "BucketAlreadyExists")
            self.buckets[name] = {}
            created = format_timestamp(self.clock())
            return httpx.Response(201, json={"bucket": name, "created": created, "location": location})

        if not exists:
            return _error(404, f"Bucket '{name}' not found", "NoSuchBucket")

        if request.method == "DELETE":
            if self.buckets[name]:
                return _error(409, f"Bucket '{name}' is not empty", "BucketNotEmpty")
            del self.buckets[name]
            return httpx.Response(204)

        return self._list_objects(request, name)

    def _list_objects(self, request: httpx.Request, name: str) -> httpx.Response:
        params = request.url.params
        prefix = params.get("prefix", "")
        delimiter = params.get("delimiter", "")
        max_keys = int(params.get("max-keys", 1000))

        contents, common_prefixes = [], []
        for key in sorted(self.buckets[name]):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if delimiter and delimiter in rest:
                group = prefix + rest.split(delimiter, 1)[0] + delimiter
                if group not in common_prefixes:
                    common_prefixes.append(group)
                continue
            data = self.buckets[name][key]
            contents.append({
                "key": key,
                "size": len(data),
                "etag": hashlib.md5(data).hexdigest(),
                "lastModified": "2026-01-01T00:00:00Z",
            })

        return httpx.Response(200, json={
            "bucket": name,
            "prefix": prefix,
            "delimiter": delimiter,
            "maxKeys": max_keys,
            "isTruncated": len(contents) > max_keys,
            "contents": contents[:max_keys],
            "commonPrefixes": [{"prefix": p} for p in common_prefixes],
        })

    def _object(self, request: httpx.Request, bucket: str, key: str) -> httpx.Response:
        if bucket not in self.buckets:
            return _error(404, f"Bucket '{bucket}' not found", "NoSuchBucket")
        objects = self.buckets[bucket]

        if request.method in ("PUT", "DELETE") and (bucket, key) in self.locked:
            return _error(423, "Object is locked by another operation", "ObjectLocked")

        if request.method == "PUT":
            objects[key] = request.content
            return httpx.Response(200, json={
                "bucket": bucket,
                "key": key,
                "etag": hashlib.md5(request.content).hexdigest(),
                "size": len(request.content),
                "url": f"/api/v1/buckets/{bucket}/{key}",
            })

        if key not in objects:
            return _error(404, f"Object '{key}' not found", "NoSuchKey")

        if request.method == "DELETE":
            del objects[key]
            return httpx.Response(204)

        data = objects[key]
        headers = {
            "Content-Type": "application/octet-stream",
            "ETag": f'"{hashlib.md5(data).hexdigest()}"',
            "Last-Modified": "Thu, 01 Jan 2026 00:00:00 GMT",
        }
        if request.method == "HEAD":
            headers["Content-Length"] = str(len(data))
            return httpx.Response(200, headers=headers)
        return httpx.Response(200, headers=headers, content=data)

    def _presign(self, request: httpx.Request, token) -> httpx.Response:
        if request.method == "GET":
            urls = list(self.links.values())
            return httpx.Response(200, json={"urls": urls, "count": len(urls)})

        if request.method == "DELETE":
            if token not in self.links:
                return _error(404, "Presigned URL not found", "NotFound")
            del self.links[token]
            return httpx.Response(204)

        payload = json.loads(request.content)
        token = secrets.token_hex(16)
        expires_in = payload.get("expiresIn")
        link = {
            "token": token,
            "url": f"{BASE_URL}/dl/{token}",
            "bucket": payload["bucket"],
            "key": payload["key"],
            "method": payload.get("method", "GET"),
            "expiresAt": format_timestamp(self.clock() + expires_in) if expires_in is not None else None,
            "maxDownloads": payload.get("maxDownloads"),
            "downloadCount": 0,
            "createdAt": format_timestamp(self.clock()),
        }
        self.links[token] = link
        return httpx.Response(201, json=link)

    def _download_pretty(self, token: str) -> httpx.Response:
        link = self.links.get(token)
        if link is None:
            return _error(404, "Presigned URL not found", "NotFound")
        if link["maxDownloads"] is not None and link["downloadCount"] >= link["maxDownloads"]:
            return _error(410, "Download limit reached", "Gone")
        data = self.buckets.get(link["bucket"], {}).get(link["key"])
        if data is None:
            return _error(404, "Object not found", "NoSuchKey")
        link["downloadCount"] += 1
        return httpx.Response(200, content=data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def server(clock):
    return FakeBeamdrop(clock)


@pytest.fixture
def client(server, clock):
    """Storage client wired to the fake server."""
    return StorageClient(
        base_url=BASE_URL,
        access_key=ACCESS_KEY,
        secret_key=SECRET_KEY,
        transport=httpx.MockTransport(server),
        clock=clock,
    )


@pytest.fixture
def anonymous(server):
    """Plain httpx client for resolving presigned URLs without credentials."""
    with httpx.Client(transport=httpx.MockTransport(server)) as http:
        yield http


@pytest.fixture
def canned():
    """Factory for a client whose transport replays canned responses in order."""

    def respond_with(*responses):
        queue = list(responses)
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return queue.pop(0)

        client = StorageClient(
            base_url=BASE_URL,
            access_key=ACCESS_KEY,
            secret_key=SECRET_KEY,
            transport=httpx.MockTransport(handler),
            clock=FakeClock(),
        )
        return client, seen

    return respond_with
