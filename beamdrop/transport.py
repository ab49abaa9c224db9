"""
HTTP transport for signed Beamdrop requests.

Sends exactly one request per call and returns status, body and headers.
Any failure to complete the exchange surfaces as StorageConnectionError.
"""
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import httpx

from .errors import StorageConnectionError
from .models import ClientConfig
from .signer import Signer


logger = logging.getLogger(__name__)


# Tolerate reverse proxies, but never loop
MAX_REDIRECTS = 3

JSON_CONTENT_TYPE = "application/json"
BINARY_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(body: bytes) -> str:
    """
    Infer the Content-Type of an outgoing body.

    Bodies starting with '{' or '[' are sent as JSON, everything else as
    raw bytes. Control requests and file uploads share one send path and
    callers rely on this inference.
    """
    if body[:1] in (b"{", b"["):
        return JSON_CONTENT_TYPE
    return BINARY_CONTENT_TYPE


@dataclass(frozen=True)
class RawResponse:
    """Status, buffered body and lower-cased headers of one exchange."""
    method: str
    status_code: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


class Transport:
    """
    Executes signed HTTP requests against one Beamdrop server.

    A new httpx.Client is opened for every request, so no connection is
    held between calls.
    """

    def __init__(
        self,
        config: ClientConfig,
        signer: Signer,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize transport.

        Args:
            config: Base URL and timeouts
            signer: Signer for the Authorization header
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self.signer = signer
        self._transport = transport

    def _timeout(self) -> httpx.Timeout:
        """
        Per-phase httpx timeouts.

        httpx applies request_timeout to each read, write and pool wait
        separately; the whole-request bound is enforced by send() while the
        body is read.
        """
        return httpx.Timeout(self.config.request_timeout, connect=self.config.connect_timeout)

    def send(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> RawResponse:
        """
        Sign and send one request.

        Args:
            method: HTTP method (GET, PUT, POST, DELETE, HEAD)
            path: Path relative to base URL, without query string
            params: Query parameters (not signed)
            body: Raw request body

        Returns:
            RawResponse

        Raises:
            StorageConnectionError: DNS failure, refused connection, timeout,
                more than MAX_REDIRECTS redirects, or the whole exchange
                taking longer than request_timeout
        """
        method = method.upper()
        headers = self.signer.auth_headers(method, path)
        if body is not None:
            headers["Content-Type"] = guess_content_type(body)

        url = f"{self.config.base_url}{path}"
        logger.debug(f"{method} {path}")

        deadline = time.monotonic() + self.config.request_timeout
        try:
            with httpx.Client(
                timeout=self._timeout(),
                follow_redirects=True,
                max_redirects=MAX_REDIRECTS,
                transport=self._transport,
            ) as client:
                with client.stream(method, url, params=params, content=body, headers=headers) as response:
                    content = b"" if method == "HEAD" else self._read_body(response, deadline)
        except httpx.RequestError as e:
            logger.warning(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise StorageConnectionError(
                f"Request to Beamdrop failed: [{type(e).__name__}] {e}"
            ) from e

        response_headers = MappingProxyType(
            {name.lower(): value for name, value in response.headers.items()}
        )
        return RawResponse(
            method=method,
            status_code=response.status_code,
            body=content,
            headers=response_headers,
        )

    def _read_body(self, response: httpx.Response, deadline: float) -> bytes:
        """Buffer the response body, failing once the request deadline passes."""
        chunks = []
        for chunk in response.iter_bytes():
            if time.monotonic() > deadline:
                raise httpx.ReadTimeout(
                    f"Response not completed within {self.config.request_timeout}s",
                    request=response.request,
                )
            chunks.append(chunk)
        return b"".join(chunks)
