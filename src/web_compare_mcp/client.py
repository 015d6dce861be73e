"""Loader for image sources: http(s) URLs, base64 payloads, and local files."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from .config import get_settings

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:"


@dataclass
class ImageFetchResponse:
    """Result of loading one image source."""

    success: bool
    data: bytes | None = None
    error: str | None = None
    origin: str | None = None


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        # e.g. a long base64 payload is not a valid file name
        return False


def _looks_like_base64(source: str) -> bool:
    if len(source) < 16 or len(source) % 4:
        return False
    try:
        base64.b64decode(source, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


class ImageSourceClient:
    """Loads encoded image bytes from wherever a tool caller points.

    Accepted sources:
    - ``http://`` / ``https://`` URLs, fetched with httpx
    - ``data:<mime>;base64,<payload>`` URIs and bare base64 strings
    - filesystem paths
    """

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            timeout: HTTP timeout in seconds. Defaults to WEB_COMPARE_HTTP_TIMEOUT.
            transport: Optional httpx transport, e.g. a MockTransport.
        """
        self.timeout = timeout if timeout is not None else get_settings().http_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def load(self, source: str) -> ImageFetchResponse:
        """Load one image source. Failures are reported, never raised."""
        if source.startswith(("http://", "https://")):
            return await self._fetch(source)
        if source.startswith(DATA_URI_PREFIX):
            return self._decode_data_uri(source)
        path = Path(source).expanduser()
        if _is_file(path):
            return self._read_file(path)
        if _looks_like_base64(source):
            return self._decode_base64(source, origin="base64")
        return ImageFetchResponse(
            success=False, error=f"Image source not found: {source}"
        )

    async def _fetch(self, url: str) -> ImageFetchResponse:
        client = await self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
            logger.debug("Fetched %s (%d bytes)", url, len(response.content))
            return ImageFetchResponse(success=True, data=response.content, origin=url)
        except httpx.ConnectError as e:
            return ImageFetchResponse(
                success=False, error=f"Cannot connect to {url}. Error: {e}", origin=url
            )
        except httpx.HTTPStatusError as e:
            return ImageFetchResponse(
                success=False,
                error=f"HTTP error: {e.response.status_code} fetching {url}",
                origin=url,
            )
        except httpx.TimeoutException:
            return ImageFetchResponse(
                success=False,
                error=f"Request timed out after {self.timeout}s",
                origin=url,
            )
        except httpx.HTTPError as e:
            return ImageFetchResponse(success=False, error=str(e), origin=url)

    def _decode_data_uri(self, uri: str) -> ImageFetchResponse:
        header, sep, payload = uri.partition(",")
        if not sep or not header.endswith(";base64"):
            return ImageFetchResponse(
                success=False, error="Only base64-encoded data URIs are supported"
            )
        return self._decode_base64(payload, origin=header)

    def _decode_base64(self, payload: str, origin: str) -> ImageFetchResponse:
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            return ImageFetchResponse(
                success=False, error=f"Invalid base64 image data: {e}", origin=origin
            )
        return ImageFetchResponse(success=True, data=data, origin=origin)

    def _read_file(self, path: Path) -> ImageFetchResponse:
        try:
            return ImageFetchResponse(
                success=True, data=path.read_bytes(), origin=str(path)
            )
        except OSError as e:
            return ImageFetchResponse(
                success=False, error=f"Cannot read {path}: {e}", origin=str(path)
            )
