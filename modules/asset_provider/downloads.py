"""
Artifact download utilities.

Fetch provider outputs given as http(s) URLs or data: URLs onto disk.
"""

import base64
import binascii
import re
from pathlib import Path
from typing import Optional, Type
from urllib.parse import unquote_to_bytes

import httpx

from shared.errors import ProviderError
from shared.logging import get_logger

logger = get_logger("asset_provider")

DOWNLOAD_CHUNK_SIZE = 64 * 1024

_BASE64 = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")


def looks_like_base64(value: str) -> bool:
    """Cheap check for a bare base64 payload (no data: prefix)."""
    return len(value) % 4 == 0 and bool(_BASE64.match(value))


def decode_data_url(url: str) -> bytes:
    """
    Decode an RFC 2397 data: URL.

    Args:
        url: data:[<mediatype>][;base64],<data>

    Returns:
        Decoded bytes

    Raises:
        ValueError: If the URL is malformed
    """
    if not url.startswith("data:") or "," not in url:
        raise ValueError("Not a data: URL")

    header, data = url[5:].split(",", 1)
    if header.endswith(";base64"):
        try:
            return base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {str(e)}") from e
    return unquote_to_bytes(data)


async def fetch_to_file(
    client: httpx.AsyncClient,
    location: str,
    output_path: Path,
    error_cls: Type[ProviderError],
    what: str,
    content: Optional[bytes] = None
) -> int:
    """
    Write a provider artifact to `output_path`.

    Args:
        client: HTTP client used for http(s) locations
        location: http(s) URL or data: URL
        output_path: Destination file
        error_cls: Provider error class to raise
        what: Artifact description for messages ("audio", "image 2")
        content: Already-decoded bytes; skips fetching when given

    Returns:
        Number of bytes written

    Raises:
        ProviderError: (as error_cls) if the artifact cannot be fetched or is empty
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if content is None and not location.startswith("data:"):
        written = await _stream_to_file(client, location, output_path, error_cls, what)
        logger.debug(f"Downloaded {what} to {output_path} ({written} bytes)")
        return written

    if content is None:
        try:
            content = decode_data_url(location)
        except ValueError as e:
            raise error_cls(
                f"Invalid {what} payload from provider: {str(e)}",
                reason="invalid_response"
            ) from e

    if not content:
        raise error_cls(f"Downloaded {what} is empty", reason="invalid_response")

    output_path.write_bytes(content)
    logger.debug(f"Wrote {what} to {output_path} ({len(content)} bytes)")
    return len(content)


async def _stream_to_file(
    client: httpx.AsyncClient,
    url: str,
    output_path: Path,
    error_cls: Type[ProviderError],
    what: str
) -> int:
    written = 0
    try:
        async with client.stream("GET", url) as response:
            if response.is_error:
                raise error_cls(
                    f"Failed to download {what}: HTTP {response.status_code}",
                    reason="download_failed",
                    status_code=response.status_code
                )
            with open(output_path, "wb") as f:
                async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)
                    written += len(chunk)
    except BaseException:
        output_path.unlink(missing_ok=True)
        raise

    if not written:
        output_path.unlink(missing_ok=True)
        raise error_cls(f"Downloaded {what} is empty", reason="invalid_response")
    return written
