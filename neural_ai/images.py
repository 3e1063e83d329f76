"""
Image source resolution: URL, local path, or raw bytes -> base64 + MIME type.

Every call performs exactly one network fetch or file read; nothing is cached.
"""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional, Union
from urllib.parse import urlparse

import httpx

from neural_ai.config import DEFAULT_IMAGE_MIME_TYPE
from neural_ai.errors import ImageSourceError

logger = logging.getLogger(__name__)

ImageSource = Union[str, bytes, bytearray]

MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".svg": "image/svg+xml",
}


@dataclass(frozen=True)
class ResolvedImage:
    """Base64 payload and MIME type of one image."""
    base64: str
    mime_type: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.base64)


def is_url(value: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_file_path(value: str) -> bool:
    """True if value names an existing regular file."""
    try:
        return Path(value).is_file()
    except (OSError, ValueError):
        return False


def get_mime_type(source: Optional[str]) -> str:
    """MIME type from a path or URL extension; image/jpeg when unknown."""
    if not source:
        return DEFAULT_IMAGE_MIME_TYPE
    path = urlparse(source).path if is_url(source) else source
    suffix = PurePosixPath(path.replace("\\", "/")).suffix.lower()
    return MIME_TYPES.get(suffix, DEFAULT_IMAGE_MIME_TYPE)


def _encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


async def _fetch(url: str) -> bytes:
    try:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
    except httpx.HTTPError as e:
        raise ImageSourceError(f"Failed to fetch image from URL: {e}") from e


def _read(path: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ImageSourceError(f"Failed to read image file: {e}") from e


async def resolve_image(source: ImageSource) -> ResolvedImage:
    """
    Resolve an image source into base64 data and a MIME type.

    Classification order: raw bytes, http(s) URL, existing file path.

    Raises:
        ImageSourceError: invalid source, failed fetch, or unreadable file
    """
    if isinstance(source, (bytes, bytearray)):
        return ResolvedImage(base64=_encode(bytes(source)), mime_type=DEFAULT_IMAGE_MIME_TYPE)

    if not isinstance(source, str):
        raise ImageSourceError(
            f"Invalid image source type {type(source).__name__}. Must be URL, file path, or bytes"
        )

    if is_url(source):
        logger.debug(f"Fetching image from {source}")
        data = await _fetch(source)
    elif is_file_path(source):
        logger.debug(f"Reading image file {source}")
        data = _read(source)
    else:
        raise ImageSourceError("Invalid image source. Must be URL, file path, or bytes")

    return ResolvedImage(base64=_encode(data), mime_type=get_mime_type(source))
