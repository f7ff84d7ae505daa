"""
Image acquisition: URLs and Discord attachments -> ImageInput.

Both paths download with aiohttp, enforce the size ceiling while
streaming, check the bytes really are a JPEG or PNG (the only formats
Rekognition accepts) and keep a uniquely named copy in TEMP_DIR so the
bot can re-attach the image to its reply.

Failures are raised as:
    InvalidInput    - bad URL, non-image content type, undecodable image
    DownloadFailed  - HTTP error or connection problem
    DownloadTimeout - download took longer than DOWNLOAD_TIMEOUT
    TooLarge        - more than MAX_IMAGE_BYTES
"""

import asyncio
import io
import logging
import os
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

import aiohttp
from PIL import Image, UnidentifiedImageError

from common.config import DOWNLOAD_TIMEOUT, MAX_IMAGE_BYTES
from common.models import ImageInput
from common.tempfiles import ensure_temp_dir, unique_name
from .errors import DownloadFailed, DownloadTimeout, InvalidInput, TooLarge

logger = logging.getLogger("Vision.Acquisition")

# Pillow format -> MIME type, limited to what Rekognition accepts
SUPPORTED_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
}

CHUNK_SIZE = 64 * 1024


def is_valid_url(url: Optional[str]) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _is_image_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.split(";")[0].strip().lower().startswith("image/")


def validate_image_bytes(data: bytes) -> str:
    """
    Make sure the payload decodes as a supported image.

    Returns:
        The MIME type detected from the bytes.

    Raises:
        InvalidInput: empty, undecodable, or not JPEG/PNG
    """
    if not data:
        raise InvalidInput("The image is empty.")
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidInput(f"Could not read the file as an image: {e}") from e

    if fmt not in SUPPORTED_FORMATS:
        raise InvalidInput(f"Unsupported image format {fmt}. Please use JPEG or PNG.")
    return SUPPORTED_FORMATS[fmt]


def _extension_for(content_type: str, fallback: str = ".jpg") -> str:
    return {"image/jpeg": ".jpg", "image/png": ".png"}.get(content_type, fallback)


async def _download(
        url: str,
        session: Optional[aiohttp.ClientSession],
        max_bytes: int,
        timeout: float,
        require_image_type: bool = True,
) -> tuple:
    """
    GET url and return (bytes, content type header).

    The ceiling is checked against Content-Length first and then against
    the bytes actually received, since the header can be missing or lie.
    """
    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession()

    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
            if resp.status != 200:
                raise DownloadFailed(f"Image download failed: HTTP {resp.status}")

            content_type = resp.headers.get("Content-Type")
            if require_image_type and not _is_image_type(content_type):
                raise InvalidInput(
                    f"URL does not point to an image (received: {content_type or 'unknown'})"
                )

            if resp.content_length is not None and resp.content_length > max_bytes:
                raise TooLarge(
                    f"Image is too large ({resp.content_length} bytes, limit {max_bytes}).",
                    size=resp.content_length, limit=max_bytes,
                )

            buffer = bytearray()
            async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                buffer.extend(chunk)
                if len(buffer) > max_bytes:
                    raise TooLarge(
                        f"Image is too large (over {max_bytes} bytes).",
                        size=len(buffer), limit=max_bytes,
                    )
            return bytes(buffer), content_type

    except asyncio.TimeoutError as e:
        raise DownloadTimeout("Timeout while downloading image. Please try a different URL.") from e
    except aiohttp.ClientError as e:
        raise DownloadFailed(f"Failed to download image: {e}") from e
    finally:
        if own_session:
            await session.close()


def _write_temp_copy(data: bytes, stem: str, extension: str, prefix: str,
                     temp_dir: Union[str, Path, None]) -> Path:
    directory = ensure_temp_dir(temp_dir)
    path = directory / unique_name(stem, extension, prefix)
    path.write_bytes(data)
    return path


async def fetch_image_from_url(
        url: str,
        prefix: str = "",
        session: Optional[aiohttp.ClientSession] = None,
        temp_dir: Union[str, Path, None] = None,
        max_bytes: int = MAX_IMAGE_BYTES,
        timeout: float = DOWNLOAD_TIMEOUT,
) -> ImageInput:
    """
    Download an image from a user-supplied URL.

    Args:
        url: http(s) URL of the image
        prefix: "source"/"target" when comparing, used in the temp name
        session: Reuse an aiohttp session (a new one is opened otherwise)

    Returns:
        ImageInput whose source is the URL itself.
    """
    if not is_valid_url(url):
        raise InvalidInput("Invalid URL. Please provide a valid image URL starting with http:// or https://")

    url = url.strip()
    data, header_type = await _download(url, session, max_bytes, timeout)
    content_type = validate_image_bytes(data)

    url_ext = os.path.splitext(urlparse(url).path)[1].lower()
    extension = url_ext if url_ext in (".jpg", ".jpeg", ".png") else _extension_for(content_type)
    path = await asyncio.to_thread(_write_temp_copy, data, "image", extension, prefix, temp_dir)

    logger.info(f"Downloaded {len(data)} bytes from {url} ({header_type})")
    return ImageInput(data=data, source=url, content_type=content_type, path=path)


async def fetch_uploaded_image(
        url: str,
        filename: str,
        content_type: Optional[str] = None,
        size: Optional[int] = None,
        prefix: str = "",
        session: Optional[aiohttp.ClientSession] = None,
        temp_dir: Union[str, Path, None] = None,
        max_bytes: int = MAX_IMAGE_BYTES,
        timeout: float = DOWNLOAD_TIMEOUT,
) -> ImageInput:
    """
    Download a Discord attachment.

    The declared content type and size are checked before anything is
    downloaded; the bytes are validated again afterwards.
    """
    if not _is_image_type(content_type):
        raise InvalidInput("Invalid file type. Please upload a valid image file (JPEG, PNG).")
    if size is not None and size > max_bytes:
        raise TooLarge(
            f"Uploaded image is too large ({size} bytes, limit {max_bytes}).",
            size=size, limit=max_bytes,
        )

    data, _ = await _download(url, session, max_bytes, timeout, require_image_type=False)
    detected_type = validate_image_bytes(data)

    stem, ext = os.path.splitext(filename or "upload")
    extension = ext.lower() if ext.lower() in (".jpg", ".jpeg", ".png") else _extension_for(detected_type)
    path = await asyncio.to_thread(_write_temp_copy, data, stem, extension, prefix, temp_dir)

    label = f"{prefix} " if prefix else ""
    logger.info(f"Fetched uploaded {label}image {filename} ({len(data)} bytes)")
    return ImageInput(
        data=data,
        source=f"uploaded {label}image ({filename})",
        content_type=detected_type,
        path=path,
    )
