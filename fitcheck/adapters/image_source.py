import base64
import logging
from pathlib import Path
from typing import Optional, Union

import requests

from fitcheck.core.config import MAX_UPLOAD_BYTES
from fitcheck.domain.errors import FileTooLargeError, ImageFetchError

logger = logging.getLogger("fitcheck.adapters.image_source")

# (magic prefix, offset, mime)
SIGNATURES = [
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    (b"\xff\xd8\xff", 0, "image/jpeg"),
    (b"WEBP", 8, "image/webp"),
    (b"GIF87a", 0, "image/gif"),
    (b"GIF89a", 0, "image/gif"),
    (b"BM", 0, "image/bmp"),
]


def sniff_mime(data: bytes) -> Optional[str]:
    """Guesses the image MIME type from magic numbers."""
    for magic, offset, mime in SIGNATURES:
        if data[offset:offset + len(magic)] == magic:
            if mime == "image/webp" and data[:4] != b"RIFF":
                continue
            return mime
    return None


def bytes_to_data_url(data: bytes, mime_type: Optional[str] = None) -> str:
    mime = mime_type or sniff_mime(data) or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def file_to_data_url(file_path: Union[str, Path]) -> str:
    """Reads a local image file into a data URL."""
    path = Path(file_path)
    if not path.exists() or not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return bytes_to_data_url(path.read_bytes())


def url_to_data_url(url: str, max_bytes: int = MAX_UPLOAD_BYTES, timeout: float = 30.0) -> str:
    """
    Fetches a remote image and returns it as a data URL.
    Checks status first, then size, then content type.
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        logger.error(f"Error fetching URL {url}: status {status}")
        raise ImageFetchError(f"Failed to fetch image. Status: {status}", status_code=status) from e
    except requests.exceptions.RequestException as e:
        logger.error(f"Error fetching URL {url}: {e}")
        raise ImageFetchError(
            "Could not fetch or process the image from the URL. "
            "It might be due to network issues or the server refusing the request."
        ) from e

    body = response.content
    if len(body) > max_bytes:
        raise FileTooLargeError(
            f"Fetched image is {len(body)} bytes, limit is {max_bytes}",
            size_bytes=len(body),
            limit_bytes=max_bytes,
        )

    content_type = response.headers.get("Content-Type", "").split(";")[0].strip().lower()
    if not content_type.startswith("image/"):
        raise ImageFetchError("The fetched file is not an image.", status_code=response.status_code)

    return bytes_to_data_url(body, content_type)
