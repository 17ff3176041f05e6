"""
Image acquisition for the face detection request handler.

Responsibility:
    Resolve the raw image bytes of one request, either by fetching the
    URL carried in the body or by decoding the inline payload (base64 or
    raw), and reject anything that does not sniff as JPEG or PNG.

Non-goals:
    - No decoding into pixels (that belongs in preprocessor).
    - No retries; a failed fetch is reported, not repeated.
"""

import base64
import binascii
import logging
from typing import Union

import requests

from face_detector.errors import AcquisitionError, UnsupportedFormatError

logger = logging.getLogger(__name__)

SUPPORTED_CONTENT_TYPES = {"image/jpeg", "image/png"}

_OCTET_STREAM = "application/octet-stream"
_TEXT_PLAIN = "text/plain; charset=utf-8"

# Leading signatures, checked in order.
_MAGIC_BYTES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
    (b"%PDF-", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
)

# Bytes that never occur in plain text.
_BINARY_BYTES = set(range(0x00, 0x09)) | {0x0B, 0x0E, 0x0F} | set(range(0x10, 0x1B)) | set(range(0x1C, 0x20))

_SNIFF_LEN = 512


def sniff_content_type(data: bytes) -> str:
    """Guess the MIME type of a payload from its leading bytes.

    Returns 'application/octet-stream' for empty or unrecognized binary
    data and 'text/plain; charset=utf-8' for data that looks like text.
    """
    if not data:
        return _OCTET_STREAM

    head = data[:_SNIFF_LEN]

    for magic, content_type in _MAGIC_BYTES:
        if head.startswith(magic):
            return content_type

    # RIFF container with a WEBP chunk
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"

    if any(b in _BINARY_BYTES for b in head):
        return _OCTET_STREAM

    return _TEXT_PLAIN


def decode_inline(body: bytes) -> bytes:
    """Decode a base64 body, or return it unchanged if it is not base64.

    Line breaks inside the encoded text are ignored.
    """
    try:
        return base64.b64decode(body.replace(b"\r", b"").replace(b"\n", b""), validate=True)
    except (binascii.Error, ValueError):
        logger.debug("Request body is not base64, treating it as raw bytes.")
        return body


def fetch_url(url: str, timeout: float, max_bytes: int) -> bytes:
    """Download the image at url.

    Raises:
        AcquisitionError: On connection failure, timeout, non-success
            status, a body read failure, or an oversized body.
    """
    logger.info("Fetching image from %s", url)
    try:
        response = requests.get(url, stream=True, timeout=timeout)
    except requests.RequestException as e:
        raise AcquisitionError(
            f"Unable to download image file from URI: {url}, {e}"
        ) from e

    with response:
        if not 200 <= response.status_code < 300:
            raise AcquisitionError(
                f"Unable to download image file from URI: {url}, "
                f"status {response.status_code}"
            )

        try:
            chunks = []
            received = 0
            for chunk in response.iter_content(chunk_size=8192):
                received += len(chunk)
                if received > max_bytes:
                    raise AcquisitionError(
                        f"Image at URI: {url} exceeds the {max_bytes} byte limit"
                    )
                chunks.append(chunk)
        except requests.RequestException as e:
            raise AcquisitionError(
                f"Unable to read response body from URI: {url}, {e}"
            ) from e

    data = b"".join(chunks)
    logger.debug("Fetched %d bytes from %s", len(data), url)
    return data


def acquire(
    body: Union[bytes, str],
    mode: str = "inline",
    timeout: float = 10.0,
    max_bytes: int = 10 * 1024 * 1024,
) -> bytes:
    """Resolve the raw image bytes for one request.

    Args:
        body: Request body. A URL in 'url' mode, otherwise the image
              itself, raw or base64 encoded.
        mode: 'url' or 'inline'.
        timeout: Seconds allowed for the URL fetch.
        max_bytes: Largest accepted image.

    Returns:
        JPEG or PNG bytes.

    Raises:
        AcquisitionError: If the image cannot be fetched or is too large.
        UnsupportedFormatError: If the bytes are not JPEG or PNG.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")

    if mode == "url":
        url = body.decode("utf-8", errors="replace").strip()
        data = fetch_url(url, timeout, max_bytes)
    else:
        data = decode_inline(body)
        if len(data) > max_bytes:
            raise AcquisitionError(
                f"Inline image exceeds the {max_bytes} byte limit"
            )

    content_type = sniff_content_type(data)
    if content_type not in SUPPORTED_CONTENT_TYPES:
        raise UnsupportedFormatError(content_type)

    logger.info("Acquired %s image (%d bytes)", content_type, len(data))
    return data
