"""
Content-Type detection utilities.
Sniff MIME types from header bytes, falling back to file extensions.
"""

import mimetypes
import os
from typing import Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def sniff_image_type(header: bytes) -> Optional[str]:
    """
    Detect an image MIME type from its magic number.

    Args:
        header: Leading bytes of the file (12 bytes are enough)

    Returns:
        MIME type string, or None if no signature matches

    Examples:
        >>> sniff_image_type(b"\\x89PNG\\r\\n\\x1a\\n")
        'image/png'

        >>> sniff_image_type(b"RIFF\\x00\\x00\\x00\\x00WEBPVP8 ")
        'image/webp'

        >>> sniff_image_type(b"plain text") is None
        True
    """
    if header.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if header.startswith(b"\x89PNG"):
        return "image/png"
    if header.startswith(b"GIF"):
        return "image/gif"
    if header[:4] == b"RIFF" and header[8:12] == b"WEBP":
        return "image/webp"
    return None


def guess_from_extension(filename: str) -> Optional[str]:
    """
    Guess a MIME type from a file's extension.

    Args:
        filename: Filename or path (e.g., "photo.jpg", "path/to/scan.webp")

    Returns:
        MIME type string, or None if the extension is unknown
    """
    extension = os.path.splitext(filename)[1].lower()
    if extension in COMMON_MIME_TYPES:
        return COMMON_MIME_TYPES[extension]

    guessed_type, _ = mimetypes.guess_type(filename)
    return guessed_type


def detect_content_type(
    filename: str,
    data: bytes = b"",
    provided_type: Optional[str] = None
) -> str:
    """
    Detect Content-Type for a picked file.

    Priority: picker-provided type (if specific) > header bytes > extension
    > 'application/octet-stream'.

    Args:
        filename: Filename or path
        data: File bytes (only the header is inspected)
        provided_type: Optional type reported by the file picker or client

    Returns:
        MIME type string

    Examples:
        >>> detect_content_type("scan.dat", b"\\x89PNG\\r\\n\\x1a\\n")
        'image/png'

        >>> detect_content_type("photo.jpg")
        'image/jpeg'

        >>> detect_content_type("photo.jpg", b"", "image/heic")
        'image/heic'  # Respects provided type

        >>> detect_content_type("unknown.xyz")
        'application/octet-stream'
    """
    # If the picker provided a specific type (not generic), use it
    if provided_type and provided_type != DEFAULT_CONTENT_TYPE:
        return provided_type

    sniffed_type = sniff_image_type(data[:12])
    if sniffed_type:
        return sniffed_type

    return guess_from_extension(filename) or DEFAULT_CONTENT_TYPE


# Extensions seen from phone pickers and cameras
COMMON_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".bin": "application/octet-stream",
}
