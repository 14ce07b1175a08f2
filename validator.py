"""Upload validation by magic-byte sniffing."""
from typing import Optional

FORMAT_JPEG = "image/jpeg"
FORMAT_PNG = "image/png"
FORMAT_GIF = "image/gif"
FORMAT_WEBP = "image/webp"
FORMAT_AVIF = "image/avif"

AVIF_BRANDS = {b"avif", b"avis", b"mif1"}


class InvalidFormatError(ValueError):
    """Data is not one of the accepted image formats."""


class FileTooLargeError(ValueError):
    """Upload exceeds the configured size limit."""


def detect_format(data: bytes) -> Optional[str]:
    """Return the MIME type for recognised image data, else None."""
    if data.startswith(b"\xff\xd8\xff"):
        return FORMAT_JPEG
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return FORMAT_PNG
    if data.startswith(b"GIF8"):
        return FORMAT_GIF
    if len(data) >= 12 and data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return FORMAT_WEBP
    if len(data) >= 12 and data[4:8] == b"ftyp" and data[8:12] in AVIF_BRANDS:
        return FORMAT_AVIF
    return None


def validate_and_detect(data: bytes, max_size: int) -> str:
    """Check size and magic bytes; return the detected MIME type."""
    if len(data) > max_size:
        raise FileTooLargeError(f"{len(data)} bytes exceeds {max_size}")
    if len(data) < 12:
        raise InvalidFormatError("file too short")
    fmt = detect_format(data)
    if fmt is None:
        raise InvalidFormatError("unrecognised image format")
    return fmt
