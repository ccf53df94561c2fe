"""Classify media filenames and pick output codecs for derivatives."""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"


IMAGE_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".heif"})
VIDEO_EXTENSIONS: frozenset[str] = frozenset({".mp4", ".webm", ".mov", ".m4v", ".3gp", ".mkv"})

# Decoded format name (as reported by Pillow, lowercased) -> output codec
_CODECS: dict[str, str] = {
    "jpeg": "jpeg",
    "jpg": "jpeg",
    "png": "png",
    "webp": "webp",
}

_CONTENT_TYPES: dict[str, str] = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def classify(filename: str) -> MediaKind:
    suffix = Path(filename).suffix.lower()
    if suffix in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    if suffix in IMAGE_EXTENSIONS:
        return MediaKind.IMAGE
    return MediaKind.OTHER


def output_codec(detected_format: str | None) -> str:
    """Map a decoded image format to the codec its derivative is encoded with.

    Anything without a dedicated encoder path (gif, heif, bmp, ...) falls
    back to jpeg.
    """
    if not detected_format:
        return "jpeg"
    return _CODECS.get(detected_format.lower(), "jpeg")


def content_type(codec: str) -> str:
    return _CONTENT_TYPES.get(codec, "image/jpeg")


def sniff_codec(data: bytes) -> str:
    """Identify which of our output codecs produced ``data``."""
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return "jpeg"
