"""On-demand derivative image cache: classifier, keys, pipeline and store."""

from .cache import DerivativeCache
from .errors import DecodeError, MediaError, StorageError
from .formats import MediaKind, classify, content_type, output_codec, sniff_codec
from .keys import build_key
from .pipeline import DEFAULT_QUALITY, Derivative, TransformRequest, render, transform

__all__ = [
    "DEFAULT_QUALITY",
    "DecodeError",
    "Derivative",
    "DerivativeCache",
    "MediaError",
    "MediaKind",
    "StorageError",
    "TransformRequest",
    "build_key",
    "classify",
    "content_type",
    "output_codec",
    "render",
    "sniff_codec",
    "transform",
]
