"""Decode, resize and re-encode original images into derivatives.

Everything here is CPU bound and synchronous; callers on the event loop
run it through an executor. No filesystem access happens in this module.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image

from .errors import DecodeError
from .formats import output_codec

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 85
QUALITY_STEP = 15
QUALITY_FLOOR = 10
MAX_ATTEMPTS = 5

# Pillow's encoder names for our output codecs
_PIL_FORMATS = {"jpeg": "JPEG", "png": "PNG", "webp": "WEBP"}


@dataclass(frozen=True)
class TransformRequest:
    source_filename: str
    width: int | None = None
    quality: int = DEFAULT_QUALITY
    max_size_kb: int | None = None

    @property
    def is_noop(self) -> bool:
        """True when the request asks for nothing the original doesn't already satisfy."""
        return self.width is None and self.max_size_kb is None and self.quality == DEFAULT_QUALITY


@dataclass(frozen=True)
class Derivative:
    data: bytes
    codec: str
    quality: int
    attempts: int = 0


def _decode(original: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(original))
        img.load()
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Cannot decode image: {e}") from e
    return img


def _resize(img: Image.Image, width: int) -> Image.Image:
    src_w, src_h = img.size
    height = max(1, round(src_h * width / src_w))
    return img.resize((width, height), Image.LANCZOS)


def _prepare(img: Image.Image, codec: str) -> Image.Image:
    if codec == "jpeg":
        if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        if img.mode != "RGB":
            return img.convert("RGB")
    elif codec == "webp" and img.mode not in ("RGB", "RGBA"):
        return img.convert("RGBA" if "transparency" in img.info or img.mode in ("LA", "PA") else "RGB")
    return img


def _encode(img: Image.Image, codec: str, quality: int) -> bytes:
    buf = io.BytesIO()
    # PNG is lossless; Pillow ignores quality for it
    img.save(buf, _PIL_FORMATS[codec], quality=quality)
    return buf.getvalue()


def render(original: bytes, request: TransformRequest) -> Derivative:
    """Produce the derivative described by ``request``.

    Raises:
        DecodeError: ``original`` is not a decodable raster image.
    """
    img = _decode(original)
    codec = output_codec(img.format)

    if request.width is not None:
        img = _resize(img, request.width)
    img = _prepare(img, codec)

    quality = request.quality
    data = _encode(img, codec, quality)

    if request.max_size_kb is None:
        return Derivative(data=data, codec=codec, quality=quality)

    budget = request.max_size_kb * 1024
    attempts = 0
    while len(data) > budget and quality > QUALITY_FLOOR and attempts < MAX_ATTEMPTS:
        quality = max(QUALITY_FLOOR, quality - QUALITY_STEP)
        data = _encode(img, codec, quality)
        attempts += 1

    if len(data) > budget:
        logger.debug(
            "%s still %d bytes over %d KB after %d attempts (q=%d)",
            request.source_filename,
            len(data) - budget,
            request.max_size_kb,
            attempts,
            quality,
        )
    return Derivative(data=data, codec=codec, quality=quality, attempts=attempts)


def transform(original: bytes, request: TransformRequest) -> bytes:
    return render(original, request).data
