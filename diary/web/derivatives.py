"""On-demand derivative images for the media prefix.

``GET /uploads/<file>?w=400&q=70&maxSize=50`` returns a resized and
re-encoded copy of the original, cached on disk by its parameters.
Requests that ask for no transformation, point at videos or non-images,
or fail anywhere along the way are handed back to the static file layer,
which serves the original untouched.

Decoding, encoding and disk I/O run in a thread executor so the event loop
keeps serving other requests meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from concurrent.futures import Executor
from pathlib import Path, PurePosixPath

from fastapi.responses import Response

from ..media import (
    DEFAULT_QUALITY,
    DecodeError,
    Derivative,
    DerivativeCache,
    MediaKind,
    StorageError,
    TransformRequest,
    build_key,
    classify,
    content_type,
    render,
    sniff_codec,
)

logger = logging.getLogger(__name__)

# Derivatives never change for a given key
CACHE_CONTROL = "public, max-age=31536000, immutable"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_int(raw: str | None) -> int | None:
    """Parse a leading integer the lenient way browsers' query strings need.

    ``"400px"`` gives 400, ``"abc"`` and ``None`` give None.
    """
    if raw is None:
        return None
    match = _LEADING_INT.match(raw)
    return int(match.group(1)) if match else None


def parse_transform_request(filename: str, params: Mapping[str, str]) -> TransformRequest:
    """Build a TransformRequest from ``w``, ``q`` and ``maxSize`` query params.

    Malformed values never fail the request: non-numeric or non-positive
    width/maxSize count as absent and quality is clamped to 1..100.
    """
    width = parse_int(params.get("w"))
    if width is not None and width <= 0:
        width = None

    quality = parse_int(params.get("q"))
    quality = DEFAULT_QUALITY if quality is None else min(100, max(1, quality))

    max_size = parse_int(params.get("maxSize"))
    if max_size is not None and max_size <= 0:
        max_size = None

    return TransformRequest(source_filename=filename, width=width, quality=quality, max_size_kb=max_size)


def _render_from_disk(source: Path, request: TransformRequest) -> Derivative:
    return render(source.read_bytes(), request)


def _read_cached(cache: DerivativeCache, key: str) -> tuple[bytes, str] | None:
    data = cache.get(key)
    if data is None:
        return None
    return data, sniff_codec(data)


def _image_response(data: bytes, codec: str, cache_status: str) -> Response:
    return Response(
        content=data,
        media_type=content_type(codec),
        headers={"Cache-Control": CACHE_CONTROL, "X-Derivative-Cache": cache_status},
    )


async def serve_derivative(
    originals_dir: Path,
    cache: DerivativeCache,
    path: str,
    params: Mapping[str, str],
    executor: Executor | None = None,
) -> Response | None:
    """Return a derivative image response, or None to serve the original.

    Args:
        originals_dir: Directory holding uploaded originals
        cache: Store for encoded derivatives
        path: Request path below the media prefix; only its basename is used
        params: Query parameters
        executor: Pool for blocking work (None = loop default)
    """
    filename = PurePosixPath(path).name
    if not filename:
        return None

    source = Path(originals_dir) / filename
    try:
        if not source.is_file():
            return None
    except OSError as e:
        # e.g. ENAMETOOLONG; the static layer answers with a 404
        logger.debug(f"Cannot stat media file {filename[:64]!r}: {e}")
        return None

    try:
        request = parse_transform_request(filename, params)
        if classify(filename) is not MediaKind.IMAGE or request.is_noop:
            return None

        key = build_key(filename, request.width, request.quality, request.max_size_kb)
        loop = asyncio.get_running_loop()

        cached = await loop.run_in_executor(executor, _read_cached, cache, key)
        if cached is not None:
            logger.debug(f"Derivative cache hit: {key}")
            return _image_response(cached[0], cached[1], "hit")

        logger.debug(f"Derivative cache miss: {key}")
        derivative = await loop.run_in_executor(executor, _render_from_disk, source, request)

        try:
            await loop.run_in_executor(executor, cache.put, key, derivative.data)
        except StorageError as e:
            logger.warning(f"Could not cache derivative {key}, serving uncached: {e}")

        return _image_response(derivative.data, derivative.codec, "miss")
    except DecodeError as e:
        logger.warning(f"Image processing failed for {filename}, serving original: {e}")
        return None
    except Exception as e:
        logger.error(f"Image processing error for {filename}, serving original: {e}", exc_info=True)
        return None
