"""Storage for uploaded originals.

Originals are written once under a generated ``<millis>-<random><ext>`` name
and never modified afterwards; derivative images are built from them on
demand.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from pathlib import Path

from fastapi import HTTPException, UploadFile

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/heic",
    "image/heif",
}

ALLOWED_VIDEO_TYPES = {
    "video/mp4",
    "video/quicktime",
    "video/x-m4v",
    "video/webm",
    "video/3gpp",
    "video/x-matroska",
    "video/mov",
}

_CHUNK_SIZE = 1024 * 1024


def generate_filename(original_name: str | None) -> str:
    suffix = Path(original_name or "").suffix
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{suffix}"


def _write_new(dest: Path, data: bytes):
    # "x" refuses to clobber an existing original
    with open(dest, "xb") as f:
        f.write(data)


async def store_upload(upload: UploadFile, uploads_dir: Path, max_bytes: int) -> str:
    """Validate and persist an uploaded file, returning its generated filename.

    Raises:
        HTTPException: 400 for a wrong content type or a file larger than ``max_bytes``
    """
    if upload.content_type not in ALLOWED_IMAGE_TYPES | ALLOWED_VIDEO_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type. Please upload an image or video file.")

    chunks = []
    total = 0
    while True:
        chunk = await upload.read(_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(
                status_code=400, detail=f"File is too large. Maximum size is {max_bytes // (1024 * 1024)}MB"
            )
        chunks.append(chunk)

    loop = asyncio.get_running_loop()
    while True:
        filename = generate_filename(upload.filename)
        try:
            await loop.run_in_executor(None, _write_new, Path(uploads_dir) / filename, b"".join(chunks))
            break
        except FileExistsError:
            continue

    logger.info(f"Stored upload {upload.filename!r} as {filename} ({total} bytes)")
    return filename
