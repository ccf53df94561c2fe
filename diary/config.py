"""
Configuration for the diary media server.

All settings come from environment variables so the same image can run
locally and in a container without config files.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


class Config:
    """Runtime configuration loaded from the environment."""

    def __init__(self):
        self.uploads_dir = Path(os.getenv("UPLOADS_DIR", os.path.join(os.getcwd(), "uploads"))).resolve()

        cache_dir = os.getenv("CACHE_DIR", "").strip()
        self.cache_dir = Path(cache_dir).resolve() if cache_dir else self.uploads_dir / ".cache"

        prefix = os.getenv("MEDIA_PREFIX", "/uploads").strip() or "/uploads"
        self.media_prefix = "/" + prefix.strip("/")

        self.image_workers = _int_env("IMAGE_WORKERS", min(4, os.cpu_count() or 1))
        if self.image_workers < 1:
            raise ValueError("IMAGE_WORKERS must be at least 1")

        self.max_upload_mb = _int_env("MAX_UPLOAD_MB", 50)
        self.max_upload_bytes = self.max_upload_mb * 1024 * 1024

        self.log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

        # Comma-separated list, "*" allows any origin
        cors_raw = os.getenv("CORS_ORIGINS", "*").strip()
        self.cors_origins = [o.strip() for o in cors_raw.split(",") if o.strip()] or ["*"]

        self._ensure_directories()

    def _ensure_directories(self):
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Media directories ready: uploads={self.uploads_dir} cache={self.cache_dir}")
