"""
Web server for the diary.

FastAPI application serving uploaded media. Image requests carrying
``w``/``q``/``maxSize`` query parameters get resized derivatives from the
on-disk cache; everything else falls through to the static originals.
"""

import logging
import mimetypes
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import Config
from ..media import DerivativeCache
from .derivatives import serve_derivative
from .uploads import store_upload

# Register MIME types StaticFiles may not know on slim base images
mimetypes.add_type("image/webp", ".webp")
mimetypes.add_type("image/heic", ".heic")
mimetypes.add_type("image/heif", ".heif")
mimetypes.add_type("video/mp4", ".mp4")
mimetypes.add_type("video/webm", ".webm")
mimetypes.add_type("video/quicktime", ".mov")
mimetypes.add_type("video/x-m4v", ".m4v")
mimetypes.add_type("video/3gpp", ".3gp")
mimetypes.add_type("video/x-matroska", ".mkv")

# Initialize config
config = Config()

# Configure logging
logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=config.log_level)
logger = logging.getLogger(__name__)

derivative_cache = DerivativeCache(config.cache_dir)

# Bounded pool for decode/resize/encode and disk I/O (created on startup)
image_executor: ThreadPoolExecutor | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global image_executor

    image_executor = ThreadPoolExecutor(max_workers=config.image_workers, thread_name_prefix="image")
    logger.info(
        f"Serving media from {config.uploads_dir} at {config.media_prefix} "
        f"(cache: {config.cache_dir}, image workers: {config.image_workers})"
    )

    yield

    logger.info("Shutting down image worker pool...")
    image_executor.shutdown(wait=True)
    image_executor = None


app = FastAPI(title="Diary", lifespan=lifespan)


@app.middleware("http")
async def derivative_images(request: Request, call_next):
    """Serve resized images for media requests, otherwise pass through."""
    prefix = config.media_prefix + "/"
    if request.method in ("GET", "HEAD") and request.url.path.startswith(prefix):
        response = await serve_derivative(
            config.uploads_dir,
            derivative_cache,
            request.url.path[len(prefix) :],
            request.query_params,
            executor=image_executor,
        )
        if response is not None:
            return response
    return await call_next(request)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# Added last so it wraps the middlewares above, derivative responses included.
# When using "*", credentials are disabled (browser requirement)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=config.cors_origins != ["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render errors as ``{"message": ...}`` like the rest of the diary API."""
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)


@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.post("/api/upload")
async def upload_media(file: UploadFile | None = File(None)):
    """Store an uploaded image or video and return the URL it is served from."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    try:
        filename = await store_upload(file, config.uploads_dir, config.max_upload_bytes)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error storing upload: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error while uploading file")
    finally:
        await file.close()

    return {"url": f"{config.media_prefix}/{filename}"}


# Originals are served verbatim (with ETag/Last-Modified) when no derivative applies
app.mount(config.media_prefix, StaticFiles(directory=config.uploads_dir), name="uploads")
