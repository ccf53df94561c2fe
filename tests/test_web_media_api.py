"""HTTP-level tests for media serving and uploads."""

import importlib
import io
import os
import re
import sys
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from tests.conftest import encode_image, gradient_image


@pytest.fixture
def uploads_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def client(uploads_dir, monkeypatch):
    """Test client with the app pointed at a temporary uploads directory."""
    monkeypatch.setenv("UPLOADS_DIR", str(uploads_dir))
    monkeypatch.delenv("CACHE_DIR", raising=False)
    monkeypatch.delenv("MEDIA_PREFIX", raising=False)
    monkeypatch.setenv("MAX_UPLOAD_MB", "1")
    monkeypatch.setenv("IMAGE_WORKERS", "2")

    # Reload so module-level config picks up the patched environment
    if "diary.web.main" in sys.modules:
        import diary.web.main
        importlib.reload(diary.web.main)
    else:
        import diary.web.main

    with TestClient(diary.web.main.app) as test_client:
        yield test_client


@pytest.fixture
def photo(uploads_dir, client, photo_jpeg):
    (uploads_dir / "photo.jpg").write_bytes(photo_jpeg)
    return photo_jpeg


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_resize_and_cache(client, photo, uploads_dir):
    response = client.get("/uploads/photo.jpg?w=400")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    assert response.headers["x-derivative-cache"] == "miss"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert "immutable" in response.headers["cache-control"]
    assert Image.open(io.BytesIO(response.content)).size == (400, 200)

    cached = uploads_dir / ".cache" / "photo-w400-q85-mnull.jpg"
    assert cached.read_bytes() == response.content

    again = client.get("/uploads/photo.jpg?w=400")
    assert again.headers["x-derivative-cache"] == "hit"
    assert again.content == response.content


@pytest.mark.parametrize("query", ["", "?q=85", "?w=abc", "?maxSize=0&q=85"])
def test_pass_through_serves_original_bytes(client, photo, query):
    response = client.get(f"/uploads/photo.jpg{query}")
    assert response.status_code == 200
    assert response.content == photo
    assert "x-derivative-cache" not in response.headers
    assert "etag" in response.headers


def test_max_size_reduces_output(client, uploads_dir, noisy_jpeg):
    (uploads_dir / "noise.jpg").write_bytes(noisy_jpeg)
    full = client.get("/uploads/noise.jpg?q=84")
    bounded = client.get("/uploads/noise.jpg?maxSize=20")
    assert bounded.status_code == 200
    assert len(bounded.content) < len(full.content)
    assert (uploads_dir / ".cache" / "noise-wnull-q85-m20.jpg").exists()


def test_png_derivative_content_type(client, uploads_dir):
    (uploads_dir / "shot.png").write_bytes(encode_image(gradient_image(100, 50, mode="RGBA"), "PNG"))
    response = client.get("/uploads/shot.png?w=50")
    assert response.headers["content-type"] == "image/png"
    hit = client.get("/uploads/shot.png?w=50")
    assert hit.headers["content-type"] == "image/png"


def test_fake_image_falls_back_to_original(client, uploads_dir):
    (uploads_dir / "notes.png").write_bytes(b"just text pretending to be a png")
    response = client.get("/uploads/notes.png?w=100")
    assert response.status_code == 200
    assert response.content == b"just text pretending to be a png"
    assert os.listdir(uploads_dir / ".cache") == []


def test_video_is_served_untouched(client, uploads_dir):
    (uploads_dir / "clip.mp4").write_bytes(b"\x00\x00\x00\x18ftypmp42video")
    response = client.get("/uploads/clip.mp4?w=100")
    assert response.status_code == 200
    assert response.content == b"\x00\x00\x00\x18ftypmp42video"
    assert response.headers["content-type"] == "video/mp4"


def test_missing_file_is_404(client):
    response = client.get("/uploads/nope.jpg?w=100")
    assert response.status_code == 404
    assert response.json() == {"message": "Not Found"}


@pytest.mark.parametrize("query", ["", "?w=100"])
def test_overlong_filename_is_404(client, query):
    response = client.get("/uploads/" + "a" * 300 + ".jpg" + query)
    assert response.status_code == 404


@pytest.mark.parametrize("query", ["", "?w=100"])
def test_cors_headers_on_originals_and_derivatives(client, photo, query):
    response = client.get(f"/uploads/photo.jpg{query}", headers={"Origin": "https://journal.example"})
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_processing_error_never_surfaces(client, photo):
    with patch("diary.web.derivatives.render", side_effect=MemoryError("too big")):
        response = client.get("/uploads/photo.jpg?w=100")
    assert response.status_code == 200
    assert response.content == photo


def test_upload_stores_original(client, uploads_dir):
    data = encode_image(gradient_image(120, 60), "JPEG")
    response = client.post("/api/upload", files={"file": ("holiday.jpg", data, "image/jpeg")})
    assert response.status_code == 200

    url = response.json()["url"]
    assert re.fullmatch(r"/uploads/\d+-\d+\.jpg", url)
    stored = uploads_dir / url.rsplit("/", 1)[1]
    assert stored.read_bytes() == data

    resized = client.get(f"{url}?w=60")
    assert Image.open(io.BytesIO(resized.content)).size == (60, 30)


def test_upload_accepts_video(client):
    response = client.post("/api/upload", files={"file": ("clip.mov", b"moov", "video/quicktime")})
    assert response.status_code == 200
    assert response.json()["url"].endswith(".mov")


def test_upload_rejects_wrong_type(client, uploads_dir):
    response = client.post("/api/upload", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid file type. Please upload an image or video file."}
    assert [p.name for p in uploads_dir.iterdir()] == [".cache"]


def test_upload_rejects_large_file(client):
    data = b"\xff" * (1024 * 1024 + 1)
    response = client.post("/api/upload", files={"file": ("big.jpg", data, "image/jpeg")})
    assert response.status_code == 400
    assert response.json() == {"message": "File is too large. Maximum size is 1MB"}


def test_upload_without_file(client):
    response = client.post("/api/upload")
    assert response.status_code == 400
    assert response.json() == {"message": "No file uploaded"}
