import io
import random

import pytest
from PIL import Image


def encode_image(img: Image.Image, fmt: str, **kwargs) -> bytes:
    buf = io.BytesIO()
    img.save(buf, fmt, **kwargs)
    return buf.getvalue()


def gradient_image(width: int, height: int, mode: str = "RGB") -> Image.Image:
    """Smooth image that compresses well."""
    img = Image.linear_gradient("L").resize((width, height))
    return img.convert(mode)


def noise_image(width: int, height: int, seed: int = 1234) -> Image.Image:
    """Random pixels; compresses badly, which is what size-bound tests need."""
    rng = random.Random(seed)
    data = bytes(rng.getrandbits(8) for _ in range(width * height * 3))
    return Image.frombytes("RGB", (width, height), data)


@pytest.fixture
def photo_jpeg() -> bytes:
    return encode_image(gradient_image(2000, 1000), "JPEG", quality=95)


@pytest.fixture
def noisy_jpeg() -> bytes:
    return encode_image(noise_image(400, 200), "JPEG", quality=95)
