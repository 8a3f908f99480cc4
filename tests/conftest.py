from __future__ import annotations

import io

import pytest
from PIL import Image

from hassel.source import SourceImage, load_source


def make_photo(size: tuple[int, int] = (1000, 800)) -> Image.Image:
    """Smooth gradients plus grain: compresses like a photo, not like flat art."""
    horizontal = Image.linear_gradient("L").rotate(90).resize(size)
    radial = Image.radial_gradient("L").resize(size)
    grain = Image.effect_noise(size, 24)
    return Image.merge("RGB", (horizontal, radial, grain))


def image_bytes(im: Image.Image, fmt: str, **save_kwargs) -> bytes:
    buf = io.BytesIO()
    im.save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


@pytest.fixture
def photo_source() -> SourceImage:
    data = image_bytes(make_photo(), "JPEG", quality=95)
    return load_source(data, "image/jpeg", "photo.jpg")


@pytest.fixture
def small_source() -> SourceImage:
    data = image_bytes(make_photo((200, 160)), "PNG")
    return load_source(data, "image/png", "small.png")


@pytest.fixture
def transparent_source() -> SourceImage:
    im = Image.new("RGBA", (64, 48), (255, 0, 0, 0))
    im.paste((0, 0, 255, 255), (16, 12, 48, 36))
    return load_source(image_bytes(im, "PNG"), "image/png", "logo.png")
