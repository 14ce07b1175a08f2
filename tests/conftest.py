import io
from pathlib import Path

import pytest
from PIL import Image as PILImage

from size_cache import SizeCache
from storage import OriginStore


def _make_image(width: int = 2000, height: int = 1000, fmt: str = "PNG", mode: str = "RGB", **save_kwargs) -> bytes:
    color = (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)
    if mode in ("L", "P"):
        color = 120
    im = PILImage.new(mode, (width, height), color)
    # a gradient so resizes are not trivially identical
    for x in range(0, width, max(1, width // 20)):
        im.putpixel((x, height // 2), color if mode in ("L", "P") else tuple(reversed(color[:3])) + color[3:])
    buf = io.BytesIO()
    im.save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


@pytest.fixture
def make_image():
    return _make_image


@pytest.fixture
def store(tmp_path: Path) -> OriginStore:
    return OriginStore(tmp_path / "data")


@pytest.fixture
def cache(tmp_path: Path) -> SizeCache:
    return SizeCache(tmp_path / "cache")


@pytest.fixture
def put_origin(store, make_image):
    """Store a WebP origin of the given size for slug and return its bytes."""

    def _put(slug: str, width: int = 2000, height: int = 1000) -> bytes:
        data = make_image(width, height, fmt="WEBP")
        store.save(slug, "original", data)
        return data

    return _put
