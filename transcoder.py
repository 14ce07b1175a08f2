"""WebP transcoding with Pillow.

Every output is re-encoded from decoded pixels, which drops EXIF, ICC and XMP
payloads along with anything else smuggled into the source container.
"""
from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image as PILImage, ImageOps

WEBP_QUALITY = 90


class TranscodeError(Exception):
    """Source could not be decoded or the WebP encode failed."""


@dataclass(frozen=True)
class Size:
    name: str
    width: int
    height: int = 0  # >0 means fixed box with centre crop
    quality: int = WEBP_QUALITY


# Precomputed variants written at upload time. "original" must come first.
SIZES = (
    Size("original", 4096),
    Size("1920", 1920),
    Size("200", 200),
    Size("thumb", 150, 150, 85),
)


@dataclass
class TranscodeResult:
    data: bytes
    width: int
    height: int


@dataclass
class ProcessResult:
    name: str
    data: bytes
    width: int
    height: int


@dataclass
class TransformParams:
    rotation: int = 0
    flip_h: bool = False
    flip_v: bool = False
    crop_x: int = 0
    crop_y: int = 0
    crop_w: int = 0
    crop_h: int = 0

    def has_transforms(self) -> bool:
        return (
            self.rotation % 360 != 0
            or self.flip_h
            or self.flip_v
            or (self.crop_w > 0 and self.crop_h > 0)
        )


def _open(data: bytes) -> PILImage.Image:
    if not data:
        raise TranscodeError("empty source")
    try:
        im = PILImage.open(io.BytesIO(data))
        im.load()
    except (OSError, ValueError, SyntaxError, PILImage.DecompressionBombError) as e:
        raise TranscodeError(f"decode: {e}") from e
    return im


def _webp_ready(im: PILImage.Image) -> PILImage.Image:
    """Convert to a mode WebP can encode, keeping alpha when present."""
    if im.mode in ("RGB", "RGBA"):
        return im
    if "A" in im.getbands() or "transparency" in im.info:
        return im.convert("RGBA")
    return im.convert("RGB")


def _encode(im: PILImage.Image, quality: int) -> bytes:
    im = _webp_ready(im)
    clean = im.copy()
    clean.info = {}
    buf = io.BytesIO()
    try:
        clean.save(buf, format="WEBP", quality=quality, method=4)
    except (OSError, ValueError) as e:
        raise TranscodeError(f"encode: {e}") from e
    return buf.getvalue()


def _resize_to_width(im: PILImage.Image, width: int) -> PILImage.Image:
    target = min(width, im.width)
    if target == im.width:
        return im
    height = max(1, round(im.height * target / im.width))
    return im.resize((target, height), PILImage.Resampling.LANCZOS)


def probe_size(data: bytes) -> tuple[int, int]:
    """Read image dimensions from the header."""
    if not data:
        raise TranscodeError("empty source")
    try:
        with PILImage.open(io.BytesIO(data)) as im:
            return im.width, im.height
    except (OSError, ValueError, SyntaxError, PILImage.DecompressionBombError) as e:
        raise TranscodeError(f"get size: {e}") from e


def transcode(data: bytes, width: int) -> TranscodeResult:
    """Resize to min(width, source width) preserving aspect and encode as WebP."""
    if width <= 0:
        raise ValueError(f"target width must be positive, got {width}")
    im = _resize_to_width(_webp_ready(_open(data)), width)
    encoded = _encode(im, WEBP_QUALITY)
    return TranscodeResult(data=encoded, width=im.width, height=im.height)


def _variant(im: PILImage.Image, size: Size) -> PILImage.Image:
    if size.height > 0:
        return ImageOps.fit(
            im, (size.width, size.height), PILImage.Resampling.LANCZOS, centering=(0.5, 0.5)
        )
    return _resize_to_width(im, size.width)


def _process_variants(im: PILImage.Image) -> list[ProcessResult]:
    results = []
    for size in SIZES:
        out = _variant(im, size)
        results.append(
            ProcessResult(
                name=size.name,
                data=_encode(out, size.quality),
                width=out.width,
                height=out.height,
            )
        )
    return results


def process_variants(data: bytes) -> list[ProcessResult]:
    """Generate every precomputed variant, honouring EXIF orientation."""
    im = _open(data)
    im = ImageOps.exif_transpose(im)
    return _process_variants(_webp_ready(im))


_ROTATIONS = {
    90: PILImage.Transpose.ROTATE_270,  # clockwise
    180: PILImage.Transpose.ROTATE_180,
    270: PILImage.Transpose.ROTATE_90,
}


def apply_transform(im: PILImage.Image, params: TransformParams) -> PILImage.Image:
    """Rotate clockwise, flip, then crop to the clamped box."""
    rotation = params.rotation % 360
    if rotation in _ROTATIONS:
        im = im.transpose(_ROTATIONS[rotation])
    if params.flip_h:
        im = im.transpose(PILImage.Transpose.FLIP_LEFT_RIGHT)
    if params.flip_v:
        im = im.transpose(PILImage.Transpose.FLIP_TOP_BOTTOM)

    crop_x, crop_y = max(params.crop_x, 0), max(params.crop_y, 0)
    crop_w, crop_h = max(params.crop_w, 0), max(params.crop_h, 0)
    if crop_w > 0 and crop_h > 0:
        left = min(crop_x, im.width - 1)
        top = min(crop_y, im.height - 1)
        right = min(left + crop_w, im.width)
        bottom = min(top + crop_h, im.height)
        im = im.crop((left, top, right, bottom))
    return im


def process_with_transform(data: bytes, params: TransformParams) -> list[ProcessResult]:
    """Apply an edit and regenerate the variant set from the result."""
    if not params.has_transforms():
        return process_variants(data)
    return _process_variants(_webp_ready(apply_transform(_open(data), params)))
