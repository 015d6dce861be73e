"""Decode two screenshots into equal-size raw RGB pixel buffers."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

CHANNELS = 3

# DecompressionBombError derives from Exception, not OSError
DECODE_FAILURES = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)


class DecodeError(ValueError):
    """Raised when an input image cannot be decoded."""


@dataclass(frozen=True)
class ImageMetadata:
    """Dimensions of an input image before resizing."""

    width: int
    height: int

    def to_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class PreparedBuffers:
    """Two raw RGB buffers of identical size plus the input images' metadata."""

    buffer_a: bytes
    buffer_b: bytes
    width: int
    height: int
    meta_a: ImageMetadata
    meta_b: ImageMetadata

    @property
    def dimensions_match(self) -> bool:
        return self.meta_a == self.meta_b


def _open_image(source: bytes | Image.Image, label: str) -> Image.Image:
    if isinstance(source, Image.Image):
        return source
    try:
        img = Image.open(io.BytesIO(source))
    except DECODE_FAILURES as e:
        raise DecodeError(f"Cannot decode {label} image: {e}") from e
    try:
        img.load()
    except DECODE_FAILURES as e:
        img.close()
        raise DecodeError(f"Cannot decode {label} image: {e}") from e
    return img


def _to_raw_rgb(img: Image.Image, size: tuple[int, int]) -> bytes:
    rgb = img.convert("RGB")
    try:
        if rgb.size != size:
            resized = rgb.resize(size, Image.Resampling.LANCZOS)
            rgb.close()
            rgb = resized
        return rgb.tobytes()
    finally:
        rgb.close()


def prepare_buffers(
    image_a: bytes | Image.Image,
    image_b: bytes | Image.Image,
) -> PreparedBuffers:
    """Decode both images and resize them to the smaller common size.

    Both outputs are resized to ``(min(widthA, widthB), min(heightA, heightB))``
    and emitted as row-major R,G,B bytes (3 bytes per pixel, alpha dropped).

    Args:
        image_a: Source image as encoded bytes or a Pillow image.
        image_b: Target image as encoded bytes or a Pillow image.

    Raises:
        DecodeError: If either image cannot be decoded or the common size
            has zero area.
    """
    img_a = _open_image(image_a, "source")
    try:
        img_b = _open_image(image_b, "target")
    except DecodeError:
        if img_a is not image_a:
            img_a.close()
        raise

    try:
        meta_a = ImageMetadata(*img_a.size)
        meta_b = ImageMetadata(*img_b.size)
        width = min(meta_a.width, meta_b.width)
        height = min(meta_a.height, meta_b.height)
        if width <= 0 or height <= 0:
            raise DecodeError(f"Images have no common area ({width}x{height})")

        buffer_a = _to_raw_rgb(img_a, (width, height))
        buffer_b = _to_raw_rgb(img_b, (width, height))
    finally:
        if img_a is not image_a:
            img_a.close()
        if img_b is not image_b:
            img_b.close()

    logger.debug(
        "Prepared buffers %dx%d (source %dx%d, target %dx%d)",
        width,
        height,
        meta_a.width,
        meta_a.height,
        meta_b.width,
        meta_b.height,
    )
    return PreparedBuffers(
        buffer_a=buffer_a,
        buffer_b=buffer_b,
        width=width,
        height=height,
        meta_a=meta_a,
        meta_b=meta_b,
    )

