"""Image manipulation utilities.

This module wraps the avatar pipeline using Pillow: format detection,
JPEG to PNG normalisation, aspect preserving resizing and the final
composite of the hat over the background. These helpers are used by the
API endpoints for both the uploaded photos and the bundled demo image.

Every helper takes and returns encoded bytes, except :func:`composite`
which works on decoded images. Failures raise subclasses of
:class:`avatar_library.errors.AvatarError`.
"""

from __future__ import annotations

import base64
import logging
import math
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image  # type: ignore[import]

from .assets import CANVAS_SIZE, read_foreground
from .errors import AssetMissing, DecodeFailure, EncodeFailure, UnsupportedFormat

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
DEFAULT_MAX_WIDTH, DEFAULT_MAX_HEIGHT = CANVAS_SIZE
DATA_URI_PREFIX = "data:image/png;base64,"

# UnidentifiedImageError is an OSError; broken chunks surface as SyntaxError.
# DecompressionBombError is raised for images over Image.MAX_IMAGE_PIXELS.
DECODE_ERRORS = (OSError, SyntaxError, ValueError, EOFError, Image.DecompressionBombError)


def is_png(data: bytes) -> bool:
    """Return True when ``data`` starts with the 8 byte PNG signature."""
    return len(data) >= len(PNG_SIGNATURE) and data[: len(PNG_SIGNATURE)] == PNG_SIGNATURE


def _open(data: bytes, fmt: str) -> Image.Image:
    img = Image.open(BytesIO(data), formats=[fmt])
    img.load()
    return img


def encode_png(img: Image.Image) -> bytes:
    """Encode a decoded image as PNG bytes.

    Raises:
        EncodeFailure: If Pillow cannot write the image.
    """
    buffer = BytesIO()
    try:
        img.save(buffer, format="PNG")
    except (OSError, ValueError) as e:
        logger.error("output new image with error: %s", e)
        raise EncodeFailure(str(e)) from e
    return buffer.getvalue()


def normalize_to_png(data: bytes) -> bytes:
    """Make sure the input is PNG encoded.

    PNG input is returned as is. Anything else is decoded as a JPEG and
    re-encoded as PNG.

    Args:
        data: Raw image bytes, PNG or JPEG.

    Returns:
        PNG bytes.

    Raises:
        UnsupportedFormat: If the input is not a PNG and not a decodable JPEG.
    """
    if is_png(data):
        return data
    try:
        img = _open(data, "JPEG")
    except DECODE_ERRORS as e:
        logger.info("rejecting non PNG/JPEG input: %s", e)
        raise UnsupportedFormat(f"image: unknown or invalid format: {e}") from e
    # CMYK and YCbCr JPEGs cannot be written as PNG directly
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    return encode_png(img)


def calculate_ratio_fit(
    src_width: int,
    src_height: int,
    max_width: int = DEFAULT_MAX_WIDTH,
    max_height: int = DEFAULT_MAX_HEIGHT,
) -> Tuple[int, int]:
    """Largest size with the source aspect ratio that fits the bounds.

    Both sides are rounded up, so the result can exceed the bound by a pixel
    when the float product lands just above an integer.
    """
    if src_width <= 0 or src_height <= 0:
        raise ValueError(f"invalid image size {src_width}x{src_height}")
    ratio = min(max_width / src_width, max_height / src_height)
    return math.ceil(src_width * ratio), math.ceil(src_height * ratio)


def resize_to_fit(data: bytes) -> bytes:
    """Resize a PNG so it fits into the 300x300 canvas.

    A 300x300 input is re-encoded without resizing. Any other size is
    scaled with a Lanczos filter to :func:`calculate_ratio_fit`; the result
    is not padded or cropped.

    Args:
        data: PNG bytes.

    Returns:
        The resized image as PNG bytes.

    Raises:
        DecodeFailure: If ``data`` is not a decodable PNG.
    """
    try:
        img = _open(data, "PNG")
    except DECODE_ERRORS as e:
        logger.warning("cannot decode background: %s", e)
        raise DecodeFailure(f"png: invalid format: {e}") from e

    if img.size == CANVAS_SIZE:
        return encode_png(img)

    width, height = img.size
    new_size = calculate_ratio_fit(width, height)
    try:
        if img.mode not in ("RGB", "RGBA", "L", "LA"):
            # palette and 1-bit images would otherwise be resized with NEAREST
            img = img.convert("RGBA")
        resized = img.resize(new_size, Image.Resampling.LANCZOS)
    except DECODE_ERRORS as e:
        raise DecodeFailure(f"resize: {e}") from e
    logger.debug("resized background %sx%s -> %sx%s", width, height, *new_size)
    return encode_png(resized)


def _clip(img: Image.Image, size: Tuple[int, int]) -> Image.Image:
    if img.width <= size[0] and img.height <= size[1]:
        return img
    return img.crop((0, 0, min(img.width, size[0]), min(img.height, size[1])))


def composite(background: Image.Image, foreground: Image.Image) -> Image.Image:
    """Draw ``background`` then ``foreground`` onto a fresh 300x300 canvas.

    Both layers are placed at the origin with source-over blending and are
    clipped to the canvas. Canvas pixels the background does not cover stay
    fully transparent until the foreground is drawn.
    """
    canvas = Image.new("RGBA", CANVAS_SIZE, (0, 0, 0, 0))
    for layer in (background, foreground):
        canvas.alpha_composite(_clip(layer.convert("RGBA"), CANVAS_SIZE), dest=(0, 0))
    return canvas


def generate_avatar(data: bytes, images_dir: Optional[str] = None) -> bytes:
    """Run the full pipeline on a PNG background.

    Args:
        data: Background image as PNG bytes, see :func:`normalize_to_png`.
        images_dir: Override for the directory holding ``hat.png``.

    Returns:
        The 300x300 avatar as PNG bytes.

    Raises:
        AvatarError: The subclass and its ``code`` identify the failed stage.
    """
    background_buf = resize_to_fit(data)
    try:
        background = _open(background_buf, "PNG")
    except DECODE_ERRORS as e:
        logger.error("cannot decode resized background: %s", e)
        raise DecodeFailure(str(e), code=10013) from e

    foreground_buf = read_foreground(images_dir)
    try:
        foreground = _open(foreground_buf, "PNG")
    except DECODE_ERRORS as e:
        logger.error("cannot decode foreground: %s", e)
        raise AssetMissing(f"png: invalid format: {e}", code=10022) from e

    try:
        canvas = composite(background, foreground)
    except ValueError as e:
        logger.error("cannot composite: %s", e)
        raise DecodeFailure(str(e), code=10013) from e
    return encode_png(canvas)


def to_data_uri(png: bytes) -> str:
    """Wrap PNG bytes into a ``data:image/png;base64,`` URI."""
    return DATA_URI_PREFIX + base64.b64encode(png).decode("ascii")
