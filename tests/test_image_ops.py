"""Unit tests for the avatar pipeline in ``avatar_library.image_ops``.

Images are synthesised in memory with Pillow; the hat asset is written to
a temporary directory so no bundled files are needed.
"""

import base64
import io

import pytest
from PIL import Image

from avatar_library import image_ops
from avatar_library.errors import AssetMissing, DecodeFailure, UnsupportedFormat

RED = (255, 0, 0, 255)
GREEN = (0, 128, 0)


def _encode(img, fmt="PNG"):
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def _solid(size, color=GREEN, mode="RGB", fmt="PNG"):
    return _encode(Image.new(mode, size, color), fmt)


def _hat(size=(300, 300)):
    """Transparent overlay with an opaque red band over the top 100 rows."""
    hat = Image.new("RGBA", size, (0, 0, 0, 0))
    hat.paste(Image.new("RGBA", (size[0], 100), RED), (0, 0))
    return hat


@pytest.fixture
def images_dir(tmp_path):
    _hat().save(tmp_path / "hat.png")
    return tmp_path


def _decode(png):
    img = Image.open(io.BytesIO(png))
    img.load()
    return img


# --- Format detection and normalisation ---

def test_is_png():
    assert image_ops.is_png(_solid((4, 4)))
    assert not image_ops.is_png(_solid((4, 4), fmt="JPEG"))
    assert not image_ops.is_png(b"\x89PNG")
    assert not image_ops.is_png(b"")


def test_normalize_passes_png_through_unchanged():
    data = _solid((10, 10))
    assert image_ops.normalize_to_png(data) is data


def test_normalize_converts_jpeg_to_png():
    png = image_ops.normalize_to_png(_solid((40, 20), fmt="JPEG"))
    assert image_ops.is_png(png)
    assert _decode(png).size == (40, 20)


def test_normalize_converts_cmyk_jpeg():
    data = _solid((16, 16), color=(0, 255, 255, 0), mode="CMYK", fmt="JPEG")
    img = _decode(image_ops.normalize_to_png(data))
    assert img.mode == "RGB"


@pytest.mark.parametrize("data", [b"GIF89a not really", b"", b"garbage" * 10])
def test_normalize_rejects_unknown_formats(data):
    with pytest.raises(UnsupportedFormat):
        image_ops.normalize_to_png(data)


def test_normalize_rejects_real_gif():
    with pytest.raises(UnsupportedFormat):
        image_ops.normalize_to_png(_solid((8, 8), color=1, mode="P", fmt="GIF"))


# --- Aspect fit ---

@pytest.mark.parametrize(
    "size, expected",
    [
        ((600, 300), (300, 150)),
        ((300, 600), (150, 300)),
        ((100, 50), (300, 150)),
        ((1000, 1000), (300, 300)),
        ((900, 400), (300, 134)),
    ],
)
def test_calculate_ratio_fit(size, expected):
    assert image_ops.calculate_ratio_fit(*size) == expected


@pytest.mark.parametrize("size", [(640, 480), (123, 457), (1920, 1080), (33, 1000)])
def test_ratio_fit_preserves_aspect(size):
    w, h = image_ops.calculate_ratio_fit(*size)
    assert max(w, h) in (300, 301)
    # ceiling adds at most one pixel to each side
    assert abs(w / h - size[0] / size[1]) <= (1.0 / min(w, h)) * (size[0] / size[1] + 1)


def test_calculate_ratio_fit_rejects_empty_size():
    with pytest.raises(ValueError):
        image_ops.calculate_ratio_fit(0, 10)


def test_resize_is_noop_for_canvas_size():
    source = Image.new("RGB", (300, 300))
    source.putdata([((x * 7) % 256, (x * 13) % 256, (x * 3) % 256) for x in range(300 * 300)])
    resized = _decode(image_ops.resize_to_fit(_encode(source)))
    assert resized.size == (300, 300)
    assert list(resized.getdata()) == list(source.getdata())


def test_resize_scales_wide_image():
    resized = _decode(image_ops.resize_to_fit(_solid((600, 300))))
    assert resized.size == (300, 150)


def test_resize_handles_palette_png():
    data = _solid((150, 75), color=3, mode="P")
    assert _decode(image_ops.resize_to_fit(data)).size == (300, 150)


def test_resize_rejects_corrupt_png():
    corrupt = image_ops.PNG_SIGNATURE + b"\x00" * 40
    with pytest.raises(DecodeFailure) as exc_info:
        image_ops.resize_to_fit(corrupt)
    assert exc_info.value.code == 10011


# --- Composite ---

def test_composite_leaves_uncovered_pixels_transparent():
    background = Image.new("RGB", (300, 150), GREEN)
    foreground = Image.new("RGBA", (300, 300), (0, 0, 0, 0))
    canvas = image_ops.composite(background, foreground)
    assert canvas.size == (300, 300)
    assert canvas.getpixel((10, 10)) == GREEN + (255,)
    assert canvas.getpixel((10, 200)) == (0, 0, 0, 0)


def test_composite_draws_foreground_over_background():
    canvas = image_ops.composite(Image.new("RGB", (300, 300), GREEN), _hat())
    assert canvas.getpixel((150, 50)) == RED
    assert canvas.getpixel((150, 250)) == GREEN + (255,)


def test_composite_clips_oversized_layers():
    canvas = image_ops.composite(Image.new("RGB", (301, 300), GREEN), _hat((400, 400)))
    assert canvas.size == (300, 300)
    assert canvas.getpixel((299, 0)) == RED


# --- Full pipeline ---

def test_generate_avatar_scenario(images_dir):
    png = image_ops.generate_avatar(_solid((600, 300)), images_dir=str(images_dir))
    avatar = _decode(png)
    assert avatar.format == "PNG"
    assert avatar.size == (300, 300)
    assert avatar.getpixel((150, 50)) == RED
    assert avatar.getpixel((150, 120))[3] == 255
    assert avatar.getpixel((150, 200)) == (0, 0, 0, 0)


@pytest.mark.parametrize("size", [(1, 1), (50, 700), (301, 299), (1024, 768)])
def test_generate_avatar_always_canvas_sized(images_dir, size):
    png = image_ops.generate_avatar(_solid(size), images_dir=str(images_dir))
    assert _decode(png).size == (300, 300)


def test_generate_avatar_missing_foreground(tmp_path):
    with pytest.raises(AssetMissing) as exc_info:
        image_ops.generate_avatar(_solid((300, 300)), images_dir=str(tmp_path))
    assert exc_info.value.code == 10021


def test_generate_avatar_broken_foreground(tmp_path):
    (tmp_path / "hat.png").write_bytes(b"definitely not a png")
    with pytest.raises(AssetMissing) as exc_info:
        image_ops.generate_avatar(_solid((300, 300)), images_dir=str(tmp_path))
    assert exc_info.value.code == 10022


def test_to_data_uri():
    png = _solid((2, 2))
    uri = image_ops.to_data_uri(png)
    assert uri.startswith("data:image/png;base64,")
    assert base64.b64decode(uri.split(",", 1)[1]) == png


def test_resize_rejects_images_over_pixel_limit(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(DecodeFailure) as exc_info:
        image_ops.resize_to_fit(_solid((100, 100)))
    assert exc_info.value.code == 10011


def test_normalize_rejects_jpeg_over_pixel_limit(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(UnsupportedFormat):
        image_ops.normalize_to_png(_solid((100, 100), fmt="JPEG"))
