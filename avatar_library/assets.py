"""Access to the bundled image assets.

The service needs two images on disk: the hat overlay drawn over every
avatar and the demo background used by the ``/render/demo/*`` endpoints.
Both live in an ``images`` directory relative to the process working
directory, unless ``IMAGES_DIR`` points somewhere else. The directory is
resolved on every call so a missing asset only fails the requests that
need it, never the startup.

Environment variables:
    IMAGES_DIR: Directory holding ``hat.png`` and ``demo.png`` (default
        ``./images`` under the current working directory).
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional

from PIL import Image, UnidentifiedImageError

from .errors import AssetMissing

logger = logging.getLogger(__name__)

FOREGROUND_IMAGE_NAME = "hat.png"
DEMO_IMAGE_NAME = "demo.png"
CANVAS_SIZE = (300, 300)


def image_directory() -> str:
    """Return the directory the assets are read from."""
    return os.getenv("IMAGES_DIR") or os.path.join(os.getcwd(), "images")


def read_asset(name: str, images_dir: Optional[str] = None) -> bytes:
    """Read the raw bytes of a bundled asset.

    Args:
        name: File name inside the images directory.
        images_dir: Override for the images directory.

    Returns:
        The file content.

    Raises:
        AssetMissing: If the file does not exist or cannot be read.
    """
    path = os.path.join(images_dir or image_directory(), name)
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        logger.error("cannot read asset %s: %s", path, e)
        raise AssetMissing(f"open {path}: {e.strerror or e}") from e


def read_foreground(images_dir: Optional[str] = None) -> bytes:
    return read_asset(FOREGROUND_IMAGE_NAME, images_dir)


def read_demo_image(images_dir: Optional[str] = None) -> bytes:
    return read_asset(DEMO_IMAGE_NAME, images_dir)


def _describe(path: str, expect_size: Optional[tuple] = None) -> str:
    if not os.path.isfile(path):
        return "missing"
    try:
        with Image.open(path) as img:
            size = img.size
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError):
        return "unreadable"
    if expect_size and size != expect_size:
        return f"size {size[0]}x{size[1]}, expected {expect_size[0]}x{expect_size[1]}"
    return "ok"


def check_assets(images_dir: Optional[str] = None) -> Dict[str, str]:
    """Inspect the bundled assets and report their state.

    The hat is drawn at its native size at the canvas origin and is never
    resized, so anything other than a 300x300 hat is reported. Nothing is
    logged here; the caller decides whether to surface problems.
    """
    directory = images_dir or image_directory()
    report = {
        "images_dir": directory,
        "foreground": _describe(os.path.join(directory, FOREGROUND_IMAGE_NAME), CANVAS_SIZE),
        "demo": _describe(os.path.join(directory, DEMO_IMAGE_NAME)),
    }
    return report

