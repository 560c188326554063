"""Background images for the canvas.

Three built-in backgrounds are drawn as smooth diagonal gradients at
render time. Any other choice is treated as a path to a JPEG, PNG or GIF.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy
from PIL import Image, UnidentifiedImageError

from halofx.config import DEFAULT_BACKGROUND
from halofx.errors import InputValidationError
from halofx.geometry import Dimensions
from halofx.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_IMAGE_FORMATS = ("JPEG", "PNG", "GIF")


@dataclass(frozen=True)
class GradientPreset:
    """A diagonal gradient from the top-left to the bottom-right corner."""

    name: str
    start: tuple[int, int, int]
    end: tuple[int, int, int]


BUILTIN_BACKGROUNDS = {
    "1": GradientPreset("midnight", (18, 24, 64), (104, 44, 138)),
    "2": GradientPreset("sunset", (238, 120, 72), (176, 48, 112)),
    "3": GradientPreset("lagoon", (22, 44, 52), (36, 148, 140)),
}


def is_builtin(choice: str) -> bool:
    return choice in BUILTIN_BACKGROUNDS


def render_gradient(preset: GradientPreset, size: Dimensions) -> Image.Image:
    """Draw ``preset`` at ``size`` as an RGB image."""
    ys, xs = numpy.indices((size.height, size.width), dtype=numpy.float64)
    span = max(size.width + size.height - 2, 1)
    t = ((xs + ys) / span)[..., None]

    start = numpy.array(preset.start, dtype=numpy.float64)
    end = numpy.array(preset.end, dtype=numpy.float64)
    pixels = start + (end - start) * t
    return Image.fromarray(numpy.clip(numpy.rint(pixels), 0, 255).astype(numpy.uint8))


def validate_image_file(path: str | Path) -> Path:
    """Check that ``path`` is a decodable JPEG, PNG or GIF.

    Raises:
        InputValidationError: If the file is missing or not a supported image.
    """
    path = Path(path)
    if not path.is_file():
        raise InputValidationError(f"Background image not found: {path}")

    try:
        with Image.open(path) as image:
            image_format = image.format
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InputValidationError(f"Not an image: {path}") from e

    if image_format not in SUPPORTED_IMAGE_FORMATS:
        raise InputValidationError(
            f"Unsupported image format {image_format}",
            context={"path": str(path)},
        )
    return path


def resolve_background(choice: str, work_dir: Path, canvas: Dimensions) -> Path:
    """Turn a background choice into an image file ffmpeg can read.

    Built-in choices are drawn into ``work_dir``. An unusable image path is
    reported and replaced with the default background.

    Args:
        choice: "1".."3" or an image path
        work_dir: Directory for generated files
        canvas: Output canvas size

    Returns:
        Path to the background image.
    """
    if not is_builtin(choice):
        try:
            return validate_image_file(choice)
        except InputValidationError as e:
            logger.warning(f"Invalid background, using default: {e}")
            choice = DEFAULT_BACKGROUND

    preset = BUILTIN_BACKGROUNDS[choice]
    path = Path(work_dir) / f"halofx-bg-{preset.name}.png"
    render_gradient(preset, canvas).save(path, format="PNG")
    logger.debug("Drew built-in background", extra={"preset": preset.name, "path": str(path)})
    return path
