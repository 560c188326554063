"""Rounded-rectangle alpha masks.

The same raster serves two purposes in a render: at the fitted video size
with an opaque fill it clips the video's corners, and at a slightly larger
size with a faint white fill it becomes the translucent frame behind the
video. Edges are hard; the composition graph blurs the clip mask to
anti-alias it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

import numpy
from PIL import Image

from halofx.errors import MaskIOError
from halofx.geometry import Dimensions
from halofx.logging import get_logger

logger = get_logger(__name__)


class RGBA(NamedTuple):
    """8-bit color with alpha."""

    r: int
    g: int
    b: int
    a: int


OPAQUE_BLACK = RGBA(0, 0, 0, 255)


@dataclass(frozen=True)
class MaskSpec:
    """One rounded-rectangle raster request.

    Attributes:
        width: Raster width in pixels
        height: Raster height in pixels
        corner_radius: Corner radius; not checked against the raster size
        fill: Color of every pixel; its alpha is used outside the corners
    """

    width: int
    height: int
    corner_radius: int = 16
    fill: RGBA = OPAQUE_BLACK

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)


@dataclass(frozen=True)
class MaskRaster:
    """A mask written to disk, as handed to the composition planner."""

    path: Path
    dimensions: Dimensions


def clip_mask_spec(video: Dimensions, radius: int) -> MaskSpec:
    """Opaque mask that cuts the video's corners."""
    return MaskSpec(video.width, video.height, radius, OPAQUE_BLACK)


def frame_mask_spec(video: Dimensions, frame_width: int, radius: int, alpha: int = 40) -> MaskSpec:
    """Translucent white plate extending ``frame_width`` past the video."""
    size = video.grow(frame_width)
    return MaskSpec(size.width, size.height, radius, RGBA(255, 255, 255, alpha))


def inside_circle(x, y, cx, cy, radius):
    """Whether pixel (x, y) lies within ``radius`` of (cx, cy), boundary included.

    Works on scalars or numpy arrays of coordinates.
    """
    return numpy.hypot(x - cx, y - cy) <= radius


def _corner_regions(xs, ys, width: int, height: int, r: int) -> list[tuple[numpy.ndarray, int, int]]:
    """(region selector, anchor x, anchor y) for each of the four corners."""
    left, right = xs < r, xs >= width - r
    top, bottom = ys < r, ys >= height - r
    return [
        (left & top, r, r),
        (right & top, width - r - 1, r),
        (left & bottom, r, height - r - 1),
        (right & bottom, width - r - 1, height - r - 1),
    ]


def mask_alpha(spec: MaskSpec) -> numpy.ndarray:
    """Alpha channel of the mask as a (height, width) uint8 array."""
    alpha = numpy.full((spec.height, spec.width), spec.fill.a, dtype=numpy.uint8)
    r = spec.corner_radius
    if r <= 0:
        return alpha

    ys, xs = numpy.indices((spec.height, spec.width))
    for region, cx, cy in _corner_regions(xs, ys, spec.width, spec.height, r):
        outside = region & ~inside_circle(xs, ys, cx, cy, r)
        alpha[outside] = 0
    return alpha


def render_rounded_mask(spec: MaskSpec) -> Image.Image:
    """Render the mask in memory as an RGBA image."""
    pixels = numpy.empty((spec.height, spec.width, 4), dtype=numpy.uint8)
    pixels[..., 0] = spec.fill.r
    pixels[..., 1] = spec.fill.g
    pixels[..., 2] = spec.fill.b
    pixels[..., 3] = mask_alpha(spec)
    return Image.fromarray(pixels)


def generate_rounded_mask(spec: MaskSpec, path: str | Path) -> MaskRaster:
    """Write the mask as a PNG.

    Args:
        spec: Mask to draw
        path: Destination file

    Returns:
        The written raster

    Raises:
        MaskIOError: If the file cannot be created or encoded.
    """
    path = Path(path)
    image = render_rounded_mask(spec)
    try:
        image.save(path, format="PNG")
    except (OSError, ValueError) as e:
        raise MaskIOError(f"Failed to write mask: {e}", context={"path": str(path)}) from e

    logger.debug(
        "Wrote rounded mask",
        extra={"path": str(path), "size": str(spec.dimensions), "radius": spec.corner_radius},
    )
    return MaskRaster(path=path, dimensions=spec.dimensions)
