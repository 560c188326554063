"""Size fitting for the floating video layer."""

from __future__ import annotations

from typing import NamedTuple

from halofx.errors import GeometryPreconditionError


class Dimensions(NamedTuple):
    """Pixel size of a raster."""

    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        """True when either axis is not positive."""
        return self.width <= 0 or self.height <= 0

    def grow(self, border: int) -> "Dimensions":
        """Size after adding ``border`` pixels on every side."""
        return Dimensions(self.width + 2 * border, self.height + 2 * border)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


def fit_inside(
    source_width: int,
    source_height: int,
    max_width: int,
    max_height: int,
) -> Dimensions:
    """Fit a source size into a bounding box without upscaling.

    Uses the smaller of the two axis scales, capped at 1.0, and truncates
    each scaled axis to an integer. Source dimensions must be positive.

    Args:
        source_width: Source width in pixels
        source_height: Source height in pixels
        max_width: Width of the bounding box
        max_height: Height of the bounding box

    Returns:
        Fitted dimensions
    """
    scale = min(max_width / source_width, max_height / source_height)
    if scale > 1:
        scale = 1.0
    return Dimensions(int(source_width * scale), int(source_height * scale))


def fit_bounds(canvas: Dimensions, padding_x: int, padding_y: int) -> Dimensions:
    """Box available to the video once padding is taken off each side.

    Raises:
        GeometryPreconditionError: If the padding leaves no room.
    """
    bounds = Dimensions(canvas.width - 2 * padding_x, canvas.height - 2 * padding_y)
    if bounds.is_empty:
        raise GeometryPreconditionError(
            f"Padding leaves no room on a {canvas} canvas",
            context={"padding_x": padding_x, "padding_y": padding_y},
        )
    return bounds


def center_offset(outer: Dimensions, inner: Dimensions) -> tuple[int, int]:
    """Top-left position that centers ``inner`` on ``outer``.

    Matches ffmpeg's ``overlay=(W-w)/2:(H-h)/2`` for integer sizes.
    """
    return ((outer.width - inner.width) // 2, (outer.height - inner.height) // 2)
