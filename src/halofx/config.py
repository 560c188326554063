"""Render settings for halofx.

Defaults match the classic halofx look: a 1920x1080 canvas, 16px corners,
a 12px translucent frame and 50/40px padding. Settings can be saved to and
loaded from JSON so a look can be reused across renders.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field

from halofx.ffmpeg_binary import FFmpegConfig
from halofx.geometry import Dimensions

DEFAULT_BACKGROUND = "1"


class CanvasSettings(BaseModel):
    """Size of the output frame."""

    width: int = Field(default=1920, gt=0)
    height: int = Field(default=1080, gt=0)

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)


class MaskSettings(BaseModel):
    """Shape of the clip mask and frame."""

    corner_radius: int = Field(default=16, ge=0)
    # Alpha of the white frame plate (0-255)
    frame_alpha: int = Field(default=40, ge=0, le=255)


class CompositionSettings(BaseModel):
    """Filter parameters of the composition graph."""

    # Gaussian blur applied to the extracted clip-mask alpha
    blur_sigma: float = Field(default=0.6, ge=0.0)
    blur_steps: int = Field(default=1, ge=1, le=6)
    # Passed to ffmpeg before the output path, e.g. ["-c:v", "libx264", "-crf", "20"]
    extra_output_args: list[str] = Field(default_factory=list)


class RenderSettings(BaseModel):
    """Everything a render needs besides its input and output paths."""

    canvas: CanvasSettings = Field(default_factory=CanvasSettings)
    mask: MaskSettings = Field(default_factory=MaskSettings)
    composition: CompositionSettings = Field(default_factory=CompositionSettings)
    padding_x: int = Field(default=50, ge=0)
    padding_y: int = Field(default=40, ge=0)
    # 0 disables the frame
    frame_width: int = Field(default=12, ge=0)
    # "1".."3" for a built-in background, otherwise an image path
    background: str = DEFAULT_BACKGROUND
    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)
    # Seconds before ffmpeg is abandoned; None waits indefinitely
    timeout: int | None = None

    @property
    def frame_enabled(self) -> bool:
        return self.frame_width > 0


def load_settings(path: str | Path) -> RenderSettings:
    """Load render settings from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file is not valid JSON
        pydantic.ValidationError: If a value is out of range
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    return RenderSettings(**data)


def save_settings(path: str | Path, settings: RenderSettings) -> Path:
    """Save render settings to JSON with an atomic write."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + ".tmp")

    with open(temp_path, "w", encoding="utf-8") as f:
        json.dump(settings.model_dump(), f, indent=2)

    temp_path.replace(path)
    return path
