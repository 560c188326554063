"""Locating the ffmpeg and ffprobe binaries.

Lookup order: an explicit path from configuration, the binary bundled by
imageio-ffmpeg, then the system PATH. ``prefer_system`` moves the PATH
lookup ahead of imageio-ffmpeg.
"""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
import sys
from pathlib import Path
from typing import NamedTuple

from pydantic import BaseModel, Field

FFMPEG_ENV = "HALOFX_FFMPEG"
FFPROBE_ENV = "HALOFX_FFPROBE"


class FFmpegInfo(NamedTuple):
    """Information about FFmpeg installation."""

    path: str
    version: str
    available: bool
    source: str  # "custom", "imageio", "system", or "not_found"


class FFmpegConfig(BaseModel):
    """Configuration for FFmpeg binary location."""

    custom_ffmpeg_path: str | None = Field(
        default=None,
        description="Custom path to FFmpeg executable"
    )
    custom_ffprobe_path: str | None = Field(
        default=None,
        description="Custom path to FFprobe executable"
    )
    prefer_system: bool = Field(
        default=False,
        description="Prefer system FFmpeg over bundled version"
    )

    @classmethod
    def from_env(cls) -> "FFmpegConfig":
        """Build a config from HALOFX_FFMPEG / HALOFX_FFPROBE."""
        return cls(
            custom_ffmpeg_path=os.environ.get(FFMPEG_ENV) or None,
            custom_ffprobe_path=os.environ.get(FFPROBE_ENV) or None,
        )


def _subprocess_flags() -> int:
    if platform.system() == "Windows":
        return subprocess.CREATE_NO_WINDOW
    return 0


def _get_ffmpeg_from_imageio() -> str | None:
    """Get FFmpeg path from the imageio-ffmpeg package."""
    try:
        import imageio_ffmpeg
        return imageio_ffmpeg.get_ffmpeg_exe()
    except (ImportError, RuntimeError):
        return None


def _get_ffprobe_from_imageio() -> str | None:
    """Look for ffprobe next to imageio-ffmpeg's ffmpeg.

    imageio-ffmpeg does not bundle ffprobe itself.
    """
    ffmpeg_path = _get_ffmpeg_from_imageio()
    if ffmpeg_path is None:
        return None

    name = "ffprobe.exe" if platform.system() == "Windows" else "ffprobe"
    ffprobe_path = Path(ffmpeg_path).parent / name
    if ffprobe_path.exists():
        return str(ffprobe_path)
    return None


def _resolve(custom: str | None, prefer_system: bool, bundled, system_name: str) -> tuple[str | None, str]:
    """Return (path, source) for one binary."""
    if custom and Path(custom).exists():
        return custom, "custom"

    system_path = shutil.which(system_name)
    if prefer_system and system_path:
        return system_path, "system"

    bundled_path = bundled()
    if bundled_path:
        return bundled_path, "imageio"

    if system_path:
        return system_path, "system"
    return None, "not_found"


def get_ffmpeg_path(config: FFmpegConfig | None = None) -> str | None:
    """Get the path to the FFmpeg executable, or None if not found."""
    config = config or FFmpegConfig()
    path, _ = _resolve(
        config.custom_ffmpeg_path, config.prefer_system, _get_ffmpeg_from_imageio, "ffmpeg"
    )
    return path


def get_ffprobe_path(config: FFmpegConfig | None = None) -> str | None:
    """Get the path to the FFprobe executable, or None if not found."""
    config = config or FFmpegConfig()
    path, _ = _resolve(
        config.custom_ffprobe_path, config.prefer_system, _get_ffprobe_from_imageio, "ffprobe"
    )
    return path


def _get_version(binary_path: str) -> str | None:
    """Read the version from ``<binary> -version``.

    The first line looks like "ffmpeg version 6.0-full_build-www.gyan.dev ...".
    """
    try:
        result = subprocess.run(
            [binary_path, "-version"],
            capture_output=True,
            text=True,
            timeout=10,
            creationflags=_subprocess_flags(),
        )
    except (subprocess.TimeoutExpired, OSError):
        return None

    if result.returncode != 0:
        return None

    first_line = result.stdout.split("\n")[0]
    if "version" in first_line.lower():
        parts = first_line.split("version")
        if len(parts) > 1 and parts[1].strip():
            return parts[1].strip().split()[0]
    return first_line.strip() or None


def get_ffmpeg_info(config: FFmpegConfig | None = None) -> FFmpegInfo:
    """Get path, version and source of the FFmpeg that would be used."""
    config = config or FFmpegConfig()
    path, source = _resolve(
        config.custom_ffmpeg_path, config.prefer_system, _get_ffmpeg_from_imageio, "ffmpeg"
    )

    if path is None:
        return FFmpegInfo(path="", version="", available=False, source="not_found")

    version = _get_version(path) or "unknown"
    return FFmpegInfo(path=path, version=version, available=True, source=source)


def verify_ffmpeg(config: FFmpegConfig | None = None) -> tuple[bool, str]:
    """Verify FFmpeg is available and runs.

    Returns:
        Tuple of (success, message).
    """
    info = get_ffmpeg_info(config)

    if not info.available:
        return (False, "FFmpeg not found. Please install imageio-ffmpeg or add FFmpeg to PATH.")

    if info.version == "unknown":
        return (False, f"FFmpeg found at {info.path} but did not report a version")

    return (True, f"FFmpeg {info.version} available ({info.source}): {info.path}")


def check_ffprobe(config: FFmpegConfig | None = None) -> tuple[bool, str]:
    """Check if FFprobe is available.

    Returns:
        Tuple of (available, message).
    """
    path = get_ffprobe_path(config)

    if path is None:
        return (False, "FFprobe not found")

    if _get_version(path) is None:
        return (False, f"FFprobe at {path} did not run")

    return (True, f"FFprobe available: {path}")


def get_dependency_report(config: FFmpegConfig | None = None) -> dict[str, dict[str, str | bool]]:
    """Collect the status of every external dependency."""
    ffmpeg_info = get_ffmpeg_info(config)
    ffprobe_available, ffprobe_msg = check_ffprobe(config)

    report: dict[str, dict[str, str | bool]] = {
        "ffmpeg": {
            "available": ffmpeg_info.available,
            "path": ffmpeg_info.path,
            "version": ffmpeg_info.version,
            "source": ffmpeg_info.source,
        },
        "ffprobe": {
            "available": ffprobe_available,
            "path": get_ffprobe_path(config) or "",
            "message": ffprobe_msg,
        },
        "platform": {
            "system": platform.system(),
            "machine": platform.machine(),
            "python": sys.version,
        },
    }

    try:
        import imageio_ffmpeg
        report["imageio_ffmpeg"] = {
            "available": True,
            "version": getattr(imageio_ffmpeg, "__version__", "unknown"),
        }
    except ImportError:
        report["imageio_ffmpeg"] = {"available": False, "version": ""}

    return report
