"""End-to-end floating video render.

Ties the pieces together for one input file: validate paths, probe the
source, fit it inside the padded canvas, draw the clip mask and frame,
resolve the background, plan the composition and hand it to ffmpeg.

All intermediate rasters live in a temporary directory that is removed
when the render ends, whether it succeeded or failed.
"""

from __future__ import annotations

import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path

from halofx.backgrounds import resolve_background
from halofx.composition import CompositionPlan, CompositionPlanner
from halofx.config import RenderSettings
from halofx.errors import (
    CompositionConfigError,
    ErrorContext,
    InputValidationError,
    OverwriteRefusedError,
)
from halofx.ffmpeg import FFmpegRenderer, ProbeClient, ProcessRunner
from halofx.geometry import Dimensions, fit_bounds, fit_inside
from halofx.logging import get_logger, log_operation_complete, log_operation_start
from halofx.mask import clip_mask_spec, frame_mask_spec, generate_rounded_mask

logger = get_logger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".mkv", ".avi", ".mov", ".flv", ".wmv", ".mpeg", ".mpg", ".webm")

OUTPUT_SUFFIX = "_halofx"


@dataclass
class RenderRequest:
    """One render job.

    Attributes:
        input_path: Source video
        output_path: Destination; defaults to ``<stem>_halofx<ext>`` beside the input
        overwrite: Replace an existing destination
        settings: Look and tool settings
        dry_run: Plan everything but don't run ffmpeg
    """

    input_path: Path
    output_path: Path | None = None
    overwrite: bool = False
    settings: RenderSettings = field(default_factory=RenderSettings)
    dry_run: bool = False


@dataclass
class RenderResult:
    """What a render produced."""

    output_path: Path
    source_size: Dimensions
    video_size: Dimensions
    command: list[str]
    rendered: bool
    duration: float = 0.0


def validate_input(path: Path) -> Path:
    """Check the source is an existing file with a known video extension.

    Raises:
        InputValidationError: If it is missing, a directory, or not a video.
    """
    if not path.exists():
        raise InputValidationError(f"Input file not found: {path}")
    if path.is_dir():
        raise InputValidationError(f"Input path is a directory: {path}")
    if path.suffix.lower() not in VIDEO_EXTENSIONS:
        raise InputValidationError(f"Unsupported video format: {path.suffix or '(none)'}")
    return path


def resolve_output_path(input_path: Path, output_path: Path | None, overwrite: bool) -> Path:
    """Pick and check the destination file.

    Raises:
        InputValidationError: If the output directory doesn't exist.
        OverwriteRefusedError: If the destination exists and overwrite is off.
    """
    if output_path is None:
        output_path = input_path.with_name(f"{input_path.stem}{OUTPUT_SUFFIX}{input_path.suffix}")
    elif not output_path.parent.is_dir():
        raise InputValidationError(f"Invalid output directory: {output_path.parent}")

    if output_path.exists() and not overwrite:
        raise OverwriteRefusedError(
            "Output file already exists (use --force)",
            context={"output": str(output_path)},
        )
    return output_path


class FloatingRenderer:
    """Renders a video as a rounded, framed window over a background."""

    def __init__(
        self,
        settings: RenderSettings | None = None,
        probe: ProbeClient | None = None,
        renderer: FFmpegRenderer | None = None,
    ) -> None:
        self.settings = settings or RenderSettings()
        self.probe = probe or ProbeClient(self.settings.ffmpeg)
        self.renderer = renderer or FFmpegRenderer(
            self.settings.ffmpeg, ProcessRunner(timeout=self.settings.timeout)
        )
        self.planner = CompositionPlanner(self.settings.composition)

    def fitted_size(self, source: Dimensions) -> Dimensions:
        """Size of the video layer for a source of the given size."""
        canvas = self.settings.canvas.dimensions
        bounds = fit_bounds(canvas, self.settings.padding_x, self.settings.padding_y)
        return fit_inside(source.width, source.height, bounds.width, bounds.height)

    def build_plan(
        self,
        input_path: Path,
        output_path: Path,
        video_size: Dimensions,
        work_dir: Path,
        overwrite: bool,
    ) -> CompositionPlan:
        """Draw the rasters into ``work_dir`` and plan the composition."""
        settings = self.settings
        canvas = settings.canvas.dimensions
        radius = settings.mask.corner_radius

        if video_size.is_empty:
            raise CompositionConfigError(
                "Fitted video has zero size",
                context={"video": str(video_size)},
            )

        clip_mask = generate_rounded_mask(
            clip_mask_spec(video_size, radius), work_dir / "halofx-mask.png"
        )

        frame = None
        if settings.frame_enabled:
            frame = generate_rounded_mask(
                frame_mask_spec(video_size, settings.frame_width, radius, settings.mask.frame_alpha),
                work_dir / "halofx-frame.png",
            )

        background = resolve_background(settings.background, work_dir, canvas)

        return self.planner.plan(
            canvas=canvas,
            background=background,
            video=input_path,
            video_size=video_size,
            clip_mask=clip_mask,
            frame=frame,
            frame_width=settings.frame_width,
            output_path=output_path,
            overwrite=overwrite,
        )

    def render(self, request: RenderRequest) -> RenderResult:
        """Run a render job.

        Raises:
            HaloFxError: Any validation, geometry, mask, composition or
                external process failure. Temporary files are removed first.
        """
        started = time.monotonic()
        input_path = validate_input(Path(request.input_path))
        output_path = resolve_output_path(
            input_path,
            Path(request.output_path) if request.output_path else None,
            request.overwrite,
        )

        log = logger.with_context(input=str(input_path))
        log_operation_start(log, "render", output=str(output_path))

        with ErrorContext("render", context={"input": str(input_path)}):
            source_size = self.probe.probe_dimensions(input_path)
            video_size = self.fitted_size(source_size)
            log.info(
                f"Fitted {source_size} source to {video_size}",
                extra={"canvas": str(self.settings.canvas.dimensions)},
            )

            with tempfile.TemporaryDirectory(prefix="halofx-") as tmp:
                plan = self.build_plan(
                    input_path, output_path, video_size, Path(tmp), request.overwrite
                )
                command = self.renderer.command_line(plan)
                log.debug("FFmpeg command", extra={"command": " ".join(command)})

                if not request.dry_run:
                    self.renderer.render(plan)

        duration = time.monotonic() - started
        log_operation_complete(log, "render", duration=duration, output=str(output_path))

        return RenderResult(
            output_path=output_path,
            source_size=source_size,
            video_size=video_size,
            command=command,
            rendered=not request.dry_run,
            duration=duration,
        )


def render_video(request: RenderRequest) -> RenderResult:
    """Render ``request`` with its own settings."""
    return FloatingRenderer(request.settings).render(request)
