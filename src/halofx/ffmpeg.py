"""Running ffmpeg and ffprobe.

The render core treats both tools as black boxes: it hands ffmpeg a
composition plan and asks ffprobe for a video's size. Diagnostics from
either tool are relayed verbatim, never parsed.
"""

from __future__ import annotations

import json
import platform
import subprocess
from dataclasses import dataclass
from pathlib import Path

from halofx.composition import CompositionPlan
from halofx.errors import ExternalProcessError, ProbeError
from halofx.ffmpeg_binary import FFmpegConfig, get_ffmpeg_path, get_ffprobe_path
from halofx.geometry import Dimensions
from halofx.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ProcessResult:
    """Outcome of an external process."""

    exit_status: int
    stderr: str
    stdout: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class ProcessRunner:
    """Runs an external binary to completion and captures its output."""

    def __init__(self, timeout: int | None = None) -> None:
        """Initialize the runner.

        Args:
            timeout: Seconds before the process is abandoned; None waits
                indefinitely.
        """
        self.timeout = timeout

    def _get_subprocess_flags(self) -> int:
        """Get platform-specific subprocess creation flags."""
        if platform.system() == "Windows":
            return subprocess.CREATE_NO_WINDOW
        return 0

    def run(self, command: str, args: list[str]) -> ProcessResult:
        """Run ``command`` with ``args``.

        A non-zero exit is returned, not raised; callers decide what it means.

        Raises:
            ExternalProcessError: If the binary is missing or cannot start,
                or the timeout expires.
        """
        cmd = [command] + args
        logger.debug("Running external process", extra={"command": " ".join(cmd)})

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                creationflags=self._get_subprocess_flags(),
            )
        except subprocess.TimeoutExpired as e:
            raise ExternalProcessError(
                f"{Path(command).name} timed out after {self.timeout} seconds"
            ) from e
        except FileNotFoundError as e:
            raise ExternalProcessError(f"Executable not found: {command}") from e
        except OSError as e:
            raise ExternalProcessError(f"Failed to run {command}: {e}") from e

        return ProcessResult(
            exit_status=result.returncode,
            stderr=result.stderr or "",
            stdout=result.stdout or "",
        )


class FFmpegRenderer:
    """Executes composition plans with ffmpeg."""

    def __init__(
        self,
        config: FFmpegConfig | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self._config = config or FFmpegConfig()
        self._runner = runner or ProcessRunner()

    @property
    def ffmpeg_path(self) -> str:
        """Path to the ffmpeg executable.

        Raises:
            ExternalProcessError: If ffmpeg cannot be found.
        """
        path = get_ffmpeg_path(self._config)
        if path is None:
            raise ExternalProcessError(
                "FFmpeg not found. Please install imageio-ffmpeg or add FFmpeg to PATH."
            )
        return path

    def command_line(self, plan: CompositionPlan) -> list[str]:
        """Full command, executable included."""
        return [self.ffmpeg_path] + plan.to_ffmpeg_args()

    def render(self, plan: CompositionPlan) -> Path:
        """Run ffmpeg for ``plan`` and return the output path.

        Raises:
            ExternalProcessError: If ffmpeg exits non-zero or produces no file.
        """
        result = self._runner.run(self.ffmpeg_path, plan.to_ffmpeg_args())

        if not result.ok:
            raise ExternalProcessError(
                f"FFmpeg failed with exit status {result.exit_status}",
                exit_status=result.exit_status,
                stderr=result.stderr,
                context={"output": str(plan.output_path)},
            )

        if not plan.output_path.exists():
            raise ExternalProcessError(
                f"Output file was not created: {plan.output_path}",
                exit_status=result.exit_status,
                stderr=result.stderr,
            )

        return plan.output_path


class ProbeClient:
    """Reads video stream dimensions with ffprobe."""

    def __init__(
        self,
        config: FFmpegConfig | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self._config = config or FFmpegConfig()
        # Probing is quick; don't let a broken file hang the render
        self._runner = runner or ProcessRunner(timeout=30)

    def probe_dimensions(self, path: str | Path) -> Dimensions:
        """Width and height of the first video stream.

        Raises:
            ProbeError: If ffprobe is missing or fails, the file has no video
                stream, or the stream reports non-positive dimensions.
        """
        path = Path(path)
        ffprobe_path = get_ffprobe_path(self._config)
        if ffprobe_path is None:
            raise ProbeError("FFprobe not found. Please install FFprobe to read video dimensions.")

        args = [
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "json",
            str(path),
        ]
        result = self._runner.run(ffprobe_path, args)

        if not result.ok:
            raise ProbeError(
                f"Failed to read video file: {path}",
                exit_status=result.exit_status,
                stderr=result.stderr,
            )

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ProbeError(f"Failed to parse ffprobe output for {path}: {e}") from e

        streams = data.get("streams") or []
        if not streams:
            raise ProbeError(f"No video stream found in: {path}")

        try:
            width = int(streams[0].get("width", 0))
            height = int(streams[0].get("height", 0))
        except (TypeError, ValueError) as e:
            raise ProbeError(f"Unreadable dimensions in: {path}") from e

        if width <= 0 or height <= 0:
            raise ProbeError(
                f"Invalid video dimensions {width}x{height}",
                context={"path": str(path)},
            )

        return Dimensions(width, height)
