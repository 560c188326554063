"""Command-line interface for halofx.

Uses Typer for a modern, type-hinted CLI experience.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from halofx import __version__
from halofx.backgrounds import BUILTIN_BACKGROUNDS
from halofx.config import RenderSettings, load_settings
from halofx.errors import HaloFxError, format_error_for_display
from halofx.ffmpeg_binary import (
    FFmpegConfig,
    get_dependency_report,
    get_ffmpeg_info,
    verify_ffmpeg,
)
from halofx.logging import LogConfig, LogLevel, configure_logging
from halofx.render import RenderRequest, render_video

# Load environment variables (HALOFX_FFMPEG, HALOFX_FFPROBE) from a local .env
load_dotenv()

app = typer.Typer(
    name="halofx",
    help="Render a video as a floating rounded window over a background.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"halofx version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", help="Log each render step")
    ] = False,
    debug: Annotated[
        bool, typer.Option("--debug", help="Log ffmpeg commands and stage details")
    ] = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Only log errors")
    ] = False,
    log_file: Annotated[
        Optional[Path], typer.Option("--log-file", help="Also write a full log to this file")
    ] = None,
) -> None:
    """halofx - floating device presentation for screen recordings.

    Scales the video into a 1920x1080 canvas, rounds its corners, outlines it
    with a translucent frame and centers it on a background.
    """
    level = LogLevel.NORMAL
    if quiet:
        level = LogLevel.QUIET
    if verbose:
        level = LogLevel.VERBOSE
    if debug:
        level = LogLevel.DEBUG
    configure_logging(LogConfig(level=level, log_file=log_file))


def _build_settings(
    config_file: Path | None,
    padding_x: int | None,
    padding_y: int | None,
    frame_width: int | None,
    no_frame: bool,
    background: str | None,
    radius: int | None,
) -> RenderSettings:
    """Merge the settings file, environment and command-line overrides."""
    settings = load_settings(config_file) if config_file else RenderSettings()

    if not settings.ffmpeg.custom_ffmpeg_path and not settings.ffmpeg.custom_ffprobe_path:
        settings.ffmpeg = FFmpegConfig.from_env()

    overrides: dict = {}
    if padding_x is not None:
        overrides["padding_x"] = padding_x
    if padding_y is not None:
        overrides["padding_y"] = padding_y
    if frame_width is not None:
        overrides["frame_width"] = frame_width
    if no_frame:
        overrides["frame_width"] = 0
    if background is not None:
        overrides["background"] = background
    if radius is not None:
        overrides["mask"] = {**settings.mask.model_dump(), "corner_radius": radius}

    # Re-validate so out-of-range flags are rejected like bad config values
    return RenderSettings(**{**settings.model_dump(), **overrides})


@app.command()
def render(
    input_path: Annotated[
        Path, typer.Option("--input", "-i", help="Input video file")
    ],
    output_path: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output file (default: <input>_halofx.<ext>)"),
    ] = None,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite the output file if it exists")
    ] = False,
    padding_x: Annotated[
        Optional[int], typer.Option("--px", help="Horizontal padding around video in pixels [default: 50]")
    ] = None,
    padding_y: Annotated[
        Optional[int], typer.Option("--py", help="Vertical padding around video in pixels [default: 40]")
    ] = None,
    frame_width: Annotated[
        Optional[int], typer.Option("--frame-width", help="Frame width in pixels [default: 12]")
    ] = None,
    no_frame: Annotated[
        bool, typer.Option("--no-frame", help="Disable the frame around the video")
    ] = False,
    background: Annotated[
        Optional[str],
        typer.Option("--bg", help="1-3 for built-in backgrounds or an image path [default: 1]"),
    ] = None,
    radius: Annotated[
        Optional[int], typer.Option("--radius", help="Corner radius in pixels [default: 16]")
    ] = None,
    config_file: Annotated[
        Optional[Path], typer.Option("--config", "-c", help="JSON settings file")
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Print the ffmpeg command without running it")
    ] = False,
) -> None:
    """Render INPUT as a floating rounded window over a background."""
    try:
        settings = _build_settings(
            config_file, padding_x, padding_y, frame_width, no_frame, background, radius
        )
    except (FileNotFoundError, ValueError) as e:
        # pydantic's ValidationError and json's JSONDecodeError are ValueErrors
        message = str(e) if not isinstance(e, ValidationError) else f"Invalid settings:\n{e}"
        console.print(f"[red]Error:[/red] {escape(message)}")
        raise typer.Exit(1)

    request = RenderRequest(
        input_path=input_path,
        output_path=output_path,
        overwrite=force,
        settings=settings,
        dry_run=dry_run,
    )

    try:
        with console.status("[cyan]Rendering...[/cyan]", spinner="dots"):
            result = render_video(request)
    except (HaloFxError, OSError) as e:
        console.print(f"[red]Error:[/red] {escape(format_error_for_display(e))}")
        raise typer.Exit(1)

    if dry_run:
        console.print(Panel(escape(" ".join(result.command)), title="ffmpeg command (dry run)"))
        console.print("[dim]Mask, frame and built-in background inputs were temporary and are gone.[/dim]")
        return

    console.print(
        f"[green]Output written to {result.output_path}[/green] "
        f"[dim]({result.video_size} in {settings.canvas.width}x{settings.canvas.height}, "
        f"{result.duration:.1f}s)[/dim]"
    )


@app.command("backgrounds")
def list_backgrounds() -> None:
    """List the built-in backgrounds."""
    table = Table(title="Built-in Backgrounds")
    table.add_column("Choice", style="cyan")
    table.add_column("Name")
    table.add_column("Gradient", style="dim")

    for choice, preset in BUILTIN_BACKGROUNDS.items():
        start = "#{:02x}{:02x}{:02x}".format(*preset.start)
        end = "#{:02x}{:02x}{:02x}".format(*preset.end)
        table.add_row(choice, preset.name, f"{start} -> {end}")

    console.print(table)
    console.print("[dim]Any other --bg value is read as a JPEG, PNG or GIF path.[/dim]")


@app.command()
def check_deps(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show detailed dependency information"),
    ] = False,
) -> None:
    """Check that ffmpeg and ffprobe are available."""
    config = FFmpegConfig.from_env()
    ffmpeg_info = get_ffmpeg_info(config)
    success, message = verify_ffmpeg(config)

    if verbose:
        report = get_dependency_report(config)

        table = Table(title="Dependency Status")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="white")
        table.add_column("Details", style="dim")

        if ffmpeg_info.available:
            table.add_row(
                "FFmpeg",
                f"[green]Available[/green] (v{ffmpeg_info.version})",
                f"Source: {ffmpeg_info.source}\n{ffmpeg_info.path}",
            )
        else:
            table.add_row("FFmpeg", "[red]Not Found[/red]", "Install with: pip install imageio-ffmpeg")

        ffprobe_info = report["ffprobe"]
        if ffprobe_info["available"]:
            table.add_row("FFprobe", "[green]Available[/green]", str(ffprobe_info["path"]))
        else:
            table.add_row("FFprobe", "[red]Not Found[/red]", "Required to read video dimensions")

        imageio_info = report["imageio_ffmpeg"]
        if imageio_info["available"]:
            table.add_row(
                "imageio-ffmpeg",
                "[green]Installed[/green]",
                f"Version: {imageio_info['version']}",
            )
        else:
            table.add_row("imageio-ffmpeg", "[yellow]Not Installed[/yellow]", "")

        platform_info = report["platform"]
        table.add_row("Platform", str(platform_info["system"]), str(platform_info["machine"]))

        console.print(table)
    else:
        console.print(Panel(
            "[bold]Dependency Check[/bold]\n\n"
            + (f"[green]FFmpeg:[/green] {message}" if success else f"[red]FFmpeg:[/red] {message}"),
            title="halofx dependencies",
        ))

    if not success:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
