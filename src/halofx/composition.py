"""Composition graph for the floating video render.

The render is a single ffmpeg invocation driven by a ``-filter_complex``
graph. The graph is built here as an explicit list of named stages, each
reading labelled ports and writing one, so its shape can be inspected and
tested without running ffmpeg:

    [0:v] background  -> scale to canvas, rgba                 -> [bg]
    [1:v] video       -> scale to fitted size, rgba            -> [win]
    [2:v] clip mask   -> scale, rgba, alphaextract, gblur      -> [mask]
    [win][mask]       -> alphamerge                            -> [rounded]
    [3:v] frame       -> rgba                                  -> [frame]
    [bg][frame]       -> overlay centered                      -> [bgframe]
    [bgframe][rounded]-> overlay centered                      -> output

The frame stages are left out when the frame width is 0, in which case the
rounded video is laid directly on ``[bg]``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from halofx.config import CompositionSettings
from halofx.errors import CompositionConfigError
from halofx.geometry import Dimensions
from halofx.logging import get_logger
from halofx.mask import MaskRaster

logger = get_logger(__name__)

CENTER_OVERLAY = "overlay=(W-w)/2:(H-h)/2"

_STREAM_PORT = re.compile(r"^(\d+):v$")


@dataclass(frozen=True)
class InputSource:
    """One ``-i`` input of the ffmpeg command.

    Attributes:
        label: What the input is (background, video, clip_mask, frame)
        path: File to read
        loop: Repeat a still image for the duration of the render
    """

    label: str
    path: Path
    loop: bool = False

    def to_args(self) -> list[str]:
        args = ["-loop", "1"] if self.loop else []
        return args + ["-i", str(self.path)]


@dataclass(frozen=True)
class Stage:
    """A node of the filter graph.

    Attributes:
        name: Stage name
        inputs: Ports read, either input streams ("0:v") or stage outputs
        filters: Filter chain applied in order
        output: Port written; None for the final stage, which feeds the file
    """

    name: str
    inputs: tuple[str, ...]
    filters: tuple[str, ...]
    output: str | None = None

    def render(self) -> str:
        """Render as a filtergraph chain, e.g. ``[win][mask]alphamerge[rounded]``."""
        ports = "".join(f"[{port}]" for port in self.inputs)
        out = f"[{self.output}]" if self.output else ""
        return f"{ports}{','.join(self.filters)}{out}"


@dataclass
class CompositionPlan:
    """A complete render: inputs, filter graph and output parameters."""

    canvas: Dimensions
    video_size: Dimensions
    inputs: list[InputSource]
    stages: list[Stage]
    output_path: Path
    overwrite: bool = False
    # End with the shortest input; the looped background never ends
    shortest: bool = True
    extra_output_args: list[str] = field(default_factory=list)

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    @property
    def has_frame(self) -> bool:
        return any(source.label == "frame" for source in self.inputs)

    def stage(self, name: str) -> Stage:
        """Look up a stage by name.

        Raises:
            KeyError: If the plan has no such stage.
        """
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)

    def filter_complex(self) -> str:
        return ";".join(stage.render() for stage in self.stages)

    def to_ffmpeg_args(self) -> list[str]:
        """Arguments for ffmpeg, excluding the executable itself."""
        # -n makes ffmpeg refuse an existing destination instead of prompting
        args = ["-y" if self.overwrite else "-n"]
        for source in self.inputs:
            args.extend(source.to_args())
        args.extend(["-filter_complex", self.filter_complex()])
        if self.shortest:
            args.append("-shortest")
        args.extend(self.extra_output_args)
        args.append(str(self.output_path))
        return args


def check_wiring(stages: list[Stage], input_count: int) -> None:
    """Verify the stages form a valid graph in dependency order.

    Every port must be an existing input stream or the output of an earlier
    stage, every stage output must be consumed exactly once, and exactly
    one stage (the last) feeds the output file.

    Raises:
        CompositionConfigError: On any wiring problem.
    """
    produced: dict[str, int] = {}
    for index, stage in enumerate(stages):
        for port in stage.inputs:
            match = _STREAM_PORT.match(port)
            if match:
                if int(match.group(1)) >= input_count:
                    raise CompositionConfigError(
                        f"Stage '{stage.name}' reads missing input {port}"
                    )
                continue
            if port not in produced:
                raise CompositionConfigError(
                    f"Stage '{stage.name}' reads port '{port}' before it is produced"
                )
            produced[port] += 1

        if stage.output is None and index != len(stages) - 1:
            raise CompositionConfigError(f"Only the last stage may feed the output, not '{stage.name}'")
        if stage.output is not None:
            if stage.output in produced:
                raise CompositionConfigError(f"Port '{stage.output}' is produced twice")
            produced[stage.output] = 0

    if not stages or stages[-1].output is not None:
        raise CompositionConfigError("Graph has no final output stage")

    unused = [port for port, uses in produced.items() if uses != 1]
    if unused:
        raise CompositionConfigError(
            f"Ports must be consumed exactly once: {', '.join(unused)}"
        )


class CompositionPlanner:
    """Builds the composition plan for one render."""

    def __init__(self, settings: CompositionSettings | None = None) -> None:
        self.settings = settings or CompositionSettings()

    def _validate(
        self,
        canvas: Dimensions,
        video_size: Dimensions,
        clip_mask: MaskRaster,
        frame: MaskRaster | None,
        frame_width: int,
    ) -> None:
        for label, size in (
            ("canvas", canvas),
            ("video", video_size),
            ("clip mask", clip_mask.dimensions),
        ):
            if size.is_empty:
                raise CompositionConfigError(f"The {label} has zero size", context={"size": str(size)})

        if clip_mask.dimensions != video_size:
            raise CompositionConfigError(
                "Clip mask size does not match the fitted video",
                context={"mask": str(clip_mask.dimensions), "video": str(video_size)},
            )

        if frame_width < 0:
            raise CompositionConfigError(f"Frame width cannot be negative: {frame_width}")

        if frame_width == 0:
            if frame is not None:
                raise CompositionConfigError("A frame raster was given but the frame width is 0")
            return

        if frame is None:
            raise CompositionConfigError(f"Frame width is {frame_width} but no frame raster was given")

        required = video_size.grow(frame_width)
        if frame.dimensions.width < required.width or frame.dimensions.height < required.height:
            raise CompositionConfigError(
                "Frame raster is smaller than the video plus its border",
                context={"frame": str(frame.dimensions), "required": str(required)},
            )

    def plan(
        self,
        *,
        canvas: Dimensions,
        background: Path,
        video: Path,
        video_size: Dimensions,
        clip_mask: MaskRaster,
        output_path: Path,
        frame: MaskRaster | None = None,
        frame_width: int = 0,
        overwrite: bool = False,
    ) -> CompositionPlan:
        """Build the plan layering background, frame and rounded video.

        Args:
            canvas: Output frame size
            background: Background image (looped as a still)
            video: Source video
            video_size: Fitted video size
            clip_mask: Rounded mask at the fitted size
            output_path: Destination file
            frame: Frame raster, required when ``frame_width`` > 0
            frame_width: Frame thickness; 0 leaves the frame out
            overwrite: Whether an existing destination may be replaced

        Returns:
            The composition plan.

        Raises:
            CompositionConfigError: If raster sizes are zero or inconsistent.
        """
        self._validate(canvas, video_size, clip_mask, frame, frame_width)

        inputs = [
            InputSource("background", Path(background), loop=True),
            InputSource("video", Path(video)),
            InputSource("clip_mask", clip_mask.path),
        ]
        blur = f"gblur=sigma={self.settings.blur_sigma:g}:steps={self.settings.blur_steps}"
        stages = [
            Stage("background", ("0:v",), (f"scale={canvas.width}:{canvas.height}", "format=rgba"), "bg"),
            Stage("video", ("1:v",), (f"scale={video_size.width}:{video_size.height}", "format=rgba"), "win"),
            Stage(
                "clip_mask",
                ("2:v",),
                (f"scale={video_size.width}:{video_size.height}", "format=rgba", "alphaextract", blur),
                "mask",
            ),
            Stage("rounded_video", ("win", "mask"), ("alphamerge",), "rounded"),
        ]

        base = "bg"
        if frame_width > 0:
            inputs.append(InputSource("frame", frame.path))
            stages.append(Stage("frame", (f"{len(inputs) - 1}:v",), ("format=rgba",), "frame"))
            stages.append(Stage("bg_with_frame", ("bg", "frame"), (CENTER_OVERLAY,), "bgframe"))
            base = "bgframe"

        stages.append(Stage("final", (base, "rounded"), (CENTER_OVERLAY,)))
        check_wiring(stages, len(inputs))

        plan = CompositionPlan(
            canvas=canvas,
            video_size=video_size,
            inputs=inputs,
            stages=stages,
            output_path=Path(output_path),
            overwrite=overwrite,
            extra_output_args=list(self.settings.extra_output_args),
        )
        logger.debug(
            "Built composition plan",
            extra={"stages": ",".join(plan.stage_names), "video": str(video_size), "canvas": str(canvas)},
        )
        return plan
