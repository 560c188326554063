"""Tests for the end-to-end render pipeline."""

import logging
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from halofx.config import RenderSettings
from halofx.errors import (
    CompositionConfigError,
    ExternalProcessError,
    GeometryPreconditionError,
    InputValidationError,
    OverwriteRefusedError,
    ProbeError,
)
from halofx.ffmpeg import FFmpegRenderer, ProbeClient
from halofx.geometry import Dimensions
from halofx.render import (
    FloatingRenderer,
    RenderRequest,
    resolve_output_path,
    validate_input,
)


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "talk.mp4"
    path.write_bytes(b"not really a video")
    return path


@pytest.fixture
def probe():
    probe = MagicMock(spec=ProbeClient)
    probe.probe_dimensions.return_value = Dimensions(3840, 2160)
    return probe


@pytest.fixture
def seen():
    """Records what existed on disk while ffmpeg 'ran'."""
    return {}


@pytest.fixture
def ffmpeg(seen):
    renderer = MagicMock(spec=FFmpegRenderer)

    def fake_render(plan):
        seen["plan"] = plan
        seen["inputs"] = {source.label: source.path for source in plan.inputs}
        seen["existed"] = {label: path.exists() for label, path in seen["inputs"].items()}
        for source in plan.inputs:
            if source.label in ("clip_mask", "frame"):
                with Image.open(source.path) as image:
                    seen[f"{source.label}_size"] = image.size
        plan.output_path.write_bytes(b"rendered")
        return plan.output_path

    renderer.render.side_effect = fake_render
    renderer.command_line.side_effect = lambda plan: ["ffmpeg"] + plan.to_ffmpeg_args()
    return renderer


def make_renderer(probe, ffmpeg, **overrides):
    return FloatingRenderer(RenderSettings(**overrides), probe=probe, renderer=ffmpeg)


class TestValidateInput:
    """Tests for input validation."""

    def test_accepts_video(self, video):
        """Test a video file is accepted."""
        assert validate_input(video) == video

    def test_missing(self, tmp_path):
        """Test a missing input."""
        with pytest.raises(InputValidationError, match="not found"):
            validate_input(tmp_path / "missing.mp4")

    def test_directory(self, tmp_path):
        """Test a directory named like a video."""
        folder = tmp_path / "clip.mp4"
        folder.mkdir()
        with pytest.raises(InputValidationError, match="directory"):
            validate_input(folder)

    def test_unsupported_extension(self, tmp_path):
        """Test unsupported extension."""
        path = tmp_path / "notes.txt"
        path.write_text("x")
        with pytest.raises(InputValidationError, match="Unsupported"):
            validate_input(path)

    def test_extension_case_insensitive(self, tmp_path):
        """Test extension case insensitive."""
        path = tmp_path / "CLIP.MOV"
        path.write_bytes(b"x")
        assert validate_input(path) == path


class TestResolveOutputPath:
    """Tests for output path resolution."""

    def test_default_name(self, video):
        """Test the default output sits beside the input."""
        assert resolve_output_path(video, None, False) == video.with_name("talk_halofx.mp4")

    def test_explicit_output(self, tmp_path, video):
        """Test an explicit output path."""
        out = tmp_path / "final.mp4"
        assert resolve_output_path(video, out, False) == out

    def test_missing_directory(self, tmp_path, video):
        """Test an output in a missing directory."""
        with pytest.raises(InputValidationError, match="output directory"):
            resolve_output_path(video, tmp_path / "nope" / "out.mp4", False)

    def test_existing_output_refused(self, tmp_path, video):
        """Test existing output refused."""
        out = tmp_path / "final.mp4"
        out.write_bytes(b"old")

        with pytest.raises(OverwriteRefusedError):
            resolve_output_path(video, out, False)

    def test_existing_default_output_refused(self, video):
        """Test existing default output refused."""
        video.with_name("talk_halofx.mp4").write_bytes(b"old")

        with pytest.raises(OverwriteRefusedError):
            resolve_output_path(video, None, False)

    def test_existing_output_with_overwrite(self, tmp_path, video):
        """Test existing output with overwrite."""
        out = tmp_path / "final.mp4"
        out.write_bytes(b"old")

        assert resolve_output_path(video, out, True) == out


class TestFloatingRenderer:
    """Tests for FloatingRenderer.render."""

    def test_full_render(self, video, probe, ffmpeg, seen):
        """Test a full render with the default look."""
        result = make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video))

        assert result.rendered is True
        assert result.output_path == video.with_name("talk_halofx.mp4")
        assert result.output_path.read_bytes() == b"rendered"
        assert result.source_size == (3840, 2160)
        assert result.video_size.width <= 1820
        assert result.video_size.height <= 1000
        assert result.command[0] == "ffmpeg"

        plan = seen["plan"]
        assert plan.overwrite is False
        assert plan.has_frame
        assert all(seen["existed"].values())
        assert seen["clip_mask_size"] == tuple(result.video_size)
        assert seen["frame_size"] == tuple(result.video_size.grow(12))

    def test_temp_files_removed_after_success(self, video, probe, ffmpeg, seen):
        """Test temp files removed after success."""
        make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video))

        assert not seen["inputs"]["clip_mask"].exists()
        assert not seen["inputs"]["frame"].exists()
        assert not seen["inputs"]["background"].exists()
        assert seen["inputs"]["video"].exists()

    def test_temp_files_removed_after_failure(self, video, probe, ffmpeg, seen):
        """Test temp files removed after failure."""
        def failing_render(plan):
            seen["inputs"] = {source.label: source.path for source in plan.inputs}
            raise ExternalProcessError("FFmpeg failed", exit_status=1, stderr="bad")

        ffmpeg.render.side_effect = failing_render

        with pytest.raises(ExternalProcessError):
            make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video))

        assert not seen["inputs"]["clip_mask"].exists()
        assert not seen["inputs"]["frame"].exists()

    def test_temp_files_removed_after_validation_failure(self, video, probe, ffmpeg):
        """Test temp files removed after validation failure."""
        created = []
        real_mkdtemp = tempfile.mkdtemp

        def tracking_mkdtemp(*args, **kwargs):
            path = real_mkdtemp(*args, **kwargs)
            created.append(Path(path))
            return path

        with patch("halofx.render.CompositionPlanner.plan", side_effect=CompositionConfigError("bad")):
            with patch("tempfile.mkdtemp", side_effect=tracking_mkdtemp):
                with pytest.raises(CompositionConfigError):
                    make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video))

        assert created
        assert not any(path.exists() for path in created)
        ffmpeg.render.assert_not_called()

    def test_no_frame(self, video, probe, ffmpeg, seen):
        """Test rendering without a frame."""
        make_renderer(probe, ffmpeg, frame_width=0).render(RenderRequest(input_path=video))

        plan = seen["plan"]
        assert not plan.has_frame
        assert "frame" not in plan.stage_names

    def test_small_source_not_upscaled(self, video, probe, ffmpeg):
        """Test small source not upscaled."""
        probe.probe_dimensions.return_value = Dimensions(640, 360)

        result = make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video))

        assert result.video_size == (640, 360)

    def test_dry_run_skips_ffmpeg(self, video, probe, ffmpeg):
        """Test dry run skips ffmpeg."""
        result = make_renderer(probe, ffmpeg).render(
            RenderRequest(input_path=video, dry_run=True)
        )

        assert result.rendered is False
        assert "-filter_complex" in result.command
        ffmpeg.render.assert_not_called()

    def test_overwrite_passed_to_plan(self, tmp_path, video, probe, ffmpeg, seen):
        """Test overwrite passed to plan."""
        out = tmp_path / "out.mp4"
        out.write_bytes(b"old")

        make_renderer(probe, ffmpeg).render(
            RenderRequest(input_path=video, output_path=out, overwrite=True)
        )

        assert seen["plan"].overwrite is True
        assert seen["plan"].to_ffmpeg_args()[0] == "-y"

    def test_overwrite_refused_before_probe(self, tmp_path, video, probe, ffmpeg):
        """Test overwrite refused before probe."""
        out = tmp_path / "out.mp4"
        out.write_bytes(b"old")

        with pytest.raises(OverwriteRefusedError):
            make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video, output_path=out))

        probe.probe_dimensions.assert_not_called()
        assert out.read_bytes() == b"old"

    def test_probe_error_propagates(self, video, probe, ffmpeg):
        """Test probe error propagates."""
        probe.probe_dimensions.side_effect = ProbeError("No video stream found")

        with pytest.raises(ProbeError):
            make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video))

        ffmpeg.render.assert_not_called()

    def test_padding_too_large(self, video, probe, ffmpeg):
        """Test padding too large."""
        with pytest.raises(GeometryPreconditionError):
            make_renderer(probe, ffmpeg, padding_x=960).render(RenderRequest(input_path=video))

    def test_degenerate_fit_rejected(self, video, probe, ffmpeg):
        """Test degenerate fit rejected."""
        # 1 pixel wide source scaled by ~0.46 truncates to 0
        probe.probe_dimensions.return_value = Dimensions(1, 2160)

        with pytest.raises(CompositionConfigError):
            make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video))

    def test_log_records_carry_input(self, video, probe, ffmpeg, caplog):
        """Test every render log record names the input file."""
        with caplog.at_level(logging.DEBUG, logger="halofx"):
            make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video))

        messages = {r.getMessage(): r for r in caplog.records if r.name == "halofx.render"}
        assert "Starting: render" in messages
        assert "Completed: render" in messages
        assert all(r.input == str(video) for r in messages.values())

    def test_failure_not_logged_as_error(self, video, probe, ffmpeg, caplog):
        """Test a failed render is left for the caller to report."""
        probe.probe_dimensions.side_effect = ProbeError("No video stream found")

        with caplog.at_level(logging.DEBUG, logger="halofx"):
            with pytest.raises(ProbeError):
                make_renderer(probe, ffmpeg).render(RenderRequest(input_path=video))

        assert any(r.getMessage() == "Failed: render" for r in caplog.records)
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


class TestFittedSize:
    """Tests for FloatingRenderer.fitted_size."""

    def test_default_canvas(self, probe, ffmpeg):
        """Test fitting 4K into the default canvas."""
        renderer = make_renderer(probe, ffmpeg)
        size = renderer.fitted_size(Dimensions(3840, 2160))

        # Bounded by the 1000px height: 3840 * 1000/2160 = 1777.7
        assert size == (1777, 1000)

    def test_custom_canvas(self, probe, ffmpeg):
        """Test fitting into a portrait canvas."""
        renderer = make_renderer(
            probe, ffmpeg, canvas={"width": 1080, "height": 1920}, padding_x=40, padding_y=40
        )
        size = renderer.fitted_size(Dimensions(2000, 1000))

        assert size == (1000, 500)
