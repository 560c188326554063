"""Tests for background resolution."""

import numpy
import pytest
from PIL import Image

from halofx.backgrounds import (
    BUILTIN_BACKGROUNDS,
    is_builtin,
    render_gradient,
    resolve_background,
    validate_image_file,
)
from halofx.errors import InputValidationError
from halofx.geometry import Dimensions

CANVAS = Dimensions(64, 36)


class TestRenderGradient:
    """Tests for built-in gradient drawing."""

    def test_size_and_mode(self):
        """Test a gradient fills the canvas in RGB."""
        image = render_gradient(BUILTIN_BACKGROUNDS["1"], CANVAS)

        assert image.size == (64, 36)
        assert image.mode == "RGB"

    def test_endpoints(self):
        """Test the gradient starts and ends on the preset colors."""
        preset = BUILTIN_BACKGROUNDS["2"]
        pixels = numpy.asarray(render_gradient(preset, CANVAS))

        assert tuple(pixels[0, 0]) == preset.start
        assert tuple(pixels[-1, -1]) == preset.end

    def test_single_pixel(self):
        """Test a 1x1 canvas."""
        image = render_gradient(BUILTIN_BACKGROUNDS["3"], Dimensions(1, 1))
        assert image.size == (1, 1)


class TestValidateImageFile:
    """Tests for user-supplied background images."""

    def test_accepts_png(self, tmp_path):
        """Test a PNG background is accepted."""
        path = tmp_path / "bg.png"
        Image.new("RGB", (8, 8), (10, 20, 30)).save(path)

        assert validate_image_file(path) == path

    def test_accepts_jpeg(self, tmp_path):
        """Test a JPEG background is accepted."""
        path = tmp_path / "bg.jpg"
        Image.new("RGB", (8, 8)).save(path, format="JPEG")

        assert validate_image_file(path) == path

    def test_rejects_missing(self, tmp_path):
        """Test a missing image is rejected."""
        with pytest.raises(InputValidationError, match="not found"):
            validate_image_file(tmp_path / "nope.png")

    def test_rejects_directory(self, tmp_path):
        """Test a directory is rejected."""
        with pytest.raises(InputValidationError):
            validate_image_file(tmp_path)

    def test_rejects_non_image(self, tmp_path):
        """Test a text file is rejected."""
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        with pytest.raises(InputValidationError, match="Not an image"):
            validate_image_file(path)

    def test_rejects_unsupported_format(self, tmp_path):
        """Test a BMP image is rejected."""
        path = tmp_path / "bg.bmp"
        Image.new("RGB", (8, 8)).save(path, format="BMP")

        with pytest.raises(InputValidationError, match="Unsupported image format"):
            validate_image_file(path)


class TestResolveBackground:
    """Tests for resolve_background."""

    def test_builtin_choices(self):
        """Test which choices are built in."""
        assert is_builtin("1")
        assert is_builtin("3")
        assert not is_builtin("4")

    def test_builtin_is_drawn(self, tmp_path):
        """Test a built-in background is drawn into the work dir."""
        path = resolve_background("3", tmp_path, CANVAS)

        assert path.parent == tmp_path
        with Image.open(path) as image:
            assert image.size == (64, 36)

    def test_user_image_used_in_place(self, tmp_path):
        """Test a user image is used without copying."""
        user_bg = tmp_path / "wall.png"
        Image.new("RGB", (8, 8)).save(user_bg)
        work_dir = tmp_path / "work"
        work_dir.mkdir()

        assert resolve_background(str(user_bg), work_dir, CANVAS) == user_bg
        assert list(work_dir.iterdir()) == []

    def test_invalid_choice_falls_back_to_default(self, tmp_path):
        """Test an invalid path falls back to the default background."""
        path = resolve_background(str(tmp_path / "missing.jpg"), tmp_path, CANVAS)

        assert path.name == f"halofx-bg-{BUILTIN_BACKGROUNDS['1'].name}.png"
        assert path.exists()
