"""Tests for CLI commands using click.testing.CliRunner."""

import json

import pytest
from click.testing import CliRunner

from shrinklab.blob import ImageBlob
from shrinklab.cli import main
from shrinklab.formats import ImageFormat
from shrinklab.inspector import image_dimensions, image_dpi


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def photo(tmp_path, jpeg_blob):
    """64×48 JPEG on disk."""
    path = tmp_path / "photo.jpg"
    path.write_bytes(jpeg_blob.data)
    return path


@pytest.fixture
def logo(tmp_path, png_blob):
    """40×30 RGBA PNG on disk."""
    path = tmp_path / "logo.png"
    path.write_bytes(png_blob.data)
    return path


@pytest.fixture
def animation(tmp_path, gif_blob):
    path = tmp_path / "anim.gif"
    path.write_bytes(gif_blob.data)
    return path


class TestMainCLI:
    """Tests for main CLI group."""

    def test_main_help(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "ShrinkLab" in result.output
        assert "Commands:" in result.output
        for command in ("compress", "resize", "quality", "sample", "dpi", "convert", "color"):
            assert command in result.output

    def test_main_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "shrinklab, version 0.1.0" in result.output

    def test_main_invalid_command(self, runner):
        result = runner.invoke(main, ["invalid-command"])

        assert result.exit_code == 2
        assert "No such command" in result.output


class TestInspectCommand:
    """Tests for inspect and formats commands."""

    def test_inspect_table(self, runner, photo):
        result = runner.invoke(main, ["inspect", str(photo)])

        assert result.exit_code == 0
        assert "jpeg" in result.output
        assert "64 × 48" in result.output

    def test_inspect_json(self, runner, photo):
        result = runner.invoke(main, ["inspect", str(photo), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["format"] == "jpeg"
        assert data["width"] == 64
        assert data["frame_count"] == 1
        assert data["orientation"] is None

    def test_inspect_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["inspect", str(tmp_path / "nope.jpg")])
        assert result.exit_code == 2

    def test_inspect_garbage(self, runner, tmp_path):
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"\xff\xd8\xff" + b"garbage" * 10)

        result = runner.invoke(main, ["inspect", str(path)])

        assert result.exit_code == 1
        assert "❌ Inspect failed" in result.output

    def test_formats(self, runner):
        result = runner.invoke(main, ["formats"])

        assert result.exit_code == 0
        assert "jpeg" in result.output
        assert "dng" in result.output


class TestCompressCommand:
    """Tests for the compress command."""

    def test_compress_max_bytes(self, runner, photo, tmp_path):
        budget = len(photo.read_bytes()) // 2
        output = tmp_path / "small.jpg"

        result = runner.invoke(main, ["compress", str(photo), "--max-bytes", str(budget), "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "✅" in result.output
        assert len(output.read_bytes()) <= budget

    def test_compress_default_output_path(self, runner, photo):
        result = runner.invoke(main, ["compress", str(photo), "--max-kb", "1000"])

        assert result.exit_code == 0, result.output
        assert "already within limits" in result.output
        assert (photo.parent / "photo.compressed.jpg").read_bytes() == photo.read_bytes()

    def test_compress_with_conversion(self, runner, logo, tmp_path):
        output = tmp_path / "logo.jpg"
        result = runner.invoke(
            main, ["compress", str(logo), "--max-kb", "100", "--to", "jpg", "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        assert ImageBlob.from_path(output).format is ImageFormat.JPEG

    def test_compress_requires_one_budget(self, runner, photo):
        result = runner.invoke(main, ["compress", str(photo)])
        assert result.exit_code == 2

        result = runner.invoke(main, ["compress", str(photo), "--max-bytes", "10", "--max-kb", "1"])
        assert result.exit_code == 2

    def test_compress_invalid_budget(self, runner, photo):
        result = runner.invoke(main, ["compress", str(photo), "--max-bytes", "0"])

        assert result.exit_code == 1
        assert "❌ Compress failed" in result.output


class TestTransformCommands:
    """Tests for the single-knob commands."""

    def test_resize(self, runner, photo, tmp_path):
        output = tmp_path / "resized.jpg"
        result = runner.invoke(main, ["resize", str(photo), "-l", "32", "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert image_dimensions(ImageBlob.from_path(output)) == (32, 24)

    def test_quality(self, runner, photo):
        result = runner.invoke(main, ["quality", str(photo), "0.2"])

        assert result.exit_code == 0, result.output
        assert (photo.parent / "photo.q.jpg").exists()

    def test_quality_rejected_for_png(self, runner, logo):
        result = runner.invoke(main, ["quality", str(logo), "0.2"])

        assert result.exit_code == 1
        assert "❌ Quality failed" in result.output

    def test_sample(self, runner, animation, tmp_path):
        output = tmp_path / "sampled.gif"
        result = runner.invoke(main, ["sample", str(animation), "2", "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert ImageBlob.from_path(output).format is ImageFormat.GIF

    def test_dpi(self, runner, photo, tmp_path):
        output = tmp_path / "print.jpg"
        result = runner.invoke(main, ["dpi", str(photo), "150x150", "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert image_dpi(ImageBlob.from_path(output)) == pytest.approx((150, 150))

    def test_dpi_bad_value(self, runner, photo):
        result = runner.invoke(main, ["dpi", str(photo), "lots"])
        assert result.exit_code == 2

    def test_convert(self, runner, logo):
        result = runner.invoke(main, ["convert", str(logo), "--to", "jpg"])

        assert result.exit_code == 0, result.output
        assert ImageBlob.from_path(logo.parent / "logo.converted.jpg").format is ImageFormat.JPEG

    def test_convert_unknown_format(self, runner, logo):
        result = runner.invoke(main, ["convert", str(logo), "--to", "bmp"])
        assert result.exit_code == 2

    def test_color(self, runner, logo):
        result = runner.invoke(main, ["color", str(logo), "--layout", "alpha8"])

        assert result.exit_code == 0, result.output
        assert (logo.parent / "logo.alpha8.png").exists()

    def test_color_unknown_layout(self, runner, logo):
        result = runner.invoke(main, ["color", str(logo), "--layout", "cmyk"])

        assert result.exit_code == 1
        assert "❌ Color failed" in result.output
