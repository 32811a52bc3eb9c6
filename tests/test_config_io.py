"""
Tests for configuration and image I/O.

Tests cover:
- Config defaults, validation and JSON/YAML round trips
- RunMetadata sidecars
- Source sheet loading (modes, flips, alpha, errors)
- Output image and point cloud export
"""

import json

import pytest
import numpy as np
from pathlib import Path
import sys
from PIL import Image

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from common.config import Config, CompositeMode, RunMetadata
from common.errors import InputError
from common.io import (
    SourceImage,
    canvas_to_pixels,
    load_source_image,
    save_image,
    save_particle_cloud,
    validate_sheet_layout,
)


# ============== Fixtures ==============

@pytest.fixture
def gradient_rgb():
    """8x6 RGB sheet whose red channel encodes the column and green the row."""
    pixels = np.zeros((6, 8, 3), dtype=np.uint8)
    pixels[..., 0] = np.arange(8)[None, :] * 10
    pixels[..., 1] = np.arange(6)[:, None] * 20
    return pixels


# ============== Config Tests ==============

class TestConfig:
    """Test configuration dataclass."""

    def test_default_values(self):
        config = Config()

        assert config.grid_resolution == 1024
        assert config.particle_count == 1_000_000
        assert config.iterations == 1000
        assert config.noise_scale == 10.0
        assert config.velocity_factor == 10.0
        assert config.composite_mode == CompositeMode.EVERY_ITERATION
        assert config.field_rebuild_interval == 0

    def test_derived_sizes(self):
        config = Config(grid_resolution=64)
        assert config.working_radius == 32.0
        assert config.sheet_size == (256, 192)

    def test_json_round_trip(self, tmp_path):
        config = Config(grid_resolution=32, particle_count=500, seed=9,
                        composite_mode=CompositeMode.FINAL)
        path = tmp_path / "run.json"
        config.save(path)

        loaded = Config.from_file(path)
        assert loaded == config

    def test_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("grid_resolution: 16\niterations: 5\ncomposite_mode: final\n")

        config = Config.from_file(path)
        assert config.grid_resolution == 16
        assert config.iterations == 5
        assert config.composite_mode == CompositeMode.FINAL
        # Defaults preserved
        assert config.noise_scale == 10.0

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"grid_size": 4}))
        with pytest.raises(TypeError):
            Config.from_file(path)

    @pytest.mark.parametrize("kwargs", [
        {"grid_resolution": 0},
        {"particle_count": 0},
        {"iterations": -1},
        {"noise_scale": 0.0},
        {"workers": 0},
        {"field_rebuild_interval": -2},
        {"log_interval": 0},
    ])
    def test_validate(self, kwargs):
        with pytest.raises(ValueError):
            Config(**kwargs).validate()

    def test_output_path(self):
        config = Config(output_dir=Path("out"))
        assert config.get_output_path("jupiter") == Path("out") / "jupiter.png"


class TestRunMetadata:

    def test_save_and_load(self, tmp_path):
        meta = RunMetadata(
            source_image="gas.png",
            output_image="out.png",
            grid_resolution=8,
            particle_count=10,
            iterations=2,
            composite_mode="final",
            coverage=0.5,
            stage_seconds={"init": 0.1},
        )
        path = tmp_path / "meta.json"
        meta.save(path)

        with open(path) as f:
            loaded = RunMetadata.from_dict(json.load(f))
        assert loaded == meta


# ============== Source Loading Tests ==============

class TestLoadSourceImage:

    def test_rgb(self, tmp_path, gradient_rgb):
        path = tmp_path / "src.png"
        Image.fromarray(gradient_rgb).save(path)

        image = load_source_image(path)
        assert image.has_alpha is False
        assert (image.width, image.height, image.channels) == (8, 6, 3)
        np.testing.assert_array_equal(image.pixels, gradient_rgb)

    def test_rgba(self, tmp_path):
        pixels = np.full((3, 4, 4), 200, dtype=np.uint8)
        path = tmp_path / "src.png"
        Image.fromarray(pixels).save(path)

        image = load_source_image(path)
        assert image.has_alpha is True
        assert image.channels == 4

    def test_grayscale_expanded(self, tmp_path):
        path = tmp_path / "gray.png"
        Image.new("L", (8, 6), 77).save(path)

        image = load_source_image(path)
        assert image.channels == 3
        assert np.all(image.pixels == 77)

    def test_palette_expanded(self, tmp_path, gradient_rgb):
        path = tmp_path / "pal.png"
        Image.fromarray(gradient_rgb).convert("P").save(path)

        image = load_source_image(path)
        assert image.channels == 3
        assert image.has_alpha is False

    def test_sixteen_bit_rejected(self, tmp_path):
        path = tmp_path / "deep.png"
        Image.new("I;16", (8, 6)).save(path)
        with pytest.raises(InputError):
            load_source_image(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputError) as excinfo:
            load_source_image(tmp_path / "nope.png")
        assert excinfo.value.stage == "load"
        assert "nope.png" in str(excinfo.value)

    def test_not_an_image(self, tmp_path):
        path = tmp_path / "notes.png"
        path.write_text("definitely not a png")
        with pytest.raises(InputError):
            load_source_image(path)

    def test_flips(self, tmp_path, gradient_rgb):
        path = tmp_path / "src.png"
        Image.fromarray(gradient_rgb).save(path)

        v = load_source_image(path, flip_vertical=True)
        np.testing.assert_array_equal(v.pixels, gradient_rgb[::-1])

        h = load_source_image(path, flip_horizontal=True)
        np.testing.assert_array_equal(h.pixels, gradient_rgb[:, ::-1])

    def test_premultiply_alpha(self, tmp_path):
        pixels = np.zeros((3, 4, 4), dtype=np.uint8)
        pixels[...] = (200, 100, 50, 51)
        path = tmp_path / "src.png"
        Image.fromarray(pixels).save(path)

        image = load_source_image(path, premultiply_alpha=True)
        np.testing.assert_array_equal(image.pixels[0, 0], (40, 20, 10, 51))

    def test_colors_at(self, gradient_rgb):
        image = SourceImage(pixels=gradient_rgb, has_alpha=False)
        colors = image.colors_at(np.array([3, 100]), np.array([2, -5]))

        np.testing.assert_allclose(colors[0], [30 / 255, 40 / 255, 0.0, 1.0], rtol=1e-6)
        # Out-of-range coordinates are clamped to the edge
        np.testing.assert_allclose(colors[1], [70 / 255, 0.0, 0.0, 1.0], rtol=1e-6)


class TestValidateSheetLayout:

    def test_valid(self):
        validate_sheet_layout(SourceImage(np.zeros((6, 8, 3), dtype=np.uint8), False))

    @pytest.mark.parametrize("shape", [(6, 10, 3), (7, 8, 3), (2, 4, 3)])
    def test_invalid(self, shape):
        with pytest.raises(InputError):
            validate_sheet_layout(SourceImage(np.zeros(shape, dtype=np.uint8), False))


# ============== Output Tests ==============

class TestSaveImage:

    def test_rgba_round_trip(self, tmp_path):
        canvas = np.zeros((3, 4, 4), dtype=np.float32)
        canvas[1, 2] = (1.0, 0.5, 0.0, 1.0)
        path = save_image(canvas, tmp_path / "out" / "giant.png")

        with Image.open(path) as img:
            assert img.mode == "RGBA"
            data = np.array(img)
        np.testing.assert_array_equal(data[1, 2], (255, 128, 0, 255))
        np.testing.assert_array_equal(data[0, 0], (0, 0, 0, 0))

    def test_rgb_and_sidecar(self, tmp_path):
        canvas = np.ones((3, 4, 4), dtype=np.float32)
        meta = RunMetadata("a.png", "b.png", 1, 1, 1, "final")
        path = save_image(canvas, tmp_path / "giant.png", with_alpha=False, metadata=meta)

        with Image.open(path) as img:
            assert img.mode == "RGB"
        assert path.with_suffix(".json").exists()

    def test_canvas_to_pixels_clips(self):
        canvas = np.array([[[-0.5, 0.2, 1.5, 2.0]]])
        np.testing.assert_array_equal(canvas_to_pixels(canvas, True), [[[0, 51, 255, 255]]])


class TestSaveParticleCloud:

    def test_export_ply(self, tmp_path):
        pytest.importorskip("trimesh")
        positions = np.array([[0.0, 0.0, 4.0], [4.0, 0.0, 0.0]])
        colors = np.array([[1, 0, 0, 1], [0, 0, 1, 1]], dtype=np.float32)

        n, path = save_particle_cloud(positions, colors, tmp_path / "cloud.ply")
        assert n == 2
        assert path.exists()
        assert path.stat().st_size > 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
