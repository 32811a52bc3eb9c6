"""
Tests for the particle store and advector.

Tests cover:
- Allocation
- Initialization from a packed source sheet
- Advection invariants (radius, count, fixed colors)
- Single-particle and vectorized advection agreement
"""

import pytest
import numpy as np
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from common.cubemap import FACE_X_MULTIPLIER, FACE_Y_MULTIPLIER
from common.io import SourceImage
from gas_giant.particles import (
    ParticleStore,
    advect_particle,
    advect_particles,
    initialize_particles,
)
from gas_giant.velocity_field import VelocityField, build_velocity_field


RED = (255, 0, 0)
BLUE = (0, 0, 255)


# ============== Fixtures ==============

def make_face_sheet(face_px: int, face_colors, alpha=None) -> SourceImage:
    """Packed sheet with one solid color per face."""
    channels = 3 if alpha is None else 4
    width, height = 4 * face_px, 3 * face_px
    pixels = np.zeros((height, width, channels), dtype=np.uint8)
    for face, color in enumerate(face_colors):
        x0 = int(round(width * FACE_X_MULTIPLIER[face]))
        y0 = int(round(height * FACE_Y_MULTIPLIER[face]))
        pixels[y0:y0 + face_px, x0:x0 + face_px, :3] = color
        if alpha is not None:
            pixels[y0:y0 + face_px, x0:x0 + face_px, 3] = alpha
    return SourceImage(pixels=pixels, has_alpha=alpha is not None)


@pytest.fixture
def two_color_sheet():
    """Red on faces 0-2, blue on faces 3-5."""
    return make_face_sheet(8, [RED, RED, RED, BLUE, BLUE, BLUE])


@pytest.fixture
def field():
    return build_velocity_field(dim=4, noise_scale=10.0, phase=0.0, velocity_factor=10.0)


@pytest.fixture
def store(two_color_sheet):
    s = ParticleStore.allocate(100, 4)
    return initialize_particles(s, two_color_sheet, np.random.default_rng(42))


# ============== Allocation Tests ==============

class TestParticleStore:

    def test_allocate(self):
        s = ParticleStore.allocate(10, 16)
        assert s.positions.shape == (10, 3)
        assert s.colors.shape == (10, 4)
        assert s.n_particles == 10
        assert s.working_radius == 8.0

    def test_unit_positions(self, store):
        np.testing.assert_allclose(np.linalg.norm(store.unit_positions, axis=1), 1.0, atol=1e-5)


# ============== Initialization Tests ==============

class TestInitializeParticles:

    def test_positions_at_working_radius(self, store):
        np.testing.assert_allclose(np.linalg.norm(store.positions, axis=1), 2.0, rtol=1e-12)

    def test_colors_exact(self, store):
        """Every particle takes its face's color, unblended."""
        faces, _, _ = store.cells()
        red = np.array([1.0, 0.0, 0.0, 1.0], dtype=np.float32)
        blue = np.array([0.0, 0.0, 1.0, 1.0], dtype=np.float32)

        for face, color in zip(faces, store.colors):
            expected = red if face < 3 else blue
            np.testing.assert_array_equal(color, expected)

    def test_seeded(self, two_color_sheet):
        a = initialize_particles(ParticleStore.allocate(20, 4), two_color_sheet, np.random.default_rng(7))
        b = initialize_particles(ParticleStore.allocate(20, 4), two_color_sheet, np.random.default_rng(7))
        np.testing.assert_array_equal(a.positions, b.positions)
        np.testing.assert_array_equal(a.colors, b.colors)

    def test_rgb_source_opaque(self, store):
        assert np.all(store.colors[:, 3] == 1.0)

    def test_rgba_source_alpha(self):
        sheet = make_face_sheet(4, [RED] * 6, alpha=51)
        s = initialize_particles(ParticleStore.allocate(50, 4), sheet, np.random.default_rng(0))
        np.testing.assert_allclose(s.colors[:, 3], 51 / 255.0, rtol=1e-6)

    def test_uneven_sheet_scale(self):
        """Source faces larger than the grid still sample inside their face."""
        colors = [(10 * f, 0, 0) for f in range(6)]
        sheet = make_face_sheet(13, colors)
        s = initialize_particles(ParticleStore.allocate(300, 4), sheet, np.random.default_rng(3))

        faces, _, _ = s.cells()
        np.testing.assert_allclose(s.colors[:, 0], 10 * faces / 255.0, rtol=1e-6)


# ============== Advection Tests ==============

class TestAdvectParticles:

    def test_radius_preserved(self, store, field):
        for _ in range(10):
            advect_particles(store, field)
            np.testing.assert_allclose(np.linalg.norm(store.unit_positions, axis=1), 1.0, atol=1e-5)
            np.testing.assert_allclose(np.linalg.norm(store.positions, axis=1), 2.0, rtol=1e-9)

    def test_count_and_colors_fixed(self, store, field):
        colors = store.colors.copy()
        for _ in range(5):
            advect_particles(store, field)
        assert store.n_particles == 100
        np.testing.assert_array_equal(store.colors, colors)

    def test_particles_move(self, store, field):
        before = store.positions.copy()
        advect_particles(store, field)
        assert not np.allclose(before, store.positions)

    def test_zero_field_is_identity(self, store):
        still = VelocityField(vectors=np.zeros((6, 4, 4, 3), dtype=np.float32),
                              noise_scale=1.0, phase=0.0, velocity_factor=1.0)
        before = store.positions.copy()
        advect_particles(store, still)
        np.testing.assert_allclose(store.positions, before, rtol=1e-12)

    def test_single_matches_vectorized(self, store, field):
        expected = np.array([advect_particle(p, field) for p in store.positions])
        advect_particles(store, field)
        np.testing.assert_allclose(store.positions, expected, rtol=1e-12)

    def test_dim_mismatch(self, store):
        other = build_velocity_field(dim=5)
        with pytest.raises(ValueError):
            advect_particles(store, other)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
