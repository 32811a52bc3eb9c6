"""
Particle Store & Advector

Colored tracers on the sphere. Colors are fixed at initialization from the
source sheet; positions move every step with the nearest-cell velocity
(explicit Euler, no interpolation, no sub-stepping).

Positions are kept at the working radius (dim / 2), the scale the velocity
field is expressed in.
"""

import numpy as np
from typing import Optional, Tuple
from dataclasses import dataclass
import logging

from common.cubemap import cells_to_sheet_pixels, points_to_cells, random_points_on_sphere
from common.errors import ResourceError
from common.io import SourceImage

from .velocity_field import VelocityField

logger = logging.getLogger(__name__)


@dataclass
class ParticleStore:
    """
    Fixed-size particle population.

    positions: (N, 3) float64, radius == working radius
    colors: (N, 4) float32 RGBA in [0, 1], never modified after init
    """
    positions: np.ndarray
    colors: np.ndarray
    dim: int

    @property
    def n_particles(self) -> int:
        return len(self.positions)

    @property
    def working_radius(self) -> float:
        return self.dim / 2.0

    @property
    def unit_positions(self) -> np.ndarray:
        """Positions projected back onto the unit sphere."""
        return self.positions / np.linalg.norm(self.positions, axis=1, keepdims=True)

    def cells(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Current (faces, i, j) of every particle."""
        return points_to_cells(self.positions, self.dim)

    @classmethod
    def allocate(cls, n_particles: int, dim: int) -> "ParticleStore":
        """Empty store with room for n_particles."""
        try:
            positions = np.zeros((n_particles, 3), dtype=np.float64)
            colors = np.zeros((n_particles, 4), dtype=np.float32)
        except MemoryError as e:
            raise ResourceError(f"Cannot allocate {n_particles} particles", stage="init") from e
        return cls(positions=positions, colors=colors, dim=dim)


def initialize_particles(
    store: ParticleStore,
    source: SourceImage,
    rng: Optional[np.random.Generator] = None
) -> ParticleStore:
    """
    Scatter particles uniformly and color them from the source sheet.

    Each particle's color is the source pixel at its cube cell, located on
    the sheet through the six-face layout table.

    Args:
        store: Allocated ParticleStore (overwritten in place)
        source: Packed six-face source sheet
        rng: Random generator (fresh unseeded one if omitted)

    Returns:
        The same store, initialized
    """
    rng = rng if rng is not None else np.random.default_rng()

    unit = random_points_on_sphere(store.n_particles, rng)
    faces, i, j = points_to_cells(unit, store.dim)
    px, py = cells_to_sheet_pixels(faces, i, j, store.dim, source.width, source.height)

    store.colors[:] = source.colors_at(px, py)
    store.positions[:] = unit * store.working_radius

    logger.info(f"Initialized {store.n_particles} particles from "
                f"{source.width}x{source.height} source")
    return store


def advect_particles(store: ParticleStore, field: VelocityField) -> None:
    """
    Move every particle one step along the field.

    p <- normalize(p + v(cell(p))) * working_radius
    Particles are independent; order does not matter.
    """
    if field.dim != store.dim:
        raise ValueError(f"Field dim {field.dim} does not match particle grid dim {store.dim}")

    velocity = field.sample(store.positions)
    store.positions += velocity
    store.positions /= np.linalg.norm(store.positions, axis=1, keepdims=True)
    store.positions *= store.working_radius


def advect_particle(position: np.ndarray, field: VelocityField) -> np.ndarray:
    """Single-particle form of advect_particles; returns the new position."""
    p = np.asarray(position, dtype=np.float64).reshape(1, 3)
    p = p + field.sample(p)
    p /= np.linalg.norm(p, axis=1, keepdims=True)
    return (p * (field.dim / 2.0))[0]
