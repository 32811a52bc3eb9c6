"""
Noise Field Module

4-D simplex noise (three spatial axes plus phase) and its finite-difference
gradient. The gradient is the potential the curl transform turns into flow.
"""

import numpy as np
from typing import Optional
import logging

from opensimplex import OpenSimplex

logger = logging.getLogger(__name__)


class NoiseField:
    """
    Deterministic coherent noise over (x, y, z, w).

    Two instances with the same seed return identical values.
    """

    def __init__(self, seed: int = 0):
        self.seed = seed
        self._generator = OpenSimplex(seed=seed)

    def noise4(self, x: float, y: float, z: float, w: float) -> float:
        """Single noise value, roughly in [-1, 1]."""
        return self._generator.noise4(x, y, z, w)

    def sample(self, points: np.ndarray, w: float) -> np.ndarray:
        """
        Evaluate noise at many points sharing one phase.

        Args:
            points: (N, 3) array of noise-domain coordinates
            w: 4th noise coordinate

        Returns:
            (N,) array of noise values
        """
        points = np.atleast_2d(points)
        noise4 = self._generator.noise4
        w = float(w)
        return np.fromiter(
            (noise4(x, y, z, w) for x, y, z in points.tolist()),
            dtype=np.float64,
            count=len(points)
        )


def noise_gradient(
    positions: np.ndarray,
    w: float,
    noise_scale: float,
    dim: int,
    noise: Optional[NoiseField] = None
) -> np.ndarray:
    """
    Central-difference noise gradient at each position.

    Uses a step of noise_scale / dim along each axis independently and
    returns the raw differences f(p + d) - f(p - d). They are not divided
    by 2d; velocity_factor absorbs the scale.

    Args:
        positions: (N, 3) noise-domain points
        w: Phase (4th noise coordinate)
        noise_scale: Noise domain scale
        dim: Grid resolution
        noise: NoiseField to sample (seed 0 if omitted)

    Returns:
        (N, 3) gradient estimates
    """
    noise = noise or NoiseField()
    positions = np.atleast_2d(np.asarray(positions, dtype=np.float64))
    step = noise_scale / float(dim)

    gradient = np.empty_like(positions)
    for axis in range(3):
        offset = np.zeros(3)
        offset[axis] = step
        gradient[:, axis] = noise.sample(positions + offset, w) - noise.sample(positions - offset, w)

    return gradient
