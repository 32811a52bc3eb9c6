"""
Velocity Field Module

Discretized flow over the six cube faces: one curl vector per cell.
Built once per noise phase, then read (never written) by the advector.

Build, per cell:
V1. Cell centre -> unit vector (cube map forward mapping)
V2. Scale into the noise domain (x noise_scale)
V3. Noise gradient at phase * noise_scale
V4. Curl transform
V5. Multiply by velocity_factor
"""

import numpy as np
from concurrent.futures import ProcessPoolExecutor
from typing import Dict, Optional, Tuple
from dataclasses import dataclass
import logging

from common.cubemap import N_FACES, face_grid, points_to_cells
from common.errors import ResourceError

from .curl import curl
from .noise_field import NoiseField, noise_gradient

logger = logging.getLogger(__name__)


@dataclass
class VelocityField:
    """
    Curl flow sampled at every cube cell.

    vectors has shape (6, dim, dim, 3), indexed [face, i, j].
    """
    vectors: np.ndarray
    noise_scale: float
    phase: float
    velocity_factor: float
    noise_seed: int = 0

    @property
    def dim(self) -> int:
        return int(self.vectors.shape[1])

    def lookup(self, faces: np.ndarray, i: np.ndarray, j: np.ndarray) -> np.ndarray:
        """Vectors for the given cells, shape (N, 3)."""
        return self.vectors[faces, i, j]

    def sample(self, points: np.ndarray) -> np.ndarray:
        """
        Nearest-cell velocity at arbitrary directions.

        Args:
            points: (N, 3) non-zero directions (any radius)

        Returns:
            (N, 3) velocity vectors
        """
        faces, i, j = points_to_cells(points, self.dim)
        return self.lookup(faces, i, j)

    def speed_stats(self) -> Dict[str, float]:
        """Mean and max vector magnitude over the whole field."""
        speeds = np.linalg.norm(self.vectors, axis=-1)
        return {
            "mean_speed": float(speeds.mean()),
            "max_speed": float(speeds.max()),
        }


def build_face(
    face: int,
    dim: int,
    noise_scale: float,
    phase: float,
    velocity_factor: float,
    noise_seed: int = 0
) -> np.ndarray:
    """
    Velocity vectors for every cell of one face.

    Faces share nothing, so this is the unit of parallel work.

    Returns:
        (dim, dim, 3) float32 array indexed [i, j]
    """
    noise = NoiseField(seed=noise_seed)

    points = face_grid(face, dim).reshape(-1, 3) * noise_scale
    gradient = noise_gradient(points, phase * noise_scale, noise_scale, dim, noise)
    flow = curl(points, gradient) * velocity_factor

    return flow.reshape(dim, dim, 3).astype(np.float32)


def _build_face_args(args: Tuple[int, int, float, float, float, int]) -> np.ndarray:
    return build_face(*args)


def build_velocity_field(
    dim: int,
    noise_scale: float = 10.0,
    phase: float = 0.0,
    velocity_factor: float = 10.0,
    noise_seed: int = 0,
    workers: int = 1,
    out: Optional[VelocityField] = None
) -> VelocityField:
    """
    Build the full six-face velocity field.

    Pure function of its arguments: the same inputs give identical vectors,
    whether built serially or with worker processes.

    Args:
        dim: Cells per face edge
        noise_scale: Noise domain scale
        phase: Noise phase (scaled by noise_scale before sampling)
        velocity_factor: Multiplier applied to every curl vector
        noise_seed: Simplex permutation seed
        workers: Processes to build faces in (1 = serial)
        out: Existing field to overwrite in place (same dim)

    Returns:
        Fully populated VelocityField
    """
    if out is not None and out.dim != dim:
        raise ValueError(f"Cannot rebuild a {out.dim}-cell field at dim={dim}")

    if out is None:
        try:
            vectors = np.empty((N_FACES, dim, dim, 3), dtype=np.float32)
        except MemoryError as e:
            raise ResourceError(
                f"Cannot allocate velocity field for {N_FACES}x{dim}x{dim} cells",
                stage="field"
            ) from e
    else:
        vectors = out.vectors

    jobs = [(face, dim, noise_scale, phase, velocity_factor, noise_seed) for face in range(N_FACES)]

    if workers > 1:
        logger.info(f"Building velocity field: dim={dim}, phase={phase}, {workers} workers")
        with ProcessPoolExecutor(max_workers=min(workers, N_FACES)) as executor:
            for face, face_vectors in enumerate(executor.map(_build_face_args, jobs)):
                vectors[face] = face_vectors
    else:
        logger.info(f"Building velocity field: dim={dim}, phase={phase}")
        for job in jobs:
            vectors[job[0]] = build_face(*job)
            logger.debug(f"  face {job[0]} done")

    if out is not None:
        out.phase = phase
        out.noise_scale = noise_scale
        out.velocity_factor = velocity_factor
        out.noise_seed = noise_seed
        return out

    return VelocityField(
        vectors=vectors,
        noise_scale=noise_scale,
        phase=phase,
        velocity_factor=velocity_factor,
        noise_seed=noise_seed
    )
