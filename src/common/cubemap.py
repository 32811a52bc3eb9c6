"""
Cube map coordinate utilities.

Grid Model:
Cube cell (face, i, j) <-> direction on the unit sphere

This is the ONLY place where cube face geometry is defined.
Everything downstream (velocity field, particles, compositing) addresses
the surface through these functions.

Face axes:
    0: +z  (x, y vary)      1: +x  (z, y vary)
    2: -z  (x, y vary)      3: -x  (z, y vary)
    4: +y  (x, z vary)      5: -y  (x, z vary)
"""

import numpy as np
from enum import IntEnum
from typing import Callable, Dict, NamedTuple, Tuple, Union
import logging

from .errors import DomainError

logger = logging.getLogger(__name__)


class Face(IntEnum):
    """Cube faces, numbered as they are stored in the velocity field."""
    POS_Z = 0
    POS_X = 1
    NEG_Z = 2
    NEG_X = 3
    POS_Y = 4
    NEG_Y = 5


class CubeCell(NamedTuple):
    """One grid cell on one cube face."""
    face: int
    i: int
    j: int


# Packed sheet layout: face origin as a fraction of sheet (width, height).
#
#          +----+
#          | 4  |
#     +----+----+----+----+
#     | 3  | 0  | 1  | 2  |
#     +----+----+----+----+
#          | 5  |
#          +----+
FACE_X_MULTIPLIER = (0.25, 0.5, 0.75, 0.0, 0.25, 0.25)
FACE_Y_MULTIPLIER = (1.0 / 3.0, 1.0 / 3.0, 1.0 / 3.0, 1.0 / 3.0, 0.0, 2.0 / 3.0)

N_FACES = 6

ArrayLike = Union[np.ndarray, int, float]
_FaceMapping = Callable[[np.ndarray, np.ndarray, float], Tuple[ArrayLike, ArrayLike, ArrayLike]]

# (a, b, h) -> (x, y, z), where a, b are the centred cell coordinates along
# the face's i and j axes and h is half the grid dimension.
_FACE_TO_AXES: Dict[Face, _FaceMapping] = {
    Face.POS_Z: lambda a, b, h: (a, -b, h),
    Face.POS_X: lambda a, b, h: (h, -b, -a),
    Face.NEG_Z: lambda a, b, h: (-a, -b, -h),
    Face.NEG_X: lambda a, b, h: (-h, -b, a),
    Face.POS_Y: lambda a, b, h: (a, h, b),
    Face.NEG_Y: lambda a, b, h: (a, -h, -b),
}


def _as_face(face: int) -> Face:
    try:
        return Face(int(face))
    except ValueError:
        raise DomainError(f"Face index must be in [0, {N_FACES}), got {face}") from None


def face_points(face: int, i: ArrayLike, j: ArrayLike, dim: int) -> np.ndarray:
    """
    Map cell centres on one face to unit vectors.

    Args:
        face: Face index (0-5)
        i, j: Cell indices (scalars or arrays, broadcast together)
        dim: Cells per face edge

    Returns:
        (..., 3) array of unit-length directions
    """
    mapping = _FACE_TO_AXES[_as_face(face)]
    h = dim / 2.0
    a = np.asarray(i, dtype=np.float64) + 0.5 - h
    b = np.asarray(j, dtype=np.float64) + 0.5 - h
    a, b = np.broadcast_arrays(a, b)

    x, y, z = mapping(a, b, h)
    points = np.stack(np.broadcast_arrays(x, y, z), axis=-1).astype(np.float64)
    points /= np.linalg.norm(points, axis=-1, keepdims=True)
    return points


def face_grid(face: int, dim: int) -> np.ndarray:
    """Unit vectors for every cell of a face, shape (dim, dim, 3) indexed [i, j]."""
    i, j = np.meshgrid(np.arange(dim), np.arange(dim), indexing="ij")
    return face_points(face, i, j, dim)


def fij_to_xyz(face: int, i: int, j: int, dim: int) -> np.ndarray:
    """Convert one cube cell to a point on the unit sphere."""
    return face_points(face, i, j, dim)


def _ratio_to_index(ratio: np.ndarray, dim: int) -> np.ndarray:
    """Map [-1, 1] across a face to an index in [0, dim)."""
    index = np.floor((ratio * 0.5 + 0.5) * dim).astype(np.int64)
    return np.clip(index, 0, dim - 1)


def points_to_cells(points: np.ndarray, dim: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Convert directions to cube cells.

    The face is the one the ray through each point exits: the axis with the
    largest magnitude, sign picking the face of the pair. Magnitudes are
    compared x against y first, then the winner against z; ties go to the
    later axis.

    Args:
        points: (N, 3) array of directions, any non-zero length
        dim: Cells per face edge

    Returns:
        Tuple of (faces, i, j) integer arrays, each length N

    Raises:
        DomainError: if any point is the zero vector
    """
    points = np.atleast_2d(np.asarray(points, dtype=np.float64))
    norms = np.linalg.norm(points, axis=1)
    if np.any(norms == 0.0) or not np.all(np.isfinite(norms)):
        raise DomainError("Cannot map a zero-length or non-finite direction to a cube cell")

    t = points / norms[:, None]
    x, y, z = t[:, 0], t[:, 1], t[:, 2]
    ax, ay, az = np.abs(x), np.abs(y), np.abs(z)

    x_beats_y = ax > ay
    x_major = x_beats_y & (ax > az)
    y_major = ~x_beats_y & (ay > az)
    z_major = ~(x_major | y_major)

    d = np.where(x_major, ax, np.where(y_major, ay, az))

    faces = np.empty(len(t), dtype=np.int64)
    u = np.empty(len(t))
    v = np.empty(len(t))

    # x is longest leg
    neg = x_major & (x < 0)
    pos = x_major & ~(x < 0)
    faces[neg] = Face.NEG_X
    u[neg] = z[neg] / d[neg]
    faces[pos] = Face.POS_X
    u[pos] = -z[pos] / d[pos]
    v[x_major] = -y[x_major] / d[x_major]

    # z is longest leg
    neg = z_major & (z < 0)
    pos = z_major & ~(z < 0)
    faces[neg] = Face.NEG_Z
    u[neg] = -x[neg] / d[neg]
    faces[pos] = Face.POS_Z
    u[pos] = x[pos] / d[pos]
    v[z_major] = -y[z_major] / d[z_major]

    # y is longest leg
    neg = y_major & (y < 0)
    pos = y_major & ~(y < 0)
    faces[neg] = Face.NEG_Y
    v[neg] = -z[neg] / d[neg]
    faces[pos] = Face.POS_Y
    v[pos] = z[pos] / d[pos]
    u[y_major] = x[y_major] / d[y_major]

    return faces, _ratio_to_index(u, dim), _ratio_to_index(v, dim)


def xyz_to_fij(point: np.ndarray, dim: int) -> CubeCell:
    """Convert one direction to its cube cell."""
    faces, i, j = points_to_cells(np.asarray(point, dtype=np.float64).reshape(1, 3), dim)
    return CubeCell(int(faces[0]), int(i[0]), int(j[0]))


def cells_to_sheet_pixels(
    faces: np.ndarray,
    i: np.ndarray,
    j: np.ndarray,
    dim: int,
    width: int,
    height: int
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Locate cube cells on a packed six-face sheet.

    Each face occupies a (width/4 x height/3) rectangle whose origin is
    given by FACE_X_MULTIPLIER / FACE_Y_MULTIPLIER. For a sheet of
    exactly 4*dim x 3*dim the mapping is one pixel per cell.

    Returns:
        Tuple of (px, py) integer pixel coordinates
    """
    faces = np.asarray(faces, dtype=np.int64)
    x_mult = np.asarray(FACE_X_MULTIPLIER)[faces]
    y_mult = np.asarray(FACE_Y_MULTIPLIER)[faces]

    x0 = np.rint(width * x_mult).astype(np.int64)
    y0 = np.rint(height * y_mult).astype(np.int64)
    xo = (np.asarray(i, dtype=np.int64) * width) // (4 * dim)
    yo = (np.asarray(j, dtype=np.int64) * height) // (3 * dim)

    px = np.clip(x0 + xo, 0, width - 1)
    py = np.clip(y0 + yo, 0, height - 1)
    return px, py


def random_points_on_sphere(n: int, rng: np.random.Generator) -> np.ndarray:
    """Uniformly distributed unit vectors, shape (n, 3)."""
    points = rng.standard_normal((n, 3))
    norms = np.linalg.norm(points, axis=1)
    # Redraw the (vanishingly rare) near-zero samples
    bad = norms < 1e-12
    while np.any(bad):
        points[bad] = rng.standard_normal((int(bad.sum()), 3))
        norms = np.linalg.norm(points, axis=1)
        bad = norms < 1e-12
    return points / norms[:, None]
