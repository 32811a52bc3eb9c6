"""
Curl Transform

Turns a raw noise gradient into a flow vector tangent to the sphere.

For each point:
C1. Rotate the frame so the point's outward direction becomes straight up (+y)
C2. Rotate the gradient into that frame
C3. Swap the x and z components and zero y (a quarter turn in the x-z plane,
    projected onto the tangent plane at the pole)
C4. Rotate back with the inverse rotation

The result is everywhere tangent to the sphere and circulates around the
noise features instead of flowing down their slopes.
"""

import numpy as np
from scipy.spatial.transform import Rotation

STRAIGHT_UP = np.array([0.0, 1.0, 0.0])

# Below this |u x up| the point is treated as sitting on a pole
_PARALLEL_EPS = 1e-12


def rotation_to_up(positions: np.ndarray, up: np.ndarray = STRAIGHT_UP) -> Rotation:
    """
    Shortest-arc rotations taking each position's direction onto ``up``.

    A point exactly opposite ``up`` is turned half a revolution about the
    x axis.

    Args:
        positions: (N, 3) non-zero vectors
        up: Target direction

    Returns:
        Rotation stack of length N
    """
    positions = np.atleast_2d(np.asarray(positions, dtype=np.float64))
    up = np.asarray(up, dtype=np.float64)
    up = up / np.linalg.norm(up)

    u = positions / np.linalg.norm(positions, axis=1, keepdims=True)
    axis = np.cross(u, up)
    s = np.linalg.norm(axis, axis=1)
    c = u @ up
    angle = np.arctan2(s, c)

    rotvec = np.zeros_like(u)
    turning = s > _PARALLEL_EPS
    rotvec[turning] = axis[turning] * (angle[turning] / s[turning])[:, None]

    opposite = ~turning & (c < 0)
    if np.any(opposite):
        rotvec[opposite] = np.array([np.pi, 0.0, 0.0])

    return Rotation.from_rotvec(rotvec)


def curl(positions: np.ndarray, gradients: np.ndarray) -> np.ndarray:
    """
    Curl-like tangent flow from noise gradients.

    Args:
        positions: (N, 3) points (any radius) the gradients were sampled at
        gradients: (N, 3) noise gradients

    Returns:
        (N, 3) vectors tangent to the sphere at each position
    """
    positions = np.atleast_2d(np.asarray(positions, dtype=np.float64))
    gradients = np.atleast_2d(np.asarray(gradients, dtype=np.float64))

    rot = rotation_to_up(positions)
    rotated = rot.apply(gradients)

    # Swap x and z, then flatten onto the x-z plane
    turned = np.empty_like(rotated)
    turned[:, 0] = rotated[:, 2]
    turned[:, 1] = 0.0
    turned[:, 2] = rotated[:, 0]

    return rot.inv().apply(turned)
