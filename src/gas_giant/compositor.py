"""
Color Compositor

Alpha-over blending of particle colors onto the packed output sheet.

    a_out = a_over + a_under * (1 - a_over)
    c_out = (c_over * a_over + c_under * a_under * (1 - a_over)) / a_out

with c_out = 0 where a_out == 0.

Several particles can land on the same pixel in one pass. They are
blended in particle order, one layer at a time, so the result matches a
sequential per-particle loop.
"""

import numpy as np
import logging

from common.cubemap import cells_to_sheet_pixels
from common.errors import ResourceError

from .particles import ParticleStore

logger = logging.getLogger(__name__)


def alpha_blend_channel(under: np.ndarray, under_alpha: np.ndarray,
                        over: np.ndarray, over_alpha: np.ndarray) -> np.ndarray:
    """Un-normalized over-blend of one channel."""
    return over * over_alpha + under * under_alpha * (1.0 - over_alpha)


def combine_color(under: np.ndarray, over: np.ndarray) -> np.ndarray:
    """
    Composite ``over`` onto ``under``.

    Args:
        under: (..., 4) existing RGBA
        over: (..., 4) incoming RGBA

    Returns:
        (..., 4) blended RGBA, same dtype as ``under``
    """
    under = np.asarray(under)
    over = np.asarray(over)
    under_alpha = under[..., 3:4]
    over_alpha = over[..., 3:4]

    alpha = over_alpha + under_alpha * (1.0 - over_alpha)
    rgb = alpha_blend_channel(under[..., :3], under_alpha, over[..., :3], over_alpha)
    rgb = np.divide(rgb, alpha, out=np.zeros_like(rgb), where=alpha > 0)

    return np.concatenate([rgb, alpha], axis=-1).astype(under.dtype, copy=False)


def new_canvas(dim: int) -> np.ndarray:
    """Transparent (3*dim, 4*dim, 4) float32 output sheet."""
    try:
        return np.zeros((3 * dim, 4 * dim, 4), dtype=np.float32)
    except MemoryError as e:
        raise ResourceError(f"Cannot allocate {4 * dim}x{3 * dim} canvas", stage="composite") from e


def composite_pixels(canvas: np.ndarray, flat_index: np.ndarray, colors: np.ndarray) -> int:
    """
    Blend colors onto canvas pixels given as flat (row-major) indices.

    Duplicate indices are blended in array order.

    Returns:
        Number of blend layers needed (max particles on one pixel)
    """
    if not canvas.flags.c_contiguous:
        raise ValueError("Canvas must be C-contiguous to be painted in place")

    pixels = canvas.reshape(-1, canvas.shape[-1])
    remaining = np.arange(len(flat_index))
    layers = 0

    while remaining.size:
        # First remaining particle on each pixel forms this layer
        _, first = np.unique(flat_index[remaining], return_index=True)
        chosen = remaining[first]
        targets = flat_index[chosen]
        pixels[targets] = combine_color(pixels[targets], colors[chosen])
        remaining = np.delete(remaining, first)
        layers += 1

    return layers


def composite_particles(canvas: np.ndarray, store: ParticleStore) -> int:
    """
    Paint every particle onto the pixel of its current cube cell.

    Args:
        canvas: (3*dim, 4*dim, 4) output sheet, modified in place
        store: Particles to paint

    Returns:
        Number of blend layers used
    """
    height, width = canvas.shape[:2]
    if (width, height) != (4 * store.dim, 3 * store.dim):
        raise ValueError(f"Canvas {width}x{height} does not match grid dim {store.dim}")

    faces, i, j = store.cells()
    px, py = cells_to_sheet_pixels(faces, i, j, store.dim, width, height)
    layers = composite_pixels(canvas, py * width + px, store.colors)

    logger.debug(f"Composited {store.n_particles} particles in {layers} layers")
    return layers


def canvas_coverage(canvas: np.ndarray) -> float:
    """Fraction of pixels with non-zero alpha."""
    return float(np.count_nonzero(canvas[..., 3] > 0)) / float(canvas.shape[0] * canvas.shape[1])
