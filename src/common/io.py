"""
Data I/O utilities.

Handles loading the packed six-face source sheet and saving output sheets
and particle clouds with metadata sidecars.
All colors inside the pipeline are float RGBA in [0, 1].
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union
from dataclasses import dataclass
import numpy as np
from PIL import Image, UnidentifiedImageError

from .config import RunMetadata
from .errors import InputError

logger = logging.getLogger(__name__)

try:
    import trimesh
    TRIMESH_AVAILABLE = True
except ImportError:
    TRIMESH_AVAILABLE = False
    logger.warning("trimesh not available")


# Pillow modes we can expand to 8-bit RGB / RGBA without losing meaning
_RGB_MODES = {"RGB", "L", "CMYK", "YCbCr"}
_RGBA_MODES = {"RGBA", "LA", "RGBa", "La"}


@dataclass
class SourceImage:
    """
    Decoded source sheet.

    pixels is (height, width, channels) uint8 with 3 or 4 channels.
    """
    pixels: np.ndarray
    has_alpha: bool
    path: Optional[Path] = None

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    def colors_at(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """
        Sample pixels as float RGBA.

        Alpha is 1.0 when the sheet has no alpha channel.

        Returns:
            (N, 4) float32 array in [0, 1]
        """
        x = np.clip(np.asarray(x, dtype=np.int64), 0, self.width - 1)
        y = np.clip(np.asarray(y, dtype=np.int64), 0, self.height - 1)
        samples = self.pixels[y, x].astype(np.float32) / 255.0

        colors = np.ones(samples.shape[:-1] + (4,), dtype=np.float32)
        colors[..., :3] = samples[..., :3]
        if self.has_alpha:
            colors[..., 3] = samples[..., 3]
        return colors


def load_source_image(
    path: Union[str, Path],
    flip_vertical: bool = False,
    flip_horizontal: bool = False,
    premultiply_alpha: bool = False
) -> SourceImage:
    """
    Load an 8-bit RGB or RGBA source sheet.

    Palette and grayscale images are expanded to RGB(A). Images with
    more than 8 bits per channel are rejected.

    Args:
        path: Image file (PNG expected)
        flip_vertical: Reverse row order
        flip_horizontal: Reverse column order
        premultiply_alpha: Multiply RGB by alpha (RGBA sources only)

    Returns:
        SourceImage

    Raises:
        InputError: if the file is missing, undecodable or not 8-bit RGB(A)
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            img.load()
            mode = img.mode
            if mode == "P":
                # Expand palette, keeping transparency if present
                img = img.convert("RGBA" if "transparency" in img.info else "RGB")
            elif mode in _RGBA_MODES:
                img = img.convert("RGBA")
            elif mode in _RGB_MODES:
                img = img.convert("RGB")
            else:
                raise InputError(
                    f"{path}: only 8-bit RGB and RGBA images are supported (mode {mode})",
                    stage="load"
                )
            pixels = np.array(img, dtype=np.uint8)
    except FileNotFoundError as e:
        raise InputError(f"Failed to open '{path}': {e.strerror}", stage="load") from e
    except UnidentifiedImageError as e:
        raise InputError(f"'{path}' isn't a readable image", stage="load") from e
    except OSError as e:
        raise InputError(f"Failed to read '{path}': {e}", stage="load") from e

    has_alpha = pixels.shape[2] == 4

    if flip_vertical:
        pixels = pixels[::-1]
    if flip_horizontal:
        pixels = pixels[:, ::-1]
    if has_alpha and premultiply_alpha:
        alpha = pixels[..., 3:4].astype(np.float32) / 255.0
        pixels[..., :3] = (pixels[..., :3] * alpha).astype(np.uint8)

    pixels = np.ascontiguousarray(pixels)
    logger.info(f"Loaded {path}: {pixels.shape[1]}x{pixels.shape[0]}, "
                f"{'RGBA' if has_alpha else 'RGB'}")

    return SourceImage(pixels=pixels, has_alpha=has_alpha, path=path)


def validate_sheet_layout(image: SourceImage) -> None:
    """
    Check the sheet can hold six equal faces (4 columns x 3 rows).

    Raises:
        InputError: if width is not a multiple of 4 or height of 3
    """
    if image.width < 4 or image.height < 3:
        raise InputError(
            f"Source sheet {image.width}x{image.height} is too small for a six-face layout",
            stage="load"
        )
    if image.width % 4 or image.height % 3:
        raise InputError(
            f"Source sheet {image.width}x{image.height} does not match the "
            f"4x3 face layout (width % 4 and height % 3 must be 0)",
            stage="load"
        )
    if image.width // 4 != image.height // 3:
        logger.warning(f"Source faces are not square: "
                       f"{image.width // 4}x{image.height // 3}")


def canvas_to_pixels(canvas: np.ndarray, with_alpha: bool) -> np.ndarray:
    """Quantize a float RGBA canvas to 8-bit RGB or RGBA."""
    channels = 4 if with_alpha else 3
    data = np.clip(canvas[..., :channels], 0.0, 1.0)
    return np.rint(data * 255.0).astype(np.uint8)


def save_image(
    canvas: np.ndarray,
    path: Union[str, Path],
    with_alpha: bool = True,
    metadata: Optional[RunMetadata] = None
) -> Path:
    """
    Save a float RGBA canvas as PNG, with optional metadata sidecar.

    Args:
        canvas: (height, width, 4) float array in [0, 1]
        path: Output path (should end in .png)
        with_alpha: Write RGBA; otherwise alpha is dropped
        metadata: RunMetadata saved as a .json sidecar

    Returns:
        Path the image was written to
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    pixels = canvas_to_pixels(canvas, with_alpha)
    Image.fromarray(pixels).save(path)
    logger.info(f"Saved image: {path} ({pixels.shape[1]}x{pixels.shape[0]})")

    if metadata is not None:
        meta_path = path.with_suffix('.json')
        metadata.save(meta_path)
        logger.info(f"Saved metadata: {meta_path}")

    return path


def save_particle_cloud(
    positions: np.ndarray,
    colors: np.ndarray,
    path: Union[str, Path],
    radius: float = 1.0
) -> Tuple[int, Path]:
    """
    Export particles as a colored point cloud (PLY, or any format trimesh writes).

    Args:
        positions: (N, 3) particle positions
        colors: (N, 4) float RGBA in [0, 1]
        path: Output path
        radius: Sphere radius to place the points on

    Returns:
        Tuple of (n_points, path)
    """
    if not TRIMESH_AVAILABLE:
        raise ImportError("trimesh required for saving particle clouds")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    norms = np.linalg.norm(positions, axis=1, keepdims=True)
    vertices = positions / np.where(norms > 0, norms, 1.0) * radius
    rgba = np.rint(np.clip(colors, 0.0, 1.0) * 255.0).astype(np.uint8)

    cloud = trimesh.PointCloud(vertices, colors=rgba)
    cloud.export(str(path))
    logger.info(f"Saved particle cloud: {path} ({len(vertices)} points)")

    return len(vertices), path
