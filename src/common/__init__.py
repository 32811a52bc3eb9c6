"""
Common modules for gas giant texture generation.

Grid Model:
- Cube cell (face, i, j) <-> direction on the unit sphere
- D cells per face edge; particles kept at radius D/2
- Source and output sheets pack six faces in a 4 x 3 layout
"""

from .config import Config, CompositeMode, RunMetadata, DEFAULT_CONFIG
from .errors import GiganticusError, InputError, DomainError, ResourceError
from .cubemap import (
    Face, CubeCell, fij_to_xyz, xyz_to_fij, face_points, face_grid,
    points_to_cells, cells_to_sheet_pixels, random_points_on_sphere,
    FACE_X_MULTIPLIER, FACE_Y_MULTIPLIER,
)
from .io import SourceImage, load_source_image, validate_sheet_layout, save_image, save_particle_cloud

__all__ = [
    'Config', 'CompositeMode', 'RunMetadata', 'DEFAULT_CONFIG',
    'GiganticusError', 'InputError', 'DomainError', 'ResourceError',
    'Face', 'CubeCell', 'fij_to_xyz', 'xyz_to_fij', 'face_points', 'face_grid',
    'points_to_cells', 'cells_to_sheet_pixels', 'random_points_on_sphere',
    'FACE_X_MULTIPLIER', 'FACE_Y_MULTIPLIER',
    'SourceImage', 'load_source_image', 'validate_sheet_layout', 'save_image', 'save_particle_cloud',
]
