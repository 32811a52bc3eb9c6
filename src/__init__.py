"""
Gaseous Giganticus - Procedural gas giant textures.

Colored particles are advected through a curl-noise flow on a cube-mapped
sphere and painted onto a packed six-face sheet:
- common: configuration, errors, cube map geometry, image I/O
- gas_giant: noise, curl transform, velocity field, particles, compositing

Usage:
    python src/run_simulation.py gas.png --output outputs/giant.png
"""

__version__ = "1.0.0"
