"""Gas giant flow simulation - curl-noise advection of colored particles on a cube-mapped sphere."""

from .build import run_simulation
from .compositor import combine_color, composite_particles, new_canvas
from .curl import curl
from .noise_field import NoiseField, noise_gradient
from .particles import ParticleStore, initialize_particles, advect_particles, advect_particle
from .velocity_field import VelocityField, build_velocity_field

__all__ = [
    "run_simulation",
    "combine_color", "composite_particles", "new_canvas",
    "curl",
    "NoiseField", "noise_gradient",
    "ParticleStore", "initialize_particles", "advect_particles", "advect_particle",
    "VelocityField", "build_velocity_field",
]
