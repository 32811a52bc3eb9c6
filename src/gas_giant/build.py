"""
Gas Giant Texture: simulation driver

Advect colored particles through a curl-noise flow on a cube-mapped sphere
and paint them onto a packed six-face sheet.

Algorithm:
G1. Validate config and source sheet layout
G2. Allocate particles and output canvas
G3. Scatter particles, colored from the source sheet
G4. Build the velocity field for the starting phase
G5. For each iteration: advect all particles, composite (per composite_mode),
    rebuild the field every field_rebuild_interval steps at phase + phase_step
G6. Final composite (FINAL mode) and run metadata

Banding emerges from the field's large-scale shear acting over many steps.
"""

import numpy as np
import time
from pathlib import Path
from typing import Optional, Tuple
import logging

from common.config import Config, CompositeMode, RunMetadata
from common.io import SourceImage, validate_sheet_layout

from .compositor import canvas_coverage, composite_particles, new_canvas
from .particles import ParticleStore, advect_particles, initialize_particles
from .velocity_field import VelocityField, build_velocity_field

logger = logging.getLogger(__name__)


def _field_for_config(config: Config, phase: float, out: Optional[VelocityField] = None) -> VelocityField:
    return build_velocity_field(
        dim=config.grid_resolution,
        noise_scale=config.noise_scale,
        phase=phase,
        velocity_factor=config.velocity_factor,
        noise_seed=config.noise_seed,
        workers=config.workers,
        out=out
    )


def run_simulation(
    source: SourceImage,
    config: Config,
    rng: Optional[np.random.Generator] = None,
    output_image: Optional[Path] = None
) -> Tuple[np.ndarray, ParticleStore, RunMetadata]:
    """
    Run the full pipeline on a loaded source sheet.

    Args:
        source: Packed six-face source sheet
        config: Run configuration
        rng: Random generator for particle placement (seeded from config.seed if omitted)
        output_image: Output path recorded in metadata

    Returns:
        Tuple of (canvas, particles, metadata). canvas is a
        (3*D, 4*D, 4) float32 RGBA sheet.
    """
    config.validate()
    validate_sheet_layout(source)
    rng = rng if rng is not None else np.random.default_rng(config.seed)

    dim = config.grid_resolution
    stage_seconds = {}

    logger.info(f"Grid {dim}x{dim} per face, {config.particle_count} particles, "
                f"{config.iterations} iterations, composite={config.composite_mode.value}")

    # G2-G3: particles
    t0 = time.perf_counter()
    store = ParticleStore.allocate(config.particle_count, dim)
    canvas = new_canvas(dim)
    initialize_particles(store, source, rng)
    stage_seconds["init"] = time.perf_counter() - t0

    # G4: field
    t0 = time.perf_counter()
    phase = config.phase
    field = _field_for_config(config, phase)
    field_builds = 1
    stage_seconds["field"] = time.perf_counter() - t0

    # G5: advection loop
    t0 = time.perf_counter()
    field_seconds = 0.0
    composite_seconds = 0.0
    for iteration in range(config.iterations):
        logger.debug(f"Iteration: {iteration}")
        advect_particles(store, field)

        if config.composite_mode == CompositeMode.EVERY_ITERATION:
            tc = time.perf_counter()
            composite_particles(canvas, store)
            composite_seconds += time.perf_counter() - tc

        step = iteration + 1
        if config.field_rebuild_interval and step % config.field_rebuild_interval == 0 \
                and step < config.iterations:
            tf = time.perf_counter()
            phase += config.phase_step
            field = _field_for_config(config, phase, out=field)
            field_builds += 1
            field_seconds += time.perf_counter() - tf

        if step % config.log_interval == 0:
            logger.info(f"Iteration {step}/{config.iterations}")

    # G6: final composite
    if config.composite_mode == CompositeMode.FINAL:
        tc = time.perf_counter()
        composite_particles(canvas, store)
        composite_seconds += time.perf_counter() - tc

    stage_seconds["advect"] = time.perf_counter() - t0 - field_seconds - composite_seconds
    stage_seconds["field"] += field_seconds
    stage_seconds["composite"] = composite_seconds

    coverage = canvas_coverage(canvas)
    speeds = field.speed_stats()
    logger.info(f"Canvas coverage: {coverage:.1%}, mean speed {speeds['mean_speed']:.4f}")

    metadata = RunMetadata(
        source_image=str(source.path) if source.path else "",
        output_image=str(output_image) if output_image else "",
        grid_resolution=dim,
        particle_count=config.particle_count,
        iterations=config.iterations,
        composite_mode=config.composite_mode.value,
        coverage=coverage,
        field_builds=field_builds,
        mean_speed=speeds["mean_speed"],
        max_speed=speeds["max_speed"],
        stage_seconds=stage_seconds,
        config=config.to_dict()
    )

    return canvas, store, metadata
