#!/usr/bin/env python3
"""
Gaseous Giganticus - Orchestrator

Load a packed six-face source sheet, run the particle flow simulation and
save the painted sheet with a metadata sidecar.

Usage:
    python src/run_simulation.py gas.png --output outputs/giant.png
    python src/run_simulation.py gas.png --config run.yaml --iterations 200 --workers 6
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

# Add src to path
sys.path.insert(0, str(Path(__file__).parent))

from common.config import Config, CompositeMode
from common.errors import GiganticusError
from common.io import load_source_image, save_image, save_particle_cloud
from gas_giant.build import run_simulation

logger = logging.getLogger(__name__)

# CLI flag -> Config field, applied only when the flag is given
_OVERRIDES = {
    "resolution": "grid_resolution",
    "particles": "particle_count",
    "iterations": "iterations",
    "noise_scale": "noise_scale",
    "velocity_factor": "velocity_factor",
    "phase": "phase",
    "phase_step": "phase_step",
    "rebuild_interval": "field_rebuild_interval",
    "seed": "seed",
    "noise_seed": "noise_seed",
    "workers": "workers",
    "log_interval": "log_interval",
}


def build_config(args: argparse.Namespace) -> Config:
    """Config file (if any) with command-line overrides applied."""
    config = Config.from_file(args.config) if args.config else Config()

    for flag, attr in _OVERRIDES.items():
        value = getattr(args, flag)
        if value is not None:
            setattr(config, attr, value)

    if args.composite is not None:
        config.composite_mode = CompositeMode(args.composite)
    if args.flip_vertical:
        config.flip_vertical = True
    if args.flip_horizontal:
        config.flip_horizontal = True
    if args.premultiply_alpha:
        config.premultiply_alpha = True
    if args.output is not None:
        config.output_dir = args.output.parent

    config.validate()
    return config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Gaseous Giganticus - Paint gas giant textures with curl-noise flow"
    )
    parser.add_argument(
        "source",
        type=Path,
        help="Packed six-face source image (8-bit RGB or RGBA PNG)"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        default=None,
        help="Output image path (default: <output_dir>/<source stem>_giant.png)"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="JSON or YAML config file"
    )
    parser.add_argument("--resolution", "-r", type=int, default=None,
                        help="Cells per cube face edge (default 1024)")
    parser.add_argument("--particles", "-n", type=int, default=None,
                        help="Particle count (default 1000000)")
    parser.add_argument("--iterations", "-i", type=int, default=None,
                        help="Advection steps (default 1000)")
    parser.add_argument("--noise-scale", type=float, default=None,
                        help="Noise domain scale (default 10.0)")
    parser.add_argument("--velocity-factor", type=float, default=None,
                        help="Velocity multiplier (default 10.0)")
    parser.add_argument("--phase", type=float, default=None,
                        help="Starting noise phase (default 0.0)")
    parser.add_argument("--phase-step", type=float, default=None,
                        help="Phase increment per field rebuild")
    parser.add_argument("--rebuild-interval", type=int, default=None,
                        help="Rebuild the field every N iterations (0 = never)")
    parser.add_argument(
        "--composite",
        choices=[m.value for m in CompositeMode],
        default=None,
        help="Paint every iteration or only the final positions"
    )
    parser.add_argument("--seed", type=int, default=None,
                        help="Particle placement seed")
    parser.add_argument("--noise-seed", type=int, default=None,
                        help="Simplex noise seed")
    parser.add_argument("--workers", "-j", type=int, default=None,
                        help="Processes for velocity field construction")
    parser.add_argument("--log-interval", type=int, default=None,
                        help="Log progress every N iterations")
    parser.add_argument("--flip-vertical", action="store_true",
                        help="Flip source rows on load")
    parser.add_argument("--flip-horizontal", action="store_true",
                        help="Flip source columns on load")
    parser.add_argument("--premultiply-alpha", action="store_true",
                        help="Pre-multiply source RGB by alpha")
    parser.add_argument(
        "--cloud",
        type=Path,
        default=None,
        help="Also export final particles as a colored point cloud (.ply)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    args = parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        config = build_config(args)
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    output_path = args.output or config.get_output_path(f"{args.source.stem}_giant")

    logger.info(f"Source: {args.source}")
    logger.info(f"Output: {output_path}")

    start = time.perf_counter()
    try:
        logger.info("Loading image")
        source = load_source_image(
            args.source,
            flip_vertical=config.flip_vertical,
            flip_horizontal=config.flip_horizontal,
            premultiply_alpha=config.premultiply_alpha
        )

        canvas, store, metadata = run_simulation(source, config, output_image=output_path)

        save_image(canvas, output_path, with_alpha=source.has_alpha, metadata=metadata)

        if args.cloud:
            save_particle_cloud(store.positions, store.colors, args.cloud)

    except GiganticusError as e:
        logger.error(f"Run failed: {e}")
        sys.exit(1)
    except (OSError, ImportError) as e:
        logger.error(f"[save] Run failed: {e}")
        sys.exit(1)

    logger.info(f"\n{'='*60}")
    logger.info(f"COMPLETE: {output_path} in {time.perf_counter() - start:.1f}s "
                f"(coverage {metadata.coverage:.1%})")
    logger.info(f"{'='*60}")


if __name__ == "__main__":
    main()
