"""
Configuration and constants for gas giant texture generation.

Grid Model:
- Six cube faces, each D x D cells (D = grid_resolution)
- Particles live on a sphere of radius D/2 (the working radius)
- Output sheet packs the faces into a 4D x 3D image
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple
import json
from pathlib import Path

import yaml


class CompositeMode(Enum):
    """
    When particle colors are written onto the output canvas.

    EVERY_ITERATION (default): composite after each advection step
        - Paint accumulates along particle paths (streaks/bands)
    FINAL: composite once, after the last iteration
        - Cheaper, shows only final particle positions
    """
    EVERY_ITERATION = "every_iteration"
    FINAL = "final"


@dataclass
class RunMetadata:
    """
    Metadata written next to every output image.

    Records the inputs, the config snapshot and what the run produced.
    """
    source_image: str
    output_image: str
    grid_resolution: int
    particle_count: int
    iterations: int
    composite_mode: str
    coverage: float = 0.0  # Fraction of canvas pixels with non-zero alpha
    field_builds: int = 0
    mean_speed: Optional[float] = None
    max_speed: Optional[float] = None
    stage_seconds: Dict[str, float] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_image": self.source_image,
            "output_image": self.output_image,
            "grid_resolution": self.grid_resolution,
            "particle_count": self.particle_count,
            "iterations": self.iterations,
            "composite_mode": self.composite_mode,
            "coverage": self.coverage,
            "field_builds": self.field_builds,
            "mean_speed": self.mean_speed,
            "max_speed": self.max_speed,
            "stage_seconds": self.stage_seconds,
            "config": self.config,
        }

    def save(self, path: Path) -> None:
        """Save metadata to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunMetadata":
        return cls(**data)


@dataclass
class Config:
    """
    Global configuration for a simulation run.

    Defaults reproduce the reference run: 1024 cells per face edge,
    one million particles, 1000 iterations.
    """

    # Cube map resolution (cells per face edge)
    grid_resolution: int = 1024

    # Particle population (fixed for the run)
    particle_count: int = 1_000_000

    # Advection steps
    iterations: int = 1000

    # Noise domain scale and velocity multiplier
    noise_scale: float = 10.0
    velocity_factor: float = 10.0

    # Noise phase (4th noise coordinate is phase * noise_scale)
    phase: float = 0.0
    phase_step: float = 0.0
    field_rebuild_interval: int = 0  # 0 = static field

    # Compositing cadence
    composite_mode: CompositeMode = CompositeMode.EVERY_ITERATION

    # Seeds
    seed: Optional[int] = None  # Particle placement
    noise_seed: int = 0  # Simplex permutation

    # Parallel field construction (1 = serial)
    workers: int = 1

    # Progress logging cadence (iterations)
    log_interval: int = 100

    # Source loading
    flip_vertical: bool = False
    flip_horizontal: bool = False
    premultiply_alpha: bool = False

    # Paths (relative to working directory)
    output_dir: Path = field(default_factory=lambda: Path("outputs"))

    @property
    def working_radius(self) -> float:
        """Radius particles are kept at between steps."""
        return self.grid_resolution / 2.0

    @property
    def sheet_size(self) -> Tuple[int, int]:
        """(width, height) of the packed six-face output sheet."""
        return 4 * self.grid_resolution, 3 * self.grid_resolution

    def get_output_path(self, stem: str) -> Path:
        """Get output image path for a named run."""
        return self.output_dir / f"{stem}.png"

    def validate(self) -> None:
        """Raise ValueError for settings no run can use."""
        if self.grid_resolution < 1:
            raise ValueError(f"grid_resolution must be >= 1, got {self.grid_resolution}")
        if self.particle_count < 1:
            raise ValueError(f"particle_count must be >= 1, got {self.particle_count}")
        if self.iterations < 0:
            raise ValueError(f"iterations must be >= 0, got {self.iterations}")
        if self.noise_scale <= 0:
            raise ValueError(f"noise_scale must be > 0, got {self.noise_scale}")
        if self.field_rebuild_interval < 0:
            raise ValueError("field_rebuild_interval must be >= 0")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.log_interval < 1:
            raise ValueError(f"log_interval must be >= 1, got {self.log_interval}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grid_resolution": self.grid_resolution,
            "particle_count": self.particle_count,
            "iterations": self.iterations,
            "noise_scale": self.noise_scale,
            "velocity_factor": self.velocity_factor,
            "phase": self.phase,
            "phase_step": self.phase_step,
            "field_rebuild_interval": self.field_rebuild_interval,
            "composite_mode": self.composite_mode.value,
            "seed": self.seed,
            "noise_seed": self.noise_seed,
            "workers": self.workers,
            "log_interval": self.log_interval,
            "flip_vertical": self.flip_vertical,
            "flip_horizontal": self.flip_horizontal,
            "premultiply_alpha": self.premultiply_alpha,
            "output_dir": str(self.output_dir),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        data = dict(data)
        data["composite_mode"] = CompositeMode(data.get("composite_mode", "every_iteration"))
        data["output_dir"] = Path(data.get("output_dir", "outputs"))
        return cls(**data)

    @classmethod
    def from_json(cls, path: Path) -> "Config":
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load config from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path) -> "Config":
        """Load config from JSON or YAML, chosen by suffix."""
        path = Path(path)
        if path.suffix.lower() in (".yaml", ".yml"):
            return cls.from_yaml(path)
        return cls.from_json(path)

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Global default config
DEFAULT_CONFIG = Config()
