"""
Simulation Parameters

Configuration bundle for the force engine. Parameters can be built in code,
from a mapping, or loaded from a YAML file. The packaged
default_parameters.yaml mirrors the dataclass defaults.

All validation happens up front: a rejected configuration never reaches a
running simulation.
"""

import logging
import math
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PARAMETERS_PATH = Path(__file__).resolve().parent.parent / "default_parameters.yaml"

# Scheduler cadence override, in milliseconds
TICK_INTERVAL_ENV = "FORCEGRAPH_TICK_INTERVAL_MS"
DEFAULT_TICK_INTERVAL = 0.016


class ConfigurationError(ValueError):
    """Raised when simulation parameters are invalid."""
    pass


@dataclass
class SimulationParameters:
    """Tunable parameters for the force simulation."""

    # Canvas size (simulation units)
    width: float = 800.0
    height: float = 600.0

    # Forces
    strength: float = 0.7  # Global link strength multiplier
    friction: float = 0.8  # Velocity retained per tick, in [0, 1]
    distance: float = 150.0  # Default link rest distance
    charge: float = -320.0  # Negative = repulsive
    gravity: float = 0.1  # Pull toward canvas center
    theta: float = 0.8  # Barnes-Hut threshold, in (0, 1]

    # Cooling schedule
    alpha: float = 0.2  # Initial temperature
    alpha_decay: float = 0.99  # Multiplicative cooling per tick
    alpha_min: float = 0.005  # Settled once alpha drops below this
    resume_alpha: float = 0.1  # Temperature restored by resume()

    # Numerical safety
    min_distance: float = 1.0  # Distance floor for repulsion and springs
    max_velocity: float = 100.0  # Speed clamp per tick

    # Scheduling and seeding
    tick_interval: float = DEFAULT_TICK_INTERVAL  # seconds
    seed_radius: float = 30.0  # Jitter radius for unplaced nodes

    @property
    def center(self) -> Tuple[float, float]:
        return (self.width / 2, self.height / 2)

    def validate(self) -> "SimulationParameters":
        """Check every parameter, raising ConfigurationError on the first problem.

        Returns self so calls can be chained.
        """
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    f"{f.name} must be a number, got {type(value).__name__}"
                )
            if not math.isfinite(value):
                raise ConfigurationError(f"{f.name} must be finite, got {value}")

        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(
                f"Canvas size must be positive, got {self.width}x{self.height}"
            )
        if not 0.0 < self.theta <= 1.0:
            raise ConfigurationError(f"theta must be in (0, 1], got {self.theta}")
        if not 0.0 <= self.friction <= 1.0:
            raise ConfigurationError(f"friction must be in [0, 1], got {self.friction}")
        if not 0.0 < self.alpha_decay < 1.0:
            raise ConfigurationError(
                f"alpha_decay must be in (0, 1), got {self.alpha_decay}"
            )
        if self.alpha < 0 or self.resume_alpha < 0:
            raise ConfigurationError("alpha and resume_alpha must be non-negative")
        if self.distance < 0 or self.seed_radius < 0:
            raise ConfigurationError("distance and seed_radius must be non-negative")

        positive = ("alpha_min", "min_distance", "max_velocity", "tick_interval")
        for name in positive:
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")

        return self

    def with_size(self, width: float, height: float) -> "SimulationParameters":
        """Copy with a new canvas size."""
        return replace(self, width=width, height=height)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimulationParameters":
        """Build validated parameters from a mapping.

        Unknown keys are rejected so typos don't silently fall back to defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown simulation parameters: {unknown}")

        values = {}
        for key, value in data.items():
            if isinstance(value, bool):
                raise ConfigurationError(f"{key} must be a number, got bool")
            try:
                values[key] = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"{key} must be a number, got {value!r}")

        return cls(**values).validate()


def load_parameters(path: Optional[Union[str, Path]] = None) -> SimulationParameters:
    """
    Load simulation parameters from a YAML file.

    The file holds a flat mapping of parameter names to numbers, optionally
    nested under a top-level ``simulation`` key. Missing keys keep their
    defaults.

    Args:
        path: YAML file to read. If None, uses the packaged defaults.

    Returns:
        Validated SimulationParameters
    """
    config_path = Path(path) if path is not None else DEFAULT_PARAMETERS_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Parameter file not found: {config_path}")

    # Security: Check for symlinks to prevent reading unintended files
    if config_path.is_symlink():
        raise ValueError(f"Parameter file cannot be a symlink: {config_path}")

    with open(config_path, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Parameter file must contain a mapping, got {type(data).__name__}"
        )
    if "simulation" in data:
        data = data["simulation"] or {}
        if not isinstance(data, dict):
            raise ConfigurationError("'simulation' section must be a mapping")

    params = SimulationParameters.from_dict(data)
    logger.debug("Loaded simulation parameters from %s", config_path)
    return params


def get_tick_interval(default: float = DEFAULT_TICK_INTERVAL) -> float:
    """
    Determine the tick interval, honoring the environment override.

    FORCEGRAPH_TICK_INTERVAL_MS takes a positive number of milliseconds.
    Invalid values are logged and ignored.

    Returns:
        Interval in seconds
    """
    raw = os.environ.get(TICK_INTERVAL_ENV, "").strip()
    if not raw:
        return default

    try:
        interval_ms = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", TICK_INTERVAL_ENV, raw)
        return default

    if not math.isfinite(interval_ms) or interval_ms <= 0:
        logger.warning("Ignoring non-positive %s=%r", TICK_INTERVAL_ENV, raw)
        return default

    return interval_ms / 1000.0
