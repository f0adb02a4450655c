"""
Simulation Harness Configuration

Manages loading from environment variables and default values, and validates
design parameters before any simulation runs.
"""

import os
from dataclasses import dataclass, field, asdict


class ConfigurationError(ValueError):
    """Raised when a design or simulation parameter is invalid"""


def _env_bool(key: str, default: bool) -> bool:
    """Convert an environment variable to bool"""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Convert an environment variable to int"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to an integer.")


def _env_float(key: str, default: float) -> float:
    """Convert an environment variable to float"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to a number.")


def _env_optional_int(key: str, default: int | None) -> int | None:
    """Convert an environment variable to int, treating an empty value as None"""
    val = os.environ.get(key)
    if val is None:
        return default
    if not val.strip():
        return None
    return _env_int(key, 0)


@dataclass(frozen=True)
class DesignConfig:
    """Trial design shared by every stage of every replicate"""
    prior_a: float = 1.0
    prior_b: float = 1.0
    delta: float = 0.1
    cap: int = 400           # Maximum number of patients in one trial
    burn: int = 48           # Stage-1 patients per arm
    batch: int = 12          # Later-stage patients per active arm
    has_control: bool = True
    drop_control: bool = False
    grid_size: int = 200     # Integration cells on [0, 1]

    @property
    def prior(self) -> tuple[float, float]:
        return (self.prior_a, self.prior_b)

    def validate(self, n_arms: int | None = None) -> None:
        """
        Check every design parameter.

        Args:
            n_arms: Number of arms in the scenario (skips arm checks when None)

        Raises:
            ConfigurationError: On the first invalid parameter
        """
        if self.prior_a <= 0 or self.prior_b <= 0:
            raise ConfigurationError(
                f"Prior shape parameters must be positive: ({self.prior_a}, {self.prior_b})"
            )
        if not -1.0 < self.delta < 1.0:
            raise ConfigurationError(f"delta must lie in (-1, 1): {self.delta}")
        for name in ("cap", "burn", "batch"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be a positive integer: {getattr(self, name)}")
        if self.batch > self.cap:
            raise ConfigurationError(f"batch ({self.batch}) exceeds cap ({self.cap})")
        if self.grid_size < 2:
            raise ConfigurationError(f"grid_size must be at least 2: {self.grid_size}")
        if n_arms is None:
            return
        if n_arms < 2:
            raise ConfigurationError(f"At least two arms are required, got {n_arms}")
        if self.burn * n_arms > self.cap:
            raise ConfigurationError(
                f"Stage-1 size {self.burn} x {n_arms} arms exceeds cap ({self.cap})"
            )


def validate_gamma(gamma: float) -> float:
    """Check a cost-to-benefit threshold (C/Q) and return it as float"""
    try:
        value = float(gamma)
    except (TypeError, ValueError):
        raise ConfigurationError(f"gamma must be a number: {gamma!r}")
    if not value > 0:
        raise ConfigurationError(f"gamma must be positive: {gamma}")
    return value


@dataclass(frozen=True)
class SimulationConfig:
    """Replicate and execution settings"""
    num_trials: int = 1000
    seed: int | None = None
    max_workers: int = 8
    decimals: int = 4

    def validate(self) -> None:
        if self.num_trials <= 0:
            raise ConfigurationError(f"num_trials must be a positive integer: {self.num_trials}")
        if self.max_workers <= 0:
            raise ConfigurationError(f"max_workers must be a positive integer: {self.max_workers}")
        if self.decimals < 0:
            raise ConfigurationError(f"decimals must be non-negative: {self.decimals}")


@dataclass(frozen=True)
class MamsConfig:
    """Overall simulation harness configuration"""
    design: DesignConfig = field(default_factory=DesignConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {"mams_config": asdict(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "MamsConfig":
        """Create from dictionary (handles presence/absence of mams_config key)"""
        config_data = data.get("mams_config", data)
        design = DesignConfig(**config_data.get("design", {}))
        simulation = SimulationConfig(**config_data.get("simulation", {}))
        return cls(design=design, simulation=simulation)


def load_config() -> MamsConfig:
    """
    Load configuration from environment variables

    Uses default values when environment variables are not set.

    Returns:
        MamsConfig
    """
    design = DesignConfig(
        prior_a=_env_float("MAMS_PRIOR_A", 1.0),
        prior_b=_env_float("MAMS_PRIOR_B", 1.0),
        delta=_env_float("MAMS_DELTA", 0.1),
        cap=_env_int("MAMS_CAP", 400),
        burn=_env_int("MAMS_BURN", 48),
        batch=_env_int("MAMS_BATCH", 12),
        has_control=_env_bool("MAMS_HAS_CONTROL", True),
        drop_control=_env_bool("MAMS_DROP_CONTROL", False),
        grid_size=_env_int("MAMS_GRID_SIZE", 200),
    )
    simulation = SimulationConfig(
        num_trials=_env_int("MAMS_NUM_TRIALS", 1000),
        seed=_env_optional_int("MAMS_SEED", None),
        max_workers=_env_int("MAMS_MAX_WORKERS", 8),
        decimals=_env_int("MAMS_DECIMALS", 4),
    )
    return MamsConfig(design=design, simulation=simulation)
