"""Pydantic-based configuration schemas and helpers."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


class EvolutionSettings(BaseModel):
    """Path evolution configuration parsed from YAML."""

    model_config = ConfigDict(extra="forbid")

    max_jump: float = Field(default=1.0, gt=0.0, description="Maximum sub-step length in years")


class CalibrationSettings(BaseModel):
    """Broyden root finder configuration used by the calibrators."""

    model_config = ConfigDict(extra="forbid")

    absolute_tolerance: float = Field(default=1.0e-9, gt=0.0, description="Absolute tolerance")
    relative_tolerance: float = Field(default=1.0e-4, gt=0.0, description="Relative step tolerance")
    max_steps: int = Field(default=250, gt=0, description="Maximum number of Broyden iterations")
    finite_difference_step: float = Field(
        default=1.0e-5, gt=0.0, description="Bump size of the finite-difference Jacobian"
    )
    difference_scheme: str = Field(default="forward", description="Finite-difference scheme")
    max_backtracks: int = Field(default=10, ge=0, description="Step halvings before rejection")

    @field_validator("difference_scheme")
    @classmethod
    def validate_scheme(cls, value: str) -> str:
        allowed = {"forward", "central"}
        canonical = value.lower()
        if canonical not in allowed:
            raise ValueError(f"difference_scheme must be one of {sorted(allowed)}")
        return canonical


class MonteCarloSettings(BaseModel):
    """Path counts used by Monte Carlo pricers."""

    model_config = ConfigDict(extra="forbid")

    paths: int = Field(gt=0, description="Total number of Monte Carlo paths")
    paths_per_block: int = Field(default=10_000, gt=0, description="Paths simulated per block")

    @model_validator(mode="after")
    def validate_block(self) -> "MonteCarloSettings":
        if self.paths_per_block > self.paths:
            self.paths_per_block = self.paths
        return self


class AppConfig(BaseModel):
    """Top-level configuration container for simulation and calibration runs."""

    model_config = ConfigDict(extra="forbid")

    seed: int = Field(ge=0, description="Seed for PRNG initialisation")
    evolution: EvolutionSettings = Field(default_factory=EvolutionSettings)
    calibration: CalibrationSettings = Field(default_factory=CalibrationSettings)
    monte_carlo: MonteCarloSettings

    def to_evolution_config(self):
        """Convert to the internal :class:`~lmmddd.engines.lmm_evolution.EvolutionConfig`."""
        from lmmddd.engines.lmm_evolution import EvolutionConfig

        return EvolutionConfig(max_jump=self.evolution.max_jump)

    def to_root_finder_config(self):
        """Convert to the internal :class:`~lmmddd.core.math.solvers.RootFinderConfig`."""
        from lmmddd.core.math.solvers import RootFinderConfig

        return RootFinderConfig(**self.calibration.model_dump())

    def path_scheduler(self):
        """Block scheduler for the configured Monte Carlo paths."""
        from lmmddd.core.batching import PathBatchScheduler

        return PathBatchScheduler(self.monte_carlo.paths_per_block)

    def normal_source(self):
        """Fresh :class:`~lmmddd.core.rng.KeySeq` seeded from the configuration."""
        from lmmddd.core.rng import KeySeq

        return KeySeq.from_config(self)


class ConfigValidationError(RuntimeError):
    """Raised when one or more configuration files fail validation."""

    def __init__(self, errors: list[tuple[Path, ValidationError]]):
        message_lines = ["Configuration validation failed:"]
        for path, error in errors:
            message_lines.append(f"- {path}: {error}")
        super().__init__("\n".join(message_lines))
        self.errors = errors


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration at {path} must contain a mapping")
    return data


def load_config(path: Path | str) -> AppConfig:
    """Load a configuration file into an :class:`AppConfig`."""
    target = Path(path)
    payload = _load_yaml(target)
    return AppConfig.model_validate(payload)


def discover_config_files(paths: Iterable[Path | str]) -> list[Path]:
    """Discover YAML configuration files from provided paths."""
    discovered: list[Path] = []
    seen = set()
    for raw_path in paths:
        path = Path(raw_path)
        if path.is_file() and path.suffix in {".yml", ".yaml"}:
            resolved = path.resolve()
            if resolved not in seen:
                discovered.append(resolved)
                seen.add(resolved)
        elif path.is_dir():
            for pattern in ("*.yml", "*.yaml"):
                for candidate in sorted(path.rglob(pattern)):
                    resolved = candidate.resolve()
                    if resolved not in seen:
                        discovered.append(resolved)
                        seen.add(resolved)
    return discovered


def collect_and_validate(paths: Iterable[Path | str]) -> list[AppConfig]:
    """Validate all configuration files under the given paths."""
    files = discover_config_files(paths)
    errors: list[tuple[Path, ValidationError]] = []
    configs: list[AppConfig] = []
    for file in files:
        try:
            configs.append(load_config(file))
        except ValidationError as error:
            errors.append((file, error))
    if errors:
        raise ConfigValidationError(errors)
    return configs


__all__ = [
    "AppConfig",
    "CalibrationSettings",
    "ConfigValidationError",
    "EvolutionSettings",
    "MonteCarloSettings",
    "collect_and_validate",
    "discover_config_files",
    "load_config",
]
