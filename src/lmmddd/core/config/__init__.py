"""Configuration schemas and YAML loading."""

from .schemas import (
    AppConfig,
    CalibrationSettings,
    ConfigValidationError,
    EvolutionSettings,
    MonteCarloSettings,
    collect_and_validate,
    discover_config_files,
    load_config,
)

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
