"""LMM-DDD simulation and calibration package."""

from __future__ import annotations

import importlib
from typing import Dict

__all__ = [
    "batching",
    "calibration",
    "config",
    "core",
    "engines",
    "errors",
    "models",
]

_MODULE_ALIASES: Dict[str, str] = {
    "batching": "lmmddd.core.batching",
    "calibration": "lmmddd.calibration",
    "config": "lmmddd.core.config",
    "core": "lmmddd.core",
    "engines": "lmmddd.engines",
    "errors": "lmmddd.errors",
    "models": "lmmddd.models",
}


def __getattr__(name: str):
    if name in _MODULE_ALIASES:
        module = importlib.import_module(_MODULE_ALIASES[name])
        globals()[name] = module
        return module
    raise AttributeError(f"module 'lmmddd' has no attribute '{name}'")


def __dir__():
    return sorted(set(globals().keys()) | set(__all__))


__version__ = "0.1.0"
