"""Path generation engines for the LMM-DDD."""

from .discounting import initial_forwards_from_discount_factors, numeraire_rebased_discount_factors
from .lmm_evolution import (
    DEFAULT_MAX_JUMP,
    EvolutionConfig,
    evolve_at,
    evolve_at_each,
    generate_paths,
    sub_step_times,
)

__all__ = [
    "DEFAULT_MAX_JUMP",
    "EvolutionConfig",
    "evolve_at",
    "evolve_at_each",
    "generate_paths",
    "initial_forwards_from_discount_factors",
    "numeraire_rebased_discount_factors",
    "sub_step_times",
]
