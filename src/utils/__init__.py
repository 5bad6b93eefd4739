"""utils - 通用工具"""

from .rng import make_seed, make_rng, spawn_rngs, uniform_in_bounds

__all__ = [
    "make_seed",
    "make_rng",
    "spawn_rngs",
    "uniform_in_bounds",
]
