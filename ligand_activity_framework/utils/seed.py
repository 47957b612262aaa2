"""Random seed handling for reproducible runs."""

import random
from typing import Optional

import numpy as np

_GLOBAL_SEED: Optional[int] = None


def set_global_seed(seed: int) -> None:
    """Seed Python's and NumPy's global generators."""
    global _GLOBAL_SEED
    _GLOBAL_SEED = seed
    random.seed(seed)
    np.random.seed(seed)


def get_rng(seed: Optional[int] = None) -> np.random.Generator:
    """
    Get a NumPy Generator.

    Uses the given seed, else the last global seed, else fresh entropy.
    """
    if seed is None:
        seed = _GLOBAL_SEED
    return np.random.default_rng(seed)
