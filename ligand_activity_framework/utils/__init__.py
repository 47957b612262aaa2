"""Utility modules for the ligand activity framework."""

from .seed import set_global_seed, get_rng

__all__ = ["set_global_seed", "get_rng"]
