"""
Module 03: Regulatory Potential

Propagates ligand influence through the integrated network and collects the
results into a ligand-target matrix.

Components:
- PropagationEngine: Personalized PageRank over the signaling layer followed
  by a gene-regulatory step
- LigandTargetMatrix: Read-only ligand x target score matrix

Example Usage:
    from modules.03_regulatory_potential import PropagationConfig, PropagationEngine

    engine = PropagationEngine(network, PropagationConfig(damping_factor=0.5))
    matrix = engine.build_matrix(["TGFB1", "BMP2"])
    top = matrix.get_top_targets("TGFB1", n=20)
"""

import sys
from pathlib import Path

# Add module directory to path to handle numeric prefix in module name
_module_dir = Path(__file__).parent
if str(_module_dir) not in sys.path:
    sys.path.insert(0, str(_module_dir))

from ligand_target_matrix import LigandTargetMatrix
from propagation import (
    PropagationConfig,
    PropagationEngine,
    PropagationMethod,
    PropagationResult,
)

__all__ = [
    "LigandTargetMatrix",
    "PropagationConfig",
    "PropagationEngine",
    "PropagationMethod",
    "PropagationResult",
]
