"""
Ligand Activity Framework

A network-based framework for predicting which ligands drive an observed
gene expression response.
"""

__version__ = "0.1.0"

from .pipeline import LigandActivityPipeline, PipelineConfig

__all__ = [
    "LigandActivityPipeline",
    "PipelineConfig",
    "__version__",
]
