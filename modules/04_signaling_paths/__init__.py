"""
Module 04: Signaling Paths

Extracts the signaling sub-network that explains how ligands reach their
predicted targets and traces its edges back to their data sources.

Components:
- PathExtractor: Regulator selection plus weighted shortest ligand -> regulator paths
- SignalingNetwork: Extracted edges with table and graph exports
- infer_supporting_datasources: Per-edge provenance from the raw EdgeStore

Example Usage:
    from modules.04_signaling_paths import PathExtractor, infer_supporting_datasources

    extractor = PathExtractor(network)
    subnetwork = extractor.extract(["TGFB1"], ["SERPINE1", "COL1A1"])
    provenance = infer_supporting_datasources(subnetwork, edge_store)
"""

import sys
from pathlib import Path

# Add module directory to path to handle numeric prefix in module name
_module_dir = Path(__file__).parent
if str(_module_dir) not in sys.path:
    sys.path.insert(0, str(_module_dir))

from path_extraction import (
    PathCost,
    PathExtractionConfig,
    PathExtractor,
    SignalingNetwork,
    rank_regulators_by_potential,
)
from datasources import infer_supporting_datasources

__all__ = [
    "PathCost",
    "PathExtractionConfig",
    "PathExtractor",
    "SignalingNetwork",
    "infer_supporting_datasources",
    "rank_regulators_by_potential",
]
