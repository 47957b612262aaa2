"""
Module 01: Network Data

Raw interaction edges for the ligand-receptor, signaling and gene-regulatory
layers, plus the error kinds shared by the whole framework.

Components:
- EdgeStore: Per-source edge collection with provenance look-ups
- load_edges_from_file / load_gene_list: Tab-separated input readers

Example Usage:
    from modules.01_network_data import EdgeStore, NetworkLayer

    store = EdgeStore.from_records(
        [("TGFB1", "TGFBR2", "omnipath"), ("TGFBR2", "SMAD3", "kegg")],
        layer=NetworkLayer.SIGNALING,
    )
"""

import sys
from pathlib import Path

# Add module directory to path to handle numeric prefix in module name
_module_dir = Path(__file__).parent
if str(_module_dir) not in sys.path:
    sys.path.insert(0, str(_module_dir))

from network_errors import (
    ConfigurationError,
    ConvergenceWarning,
    EmptyGeneSetError,
    EmptyGraphError,
    InvalidInputError,
    InvalidParameterError,
    LigandNetworkError,
    UnknownNodeError,
)

from edge_store import (
    Edge,
    EdgeStore,
    NetworkLayer,
    load_edges_from_file,
    load_gene_list,
)

__all__ = [
    # Errors
    "LigandNetworkError",
    "ConfigurationError",
    "InvalidParameterError",
    "UnknownNodeError",
    "EmptyGraphError",
    "EmptyGeneSetError",
    "InvalidInputError",
    "ConvergenceWarning",
    # Edges
    "Edge",
    "EdgeStore",
    "NetworkLayer",
    "load_edges_from_file",
    "load_gene_list",
]
