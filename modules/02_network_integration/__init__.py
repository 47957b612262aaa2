"""
Module 02: Network Integration

Merges multi-source edges into the integrated weighted network used by
propagation and path extraction.

Components:
- NetworkIntegrator: Applies per-source weights, layer multipliers and hub
  correction to raw edges
- WeightedNetwork: Sparse signaling / regulatory layer graphs over one NodeIndex

Example Usage:
    from modules.02_network_integration import IntegrationConfig, NetworkIntegrator

    integrator = NetworkIntegrator(IntegrationConfig(
        source_weights={"omnipath": 1.0, "kegg": 0.5, "chip_seq": 0.8},
    ))
    network = integrator.build(edge_store)
"""

import sys
from pathlib import Path

# Add module directory to path to handle numeric prefix in module name
_module_dir = Path(__file__).parent
if str(_module_dir) not in sys.path:
    sys.path.insert(0, str(_module_dir))

from weighted_network import (
    GraphLayer,
    IntegrationConfig,
    NetworkIntegrator,
    NodeIndex,
    WeightedNetwork,
    apply_hub_correction,
    source_weights_from_dataframe,
    source_weights_from_yaml,
)

__all__ = [
    "GraphLayer",
    "IntegrationConfig",
    "NetworkIntegrator",
    "NodeIndex",
    "WeightedNetwork",
    "apply_hub_correction",
    "source_weights_from_dataframe",
    "source_weights_from_yaml",
]
