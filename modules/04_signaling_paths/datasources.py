"""
Supporting Data Sources

Traces each edge of an extracted signaling network back to the raw data
sources that report it.
"""

from pathlib import Path
import logging

import pandas as pd

import sys
_module_dir = Path(__file__).parent
for _dep_dir in (
    _module_dir,
    _module_dir.parent / "01_network_data",
    _module_dir.parent / "02_network_integration",
):
    if str(_dep_dir) not in sys.path:
        sys.path.insert(0, str(_dep_dir))

from edge_store import EdgeStore, NetworkLayer
from weighted_network import GraphLayer
from path_extraction import SignalingNetwork

logger = logging.getLogger(__name__)

DATASOURCE_COLUMNS = ["from", "to", "source_database", "layer"]

_LAYERS_BY_GRAPH = {
    GraphLayer.SIGNALING.value: [NetworkLayer.LIGAND_RECEPTOR, NetworkLayer.SIGNALING],
    GraphLayer.REGULATORY.value: [NetworkLayer.GENE_REGULATORY],
}


def infer_supporting_datasources(
    signaling_network: SignalingNetwork,
    edge_store: EdgeStore,
) -> pd.DataFrame:
    """
    List the data sources supporting each sub-network edge.

    Only raw edges matching a sub-network edge exactly (same endpoints,
    same graph layer) are reported, one row per data source.

    Args:
        signaling_network: Extracted sub-network
        edge_store: Raw multi-source edges the network was built from

    Returns:
        DataFrame with columns from, to, source_database, layer
    """
    rows = []
    for source, target, graph_layer in sorted(signaling_network.edge_keys()):
        for edge in edge_store.supporting_edges(source, target, _LAYERS_BY_GRAPH[graph_layer]):
            rows.append({
                "from": edge.source,
                "to": edge.target,
                "source_database": edge.data_source,
                "layer": edge.layer.value,
            })

    df = pd.DataFrame(rows, columns=DATASOURCE_COLUMNS)
    df = df.drop_duplicates().sort_values(DATASOURCE_COLUMNS).reset_index(drop=True)
    logger.info(
        f"Found {df['source_database'].nunique()} data sources supporting "
        f"{signaling_network.n_edges} sub-network edges"
    )
    return df
