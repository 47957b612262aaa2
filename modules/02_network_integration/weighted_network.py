"""
Weighted Network Integration

Merges multi-source edge lists into one weighted directed graph per layer.
Each data source is scaled by its own weight before contributions for the
same node pair are summed; the ligand-receptor and signaling layers form the
signaling graph, the gene-regulatory layer forms the regulatory graph.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import logging

import networkx as nx
import numpy as np
import pandas as pd
import yaml
from scipy import sparse

import sys
_module_dir = Path(__file__).parent
for _dep_dir in (_module_dir, _module_dir.parent / "01_network_data"):
    if str(_dep_dir) not in sys.path:
        sys.path.insert(0, str(_dep_dir))

from network_errors import (
    ConfigurationError,
    InvalidInputError,
    InvalidParameterError,
    UnknownNodeError,
)
from edge_store import Edge, EdgeStore, NetworkLayer

logger = logging.getLogger(__name__)


class GraphLayer(Enum):
    """Layer graphs of the integrated network."""

    SIGNALING = "signaling"  # ligand-receptor + intracellular signaling
    REGULATORY = "regulatory"  # gene-regulatory
    COMBINED = "combined"  # sum of both

    @classmethod
    def for_network_layer(cls, layer: NetworkLayer) -> "GraphLayer":
        return cls.SIGNALING if layer.is_signaling else cls.REGULATORY


@dataclass
class NodeIndex:
    """Bijective mapping between node identifiers and integer indices."""

    idx_to_node: List[str]
    node_to_idx: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        if not self.node_to_idx:
            self.node_to_idx = {node: idx for idx, node in enumerate(self.idx_to_node)}
        if len(self.node_to_idx) != len(self.idx_to_node):
            raise InvalidInputError("Node identifiers must be unique")

    @classmethod
    def from_nodes(cls, nodes: Iterable[str]) -> "NodeIndex":
        """Build a stable index with nodes in sorted order."""
        return cls(idx_to_node=sorted(set(nodes)))

    def __len__(self) -> int:
        return len(self.idx_to_node)

    def __contains__(self, node: object) -> bool:
        return node in self.node_to_idx

    def get_idx(self, node_id: str) -> int:
        if node_id not in self.node_to_idx:
            raise UnknownNodeError([node_id])
        return self.node_to_idx[node_id]

    def get_node(self, idx: int) -> str:
        return self.idx_to_node[idx]

    def indices(self, node_ids: Sequence[str], context: str = "graph") -> np.ndarray:
        """
        Map identifiers to indices, reporting every missing node at once.

        Raises:
            UnknownNodeError: If any identifier is absent
        """
        missing = [n for n in node_ids if n not in self.node_to_idx]
        if missing:
            raise UnknownNodeError(missing, context=context)
        return np.array([self.node_to_idx[n] for n in node_ids], dtype=int)


class WeightedNetwork:
    """
    Integrated signaling + regulatory network.

    Both layer graphs share one NodeIndex and are stored as sparse CSR
    weight matrices (rows = source, columns = target). Instances are treated
    as immutable; transition matrices are derived on first use and cached.
    """

    def __init__(
        self,
        node_index: NodeIndex,
        signaling: sparse.spmatrix,
        regulatory: sparse.spmatrix,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        n = len(node_index)
        if signaling.shape != (n, n) or regulatory.shape != (n, n):
            raise InvalidInputError(
                f"Layer matrices must be {n}x{n}, got "
                f"{signaling.shape} and {regulatory.shape}"
            )
        self._node_index = node_index
        self._layers = {
            GraphLayer.SIGNALING: _clean(signaling),
            GraphLayer.REGULATORY: _clean(regulatory),
        }
        for layer, matrix in self._layers.items():
            if matrix.nnz and matrix.data.min() < 0:
                raise InvalidInputError(f"{layer.value} layer has negative weights")
        self._layers[GraphLayer.COMBINED] = _clean(
            self._layers[GraphLayer.SIGNALING] + self._layers[GraphLayer.REGULATORY]
        )
        self._transitions: Dict[GraphLayer, sparse.csr_matrix] = {}
        self.metadata = metadata or {}

    @property
    def node_index(self) -> NodeIndex:
        return self._node_index

    @property
    def nodes(self) -> List[str]:
        return list(self._node_index.idx_to_node)

    @property
    def n_nodes(self) -> int:
        return len(self._node_index)

    @property
    def signaling(self) -> sparse.csr_matrix:
        return self._layers[GraphLayer.SIGNALING]

    @property
    def regulatory(self) -> sparse.csr_matrix:
        return self._layers[GraphLayer.REGULATORY]

    def combined(self) -> sparse.csr_matrix:
        """Sum of the signaling and regulatory weight matrices."""
        return self._layers[GraphLayer.COMBINED]

    def layer_matrix(self, layer: Union[str, GraphLayer]) -> sparse.csr_matrix:
        return self._layers[GraphLayer(layer)]

    def n_edges(self, layer: Union[str, GraphLayer] = GraphLayer.COMBINED) -> int:
        return int(self.layer_matrix(layer).nnz)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._node_index

    def transition_matrix(self, layer: Union[str, GraphLayer]) -> sparse.csr_matrix:
        """
        Row-stochastic transition matrix of a layer.

        Rows of nodes without outgoing edges stay zero: such nodes are
        absorbing and the walk terminates there.
        """
        layer = GraphLayer(layer)
        if layer not in self._transitions:
            adj = self._layers[layer]
            row_sums = np.asarray(adj.sum(axis=1)).flatten()
            inv = np.zeros_like(row_sums)
            nonzero = row_sums > 0
            inv[nonzero] = 1.0 / row_sums[nonzero]
            self._transitions[layer] = sparse.csr_matrix(sparse.diags(inv) @ adj)
        return self._transitions[layer]

    def out_degree(
        self,
        node_id: str,
        layer: Union[str, GraphLayer] = GraphLayer.SIGNALING,
    ) -> int:
        """Number of outgoing positive-weight edges of a node."""
        idx = self._node_index.get_idx(node_id)
        matrix = self.layer_matrix(layer)
        return int(matrix.indptr[idx + 1] - matrix.indptr[idx])

    def in_degrees(self, layer: Union[str, GraphLayer] = GraphLayer.COMBINED) -> np.ndarray:
        """Number of distinct incoming neighbours per node."""
        matrix = self.layer_matrix(layer)
        return np.bincount(matrix.indices, minlength=self.n_nodes)

    def edge_weight(
        self,
        source: str,
        target: str,
        layer: Union[str, GraphLayer] = GraphLayer.COMBINED,
    ) -> float:
        """Integrated weight of source -> target, 0.0 when absent."""
        i = self._node_index.get_idx(source)
        j = self._node_index.get_idx(target)
        return float(self.layer_matrix(layer)[i, j])

    def regulators_of(self, target: str) -> List[Tuple[str, float]]:
        """
        Regulatory-layer edges into a target.

        Returns:
            List of (regulator, weight), strongest first, ties by identifier
        """
        j = self._node_index.get_idx(target)
        column = self.regulatory[:, j].tocoo()
        regulators = [
            (self._node_index.get_node(int(i)), float(w))
            for i, w in zip(column.row, column.data)
            if w > 0
        ]
        return sorted(regulators, key=lambda x: (-x[1], x[0]))

    def to_networkx(self, layer: Union[str, GraphLayer] = GraphLayer.SIGNALING) -> nx.DiGraph:
        """
        Export a layer as a NetworkX DiGraph with a "weight" edge attribute.

        Every node of the index is present, including isolated ones.
        """
        graph = nx.DiGraph()
        graph.add_nodes_from(self._node_index.idx_to_node)
        coo = self.layer_matrix(layer).tocoo()
        names = self._node_index.idx_to_node
        graph.add_weighted_edges_from(
            (names[i], names[j], float(w))
            for i, j, w in zip(coo.row, coo.col, coo.data)
            if w > 0
        )
        return graph

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the integrated network."""
        stats: Dict[str, Any] = {"n_nodes": self.n_nodes}
        for layer in GraphLayer:
            matrix = self._layers[layer]
            out_deg = np.diff(matrix.indptr)
            stats[layer.value] = {
                "n_edges": int(matrix.nnz),
                "avg_out_degree": float(np.mean(out_deg)) if self.n_nodes else 0.0,
                "max_in_degree": int(self.in_degrees(layer).max()) if self.n_nodes else 0,
                "n_absorbing": int(np.sum(out_deg == 0)),
            }
        return stats


def _clean(matrix: sparse.spmatrix) -> sparse.csr_matrix:
    result = sparse.csr_matrix(matrix, dtype=float)
    result.sum_duplicates()
    result.eliminate_zeros()
    result.sort_indices()
    return result


@dataclass
class IntegrationConfig:
    """Configuration for network integration."""

    # Per-source weights; sources missing here use default_source_weight
    source_weights: Dict[str, float] = field(default_factory=dict)
    default_source_weight: Optional[float] = None  # None -> missing sources are an error

    # Layer multipliers applied after source weighting
    lr_sig_weight: float = 1.0
    gr_weight: float = 1.0

    # Hub correction exponents (0 = no correction)
    lr_sig_hub: float = 0.0
    gr_hub: float = 0.0

    def validate(self) -> None:
        """Raise InvalidParameterError for out-of-range values."""
        negative = {s: w for s, w in self.source_weights.items() if w < 0}
        if negative:
            raise InvalidParameterError(f"Source weights must be >= 0: {negative}")
        if self.default_source_weight is not None and self.default_source_weight < 0:
            raise InvalidParameterError("default_source_weight must be >= 0")
        for name in ("lr_sig_weight", "gr_weight"):
            if getattr(self, name) < 0:
                raise InvalidParameterError(f"{name} must be >= 0")
        for name in ("lr_sig_hub", "gr_hub"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise InvalidParameterError(f"{name} must be in [0, 1], got {value}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IntegrationConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "source_weights" in known:
            known["source_weights"] = {
                str(k): float(v) for k, v in (known["source_weights"] or {}).items()
            }
        return cls(**known)


def apply_hub_correction(matrix: sparse.spmatrix, hub_factor: float) -> sparse.csr_matrix:
    """
    Down-weight edges into hub nodes.

    Each edge weight is divided by indegree(target) ** hub_factor, where the
    in-degree counts distinct incoming neighbours.

    Args:
        matrix: Weight matrix (rows = source, columns = target)
        hub_factor: Correction exponent in [0, 1]

    Returns:
        Corrected CSR matrix
    """
    matrix = _clean(matrix)
    if hub_factor == 0 or matrix.nnz == 0:
        return matrix

    in_degree = np.bincount(matrix.indices, minlength=matrix.shape[1]).astype(float)
    factors = np.ones_like(in_degree)
    has_in = in_degree > 0
    factors[has_in] = in_degree[has_in] ** (-hub_factor)
    return _clean(matrix @ sparse.diags(factors))


class NetworkIntegrator:
    """
    Builds the integrated weighted network from raw multi-source edges.

    For each ordered node pair the combined weight is the sum over sources s
    of source_weights[s] * raw_weight(s). The result is a pure function of
    the inputs.
    """

    def __init__(self, config: Optional[IntegrationConfig] = None):
        """
        Initialize integrator.

        Args:
            config: Integration configuration
        """
        self.config = config or IntegrationConfig()

    def build(
        self,
        edges: Union[EdgeStore, Iterable[Edge]],
        source_weights: Optional[Mapping[str, float]] = None,
        nodes: Optional[Iterable[str]] = None,
    ) -> WeightedNetwork:
        """
        Build the weighted network.

        Args:
            edges: EdgeStore or iterable of Edge
            source_weights: Optional override of config.source_weights
            nodes: Optional extra nodes to include without edges

        Returns:
            WeightedNetwork

        Raises:
            ConfigurationError: If an edge's source has no weight and no
                default is configured
            InvalidParameterError: For negative weights or hub factors
        """
        config = self.config
        if source_weights is not None:
            config = IntegrationConfig(
                source_weights=dict(source_weights),
                default_source_weight=config.default_source_weight,
                lr_sig_weight=config.lr_sig_weight,
                gr_weight=config.gr_weight,
                lr_sig_hub=config.lr_sig_hub,
                gr_hub=config.gr_hub,
            )
        config.validate()

        edge_list = list(edges)
        weights = self._resolve_source_weights(edge_list, config)

        node_set = {e.source for e in edge_list} | {e.target for e in edge_list}
        if nodes is not None:
            node_set.update(nodes)
        node_index = NodeIndex.from_nodes(node_set)
        n_nodes = len(node_index)

        triplets: Dict[GraphLayer, Tuple[List[int], List[int], List[float]]] = {
            GraphLayer.SIGNALING: ([], [], []),
            GraphLayer.REGULATORY: ([], [], []),
        }
        n_dropped = 0
        for edge in edge_list:
            weight = weights[edge.data_source] * edge.weight
            if weight <= 0:
                n_dropped += 1
                continue
            rows, cols, vals = triplets[GraphLayer.for_network_layer(edge.layer)]
            rows.append(node_index.node_to_idx[edge.source])
            cols.append(node_index.node_to_idx[edge.target])
            vals.append(weight)

        if n_dropped:
            logger.info(f"Dropped {n_dropped} edges with zero integrated weight")

        # COO -> CSR sums duplicate (pair, source) contributions
        layers = {
            layer: sparse.coo_matrix((vals, (rows, cols)), shape=(n_nodes, n_nodes)).tocsr()
            for layer, (rows, cols, vals) in triplets.items()
        }

        signaling = apply_hub_correction(
            layers[GraphLayer.SIGNALING], config.lr_sig_hub
        ) * config.lr_sig_weight
        regulatory = apply_hub_correction(
            layers[GraphLayer.REGULATORY], config.gr_hub
        ) * config.gr_weight

        network = WeightedNetwork(
            node_index=node_index,
            signaling=signaling,
            regulatory=regulatory,
            metadata={
                "source_weights": dict(weights),
                "lr_sig_weight": config.lr_sig_weight,
                "gr_weight": config.gr_weight,
                "lr_sig_hub": config.lr_sig_hub,
                "gr_hub": config.gr_hub,
            },
        )

        logger.info(
            f"Built network: {n_nodes} nodes, "
            f"{network.n_edges(GraphLayer.SIGNALING)} signaling edges, "
            f"{network.n_edges(GraphLayer.REGULATORY)} regulatory edges"
        )
        return network

    def _resolve_source_weights(
        self,
        edges: List[Edge],
        config: IntegrationConfig,
    ) -> Dict[str, float]:
        referenced = {e.data_source for e in edges}
        missing = sorted(referenced - set(config.source_weights))
        if missing and config.default_source_weight is None:
            raise ConfigurationError(
                f"No weight configured for data source(s): {', '.join(missing)}"
            )
        weights = {s: float(config.source_weights[s]) for s in referenced if s in config.source_weights}
        for source in missing:
            weights[source] = float(config.default_source_weight)
        if missing:
            logger.info(
                f"Using default weight {config.default_source_weight} for "
                f"{len(missing)} unlisted data sources"
            )
        return weights


def source_weights_from_dataframe(
    df: pd.DataFrame,
    source_col: str = "source",
    weight_col: str = "weight",
) -> Dict[str, float]:
    """Read a source -> weight mapping from a two-column table."""
    missing = [c for c in (source_col, weight_col) if c not in df.columns]
    if missing:
        raise InvalidInputError(f"Source weight table is missing columns: {missing}")
    return {str(s): float(w) for s, w in zip(df[source_col], df[weight_col])}


def source_weights_from_yaml(file_path: Union[str, Path]) -> Dict[str, float]:
    """
    Read a source -> weight mapping from YAML.

    Accepts either a flat mapping or one nested under "source_weights".
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Source weight file not found: {path}")
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if "source_weights" in data and isinstance(data["source_weights"], dict):
        data = data["source_weights"]
    return {str(s): float(w) for s, w in data.items()}
