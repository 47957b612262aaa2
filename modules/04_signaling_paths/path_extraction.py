"""
Signaling Path Extraction

Explains a ligand-target prediction by the part of the network that carries
it: the strongest regulators of each target, the shortest signaling paths
from the ligands to those regulators, and the regulator -> target edges.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union
import logging
import math

import networkx as nx
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

from network_errors import InvalidParameterError
from weighted_network import GraphLayer, WeightedNetwork

logger = logging.getLogger(__name__)

EDGE_COLUMNS = ["from", "to", "weight", "layer"]


class PathCost(Enum):
    """Conversion of edge weight to path length."""

    RECIPROCAL = "reciprocal"  # 1 / weight
    NEG_LOG = "neglog"  # -log(weight / max_weight)


@dataclass
class PathExtractionConfig:
    """Configuration for signaling path extraction."""

    top_n_regulators: int = 4  # Regulators kept per target
    cost: PathCost = PathCost.RECIPROCAL
    minmax_scaling: bool = False  # Rescale weights per layer to [0, 1]

    def validate(self) -> None:
        if self.top_n_regulators < 1:
            raise InvalidParameterError(
                f"top_n_regulators must be >= 1, got {self.top_n_regulators}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PathExtractionConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if isinstance(known.get("cost"), str):
            try:
                known["cost"] = PathCost(known["cost"].lower())
            except ValueError:
                raise InvalidParameterError(f"Unknown path cost: {known['cost']}")
        return cls(**known)


@dataclass
class SignalingNetwork:
    """
    Sub-network connecting ligands to the regulators of their targets.

    Attributes:
        ligands: Ligands the paths start from
        targets: Targets whose regulators were searched
        signaling_edges: (from, to, weight) on ligand -> regulator shortest paths
        regulatory_edges: (regulator, target, weight) edges
        regulators: Target -> selected regulators, strongest first
        regulator_potential: Target -> regulators ranked by propagation score
    """

    ligands: List[str]
    targets: List[str]
    signaling_edges: List[Tuple[str, str, float]] = field(default_factory=list)
    regulatory_edges: List[Tuple[str, str, float]] = field(default_factory=list)
    regulators: Dict[str, List[str]] = field(default_factory=dict)
    regulator_potential: Dict[str, List[Tuple[str, float]]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.signaling_edges and not self.regulatory_edges

    @property
    def n_edges(self) -> int:
        return len(self.signaling_edges) + len(self.regulatory_edges)

    @property
    def nodes(self) -> Set[str]:
        nodes = set()
        for source, target, _ in self.signaling_edges + self.regulatory_edges:
            nodes.update((source, target))
        return nodes

    def edge_keys(self) -> Set[Tuple[str, str, str]]:
        """Set of (from, to, graph layer) for every sub-network edge."""
        keys = {(s, t, GraphLayer.SIGNALING.value) for s, t, _ in self.signaling_edges}
        keys |= {(s, t, GraphLayer.REGULATORY.value) for s, t, _ in self.regulatory_edges}
        return keys

    def to_edge_table(self) -> pd.DataFrame:
        """
        Convert to a DataFrame.

        Returns:
            DataFrame with columns from, to, weight, layer
        """
        rows = [
            {"from": s, "to": t, "weight": w, "layer": GraphLayer.SIGNALING.value}
            for s, t, w in self.signaling_edges
        ]
        rows += [
            {"from": s, "to": t, "weight": w, "layer": GraphLayer.REGULATORY.value}
            for s, t, w in self.regulatory_edges
        ]
        return pd.DataFrame(rows, columns=EDGE_COLUMNS)

    def to_networkx(self) -> nx.DiGraph:
        """Export as a DiGraph with weight and layer edge attributes."""
        graph = nx.DiGraph()
        for s, t, w in self.signaling_edges:
            graph.add_edge(s, t, weight=w, layer=GraphLayer.SIGNALING.value)
        for s, t, w in self.regulatory_edges:
            graph.add_edge(s, t, weight=w, layer=GraphLayer.REGULATORY.value)
        for node in graph.nodes:
            if node in self.ligands:
                graph.nodes[node]["role"] = "ligand"
            elif node in self.targets:
                graph.nodes[node]["role"] = "target"
            else:
                graph.nodes[node]["role"] = "intermediate"
        return graph

    def export_for_graph_tools(
        self,
        output_dir: Union[str, Path],
        datasources: Optional[pd.DataFrame] = None,
    ) -> Dict[str, str]:
        """
        Write tab-separated tables for graph visualization tools.

        Args:
            output_dir: Directory for output files
            datasources: Optional table from infer_supporting_datasources

        Returns:
            Dict mapping file type to path
        """
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        files = {}
        edges_path = output_path / "edges.tsv"
        self.to_edge_table().to_csv(edges_path, sep="\t", index=False)
        files["edges"] = str(edges_path)

        if datasources is not None:
            datasources_path = output_path / "datasources.tsv"
            datasources.to_csv(datasources_path, sep="\t", index=False)
            files["datasources"] = str(datasources_path)

        logger.info(f"Exported signaling network ({self.n_edges} edges) to {output_dir}")
        return files


def rank_regulators_by_potential(
    ligand_target_matrix: Any,
    ligands: Sequence[str],
    regulators: Iterable[str],
) -> List[Tuple[str, float]]:
    """
    Order regulators by the summed regulatory potential the ligands have for them.

    Args:
        ligand_target_matrix: LigandTargetMatrix with the regulators as targets
        ligands: Ligands whose scores are summed
        regulators: Candidate regulators

    Returns:
        List of (regulator, score), descending, ties by identifier
    """
    ranked = [
        (tf, sum(ligand_target_matrix.get_score(l, tf) for l in ligands))
        for tf in set(regulators)
    ]
    return sorted(ranked, key=lambda x: (-x[1], x[0]))


class PathExtractor:
    """
    Extracts the signaling sub-network between ligands and targets.

    Path lengths are derived from integrated signaling weights so that
    strong interactions are short; all edges lying on a shortest
    ligand -> regulator path are kept.
    """

    def __init__(self, network: WeightedNetwork, config: Optional[PathExtractionConfig] = None):
        """
        Initialize path extractor.

        Args:
            network: Integrated weighted network
            config: Path extraction configuration
        """
        self.network = network
        self.config = config or PathExtractionConfig()
        self.config.validate()
        self._graph: Optional[nx.DiGraph] = None

    @property
    def cost_graph(self) -> nx.DiGraph:
        """Signaling graph with a "cost" edge attribute, built on first use."""
        if self._graph is None:
            graph = self.network.to_networkx(GraphLayer.SIGNALING)
            weights = [w for _, _, w in graph.edges(data="weight")]
            max_weight = max(weights) if weights else 1.0
            for _, _, data in graph.edges(data=True):
                data["cost"] = _edge_cost(data["weight"], max_weight, self.config.cost)
            self._graph = graph
        return self._graph

    def select_regulators(self, targets: Sequence[str], top_n: int) -> Dict[str, List[str]]:
        """Strongest regulatory-layer inputs of each target, ties by identifier."""
        return {
            target: [tf for tf, _ in self.network.regulators_of(target)[:top_n]]
            for target in targets
        }

    def extract(
        self,
        ligands: Sequence[str],
        targets: Sequence[str],
        top_n_regulators: Optional[int] = None,
        minmax_scaling: Optional[bool] = None,
        ligand_target_matrix: Any = None,
    ) -> SignalingNetwork:
        """
        Extract the signaling sub-network for ligands and targets.

        Args:
            ligands: Ligand identifiers
            targets: Target identifiers
            top_n_regulators: Override of config.top_n_regulators
            minmax_scaling: Override of config.minmax_scaling
            ligand_target_matrix: Optional LigandTargetMatrix used to rank
                each target's regulators by regulatory potential

        Returns:
            SignalingNetwork, empty when no ligand reaches any regulator

        Raises:
            UnknownNodeError: If a ligand or target is not in the network
        """
        top_n = top_n_regulators if top_n_regulators is not None else self.config.top_n_regulators
        scale = minmax_scaling if minmax_scaling is not None else self.config.minmax_scaling
        if top_n < 1:
            raise InvalidParameterError(f"top_n_regulators must be >= 1, got {top_n}")

        ligands = list(dict.fromkeys(ligands))
        targets = list(dict.fromkeys(targets))
        self.network.node_index.indices(ligands + targets, context="network")

        regulators = self.select_regulators(targets, top_n)
        candidate_tfs = sorted({tf for tfs in regulators.values() for tf in tfs})

        path_edges: Set[Tuple[str, str]] = set()
        reached: Set[str] = set()
        graph = self.cost_graph
        for ligand in ligands:
            predecessors, distances = nx.dijkstra_predecessor_and_distance(
                graph, ligand, weight="cost"
            )
            for tf in candidate_tfs:
                if tf in distances:
                    reached.add(tf)
                    path_edges |= _shortest_path_edges(predecessors, tf)

        signaling_edges = [
            (s, t, self.network.edge_weight(s, t, GraphLayer.SIGNALING))
            for s, t in sorted(path_edges)
        ]
        regulatory_edges = [
            (tf, target, self.network.edge_weight(tf, target, GraphLayer.REGULATORY))
            for target in targets
            for tf in regulators[target]
            if tf in reached
        ]

        if scale:
            signaling_edges = _minmax_scale(signaling_edges)
            regulatory_edges = _minmax_scale(regulatory_edges)

        regulator_potential = {}
        if ligand_target_matrix is not None:
            regulator_potential = {
                target: rank_regulators_by_potential(ligand_target_matrix, ligands, tfs)
                for target, tfs in regulators.items()
            }

        result = SignalingNetwork(
            ligands=ligands,
            targets=targets,
            signaling_edges=signaling_edges,
            regulatory_edges=regulatory_edges,
            regulators=regulators,
            regulator_potential=regulator_potential,
        )
        if result.is_empty:
            logger.info(f"No signaling path from {ligands} to the regulators of {targets}")
        else:
            logger.info(
                f"Extracted {len(signaling_edges)} signaling and "
                f"{len(regulatory_edges)} regulatory edges"
            )
        return result


def _edge_cost(weight: float, max_weight: float, cost: PathCost) -> float:
    if cost == PathCost.NEG_LOG:
        return -math.log(weight / max_weight)
    return 1.0 / weight


def _shortest_path_edges(
    predecessors: Dict[str, List[str]],
    node: str,
) -> Set[Tuple[str, str]]:
    """Walk the shortest-path predecessor DAG back from node to the source."""
    edges = set()
    stack = [node]
    seen = {node}
    while stack:
        current = stack.pop()
        for pred in predecessors.get(current, []):
            edges.add((pred, current))
            if pred not in seen:
                seen.add(pred)
                stack.append(pred)
    return edges


def _minmax_scale(edges: List[Tuple[str, str, float]]) -> List[Tuple[str, str, float]]:
    if not edges:
        return edges
    weights = [w for _, _, w in edges]
    low, high = min(weights), max(weights)
    if high == low:
        return [(s, t, 1.0) for s, t, _ in edges]
    return [(s, t, (w - low) / (high - low)) for s, t, w in edges]
