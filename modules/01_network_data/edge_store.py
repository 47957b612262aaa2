"""
Edge Store

Normalizes raw directed interaction tables from multiple data sources into a
single collection of typed edges. Each edge keeps the data source that
reported it, so that contributions from different sources for the same node
pair stay additive and can later be traced back for provenance.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union
import logging
import math

import pandas as pd

import sys
_module_dir = Path(__file__).parent
if str(_module_dir) not in sys.path:
    sys.path.insert(0, str(_module_dir))

from network_errors import InvalidInputError

logger = logging.getLogger(__name__)


class NetworkLayer(Enum):
    """Biological layer an interaction belongs to."""

    LIGAND_RECEPTOR = "ligand_receptor"
    SIGNALING = "signaling"
    GENE_REGULATORY = "gene_regulatory"

    @property
    def is_signaling(self) -> bool:
        """Ligand-receptor and intracellular signaling edges propagate together."""
        return self in (NetworkLayer.LIGAND_RECEPTOR, NetworkLayer.SIGNALING)

    @classmethod
    def parse(cls, value: Union[str, "NetworkLayer"]) -> "NetworkLayer":
        """Accept enum members, values ("gene_regulatory") or short names ("gr")."""
        if isinstance(value, cls):
            return value
        aliases = {"lr": cls.LIGAND_RECEPTOR, "sig": cls.SIGNALING, "gr": cls.GENE_REGULATORY}
        key = str(value).strip().lower()
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            raise InvalidInputError(f"Unknown network layer: {value}")


@dataclass(frozen=True)
class Edge:
    """A directed interaction reported by one data source."""

    source: str
    target: str
    weight: float
    data_source: str
    layer: NetworkLayer  # Strings such as "gene_regulatory" or "gr" are parsed

    def __post_init__(self):
        object.__setattr__(self, "layer", NetworkLayer.parse(self.layer))
        try:
            weight = float(self.weight)
        except (TypeError, ValueError):
            weight = float("nan")
        if not math.isfinite(weight):
            raise InvalidInputError(
                f"Edge {self.source}->{self.target} ({self.data_source}) "
                f"has non-finite weight: {self.weight}"
            )
        object.__setattr__(self, "weight", weight)
        if self.weight < 0:
            raise InvalidInputError(
                f"Edge {self.source}->{self.target} ({self.data_source}) "
                f"has negative weight: {self.weight}"
            )

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.source, self.target)


class EdgeStore:
    """
    Collection of raw edges across the ligand-receptor, signaling and
    gene-regulatory layers.

    Edges are never merged here: two sources reporting the same pair stay two
    entries. Merging with per-source weights is the job of the integrator.
    """

    def __init__(self, edges: Optional[Iterable[Edge]] = None):
        self._edges: List[Edge] = []
        if edges is not None:
            self.add_edges(edges)

    def __len__(self) -> int:
        return len(self._edges)

    def __iter__(self) -> Iterator[Edge]:
        return iter(self._edges)

    def add_edge(
        self,
        source: str,
        target: str,
        data_source: str,
        layer: Union[str, NetworkLayer],
        weight: float = 1.0,
    ) -> None:
        """Add a single edge."""
        self._edges.append(
            Edge(
                source=source,
                target=target,
                weight=weight,
                data_source=data_source,
                layer=NetworkLayer.parse(layer),
            )
        )

    def add_edges(self, edges: Iterable[Edge]) -> "EdgeStore":
        """
        Add pre-built edges.

        Returns:
            Self for chaining
        """
        for edge in edges:
            if not isinstance(edge, Edge):
                raise InvalidInputError(f"Expected Edge, got {type(edge).__name__}")
            self._edges.append(edge)
        return self

    @classmethod
    def from_records(
        cls,
        records: Iterable[Any],
        layer: Union[str, NetworkLayer],
    ) -> "EdgeStore":
        """
        Build a store from raw rows of one layer.

        Rows are either (from, to, source[, weight]) tuples or dicts with
        "from", "to", "source" and optional "weight" keys. Rows with a blank
        node identifier are dropped. A weight that is given but blank
        defaults to 1.0 with a logged warning.

        Args:
            records: Raw rows
            layer: Layer all rows belong to

        Returns:
            EdgeStore
        """
        layer = NetworkLayer.parse(layer)
        store = cls()
        n_dropped = 0
        n_blank_weights = 0

        for record in records:
            if isinstance(record, dict):
                source = record.get("from")
                target = record.get("to")
                data_source = record.get("source")
                weight = record.get("weight", 1.0)
            else:
                if len(record) < 3:
                    raise InvalidInputError(f"Edge record needs from, to, source: {record!r}")
                source, target, data_source = record[0], record[1], record[2]
                weight = record[3] if len(record) > 3 else 1.0

            if _is_blank(source) or _is_blank(target):
                n_dropped += 1
                continue
            if _is_blank(data_source):
                raise InvalidInputError(f"Edge {source}->{target} has no data source")
            if _is_blank(weight):
                n_blank_weights += 1
                weight = 1.0

            store.add_edge(str(source), str(target), str(data_source), layer, weight)

        if n_dropped:
            logger.warning(f"Dropped {n_dropped} {layer.value} edges with blank node identifiers")
        if n_blank_weights:
            logger.warning(
                f"{n_blank_weights} {layer.value} edges have a blank weight; using 1.0"
            )

        logger.info(f"Loaded {len(store)} {layer.value} edges")
        return store

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        layer: Union[str, NetworkLayer],
        from_col: str = "from",
        to_col: str = "to",
        source_col: str = "source",
        weight_col: str = "weight",
    ) -> "EdgeStore":
        """
        Build a store from a DataFrame of one layer.

        Args:
            df: Table with from/to/source columns and an optional weight column
            layer: Layer all rows belong to
            from_col: Column holding the source node
            to_col: Column holding the target node
            source_col: Column holding the data source identifier
            weight_col: Optional column holding raw edge weights

        Returns:
            EdgeStore
        """
        missing = [c for c in (from_col, to_col, source_col) if c not in df.columns]
        if missing:
            raise InvalidInputError(f"Edge table is missing columns: {missing}")

        has_weight = weight_col in df.columns
        records = [
            {
                "from": row[from_col],
                "to": row[to_col],
                "source": row[source_col],
                "weight": row[weight_col] if has_weight else 1.0,
            }
            for row in df.to_dict("records")
        ]
        return cls.from_records(records, layer)

    def merge(self, other: "EdgeStore") -> "EdgeStore":
        """Return a new store holding the edges of both stores."""
        return EdgeStore(list(self._edges) + list(other))

    def edges(self, layer: Optional[Union[str, NetworkLayer]] = None) -> List[Edge]:
        """Get edges, optionally restricted to one layer."""
        if layer is None:
            return list(self._edges)
        layer = NetworkLayer.parse(layer)
        return [e for e in self._edges if e.layer == layer]

    def sources(self, layer: Optional[Union[str, NetworkLayer]] = None) -> Set[str]:
        """Get the data source identifiers referenced by edges."""
        return {e.data_source for e in self.edges(layer)}

    def nodes(self, layer: Optional[Union[str, NetworkLayer]] = None) -> Set[str]:
        """Get all node identifiers touched by edges."""
        result: Set[str] = set()
        for edge in self.edges(layer):
            result.add(edge.source)
            result.add(edge.target)
        return result

    def filter_sources(self, keep: Iterable[str]) -> "EdgeStore":
        """Return a new store restricted to the given data sources."""
        keep_set = set(keep)
        return EdgeStore(e for e in self._edges if e.data_source in keep_set)

    def pairs(
        self,
        layer: Optional[Union[str, NetworkLayer]] = None,
    ) -> Dict[Tuple[str, str], List[Edge]]:
        """
        Group edges by ordered node pair.

        Args:
            layer: Optional layer restriction

        Returns:
            Dict mapping (from, to) to every edge reporting that pair
        """
        grouped: Dict[Tuple[str, str], List[Edge]] = defaultdict(list)
        for edge in self.edges(layer):
            grouped[edge.pair].append(edge)
        return dict(grouped)

    def supporting_edges(
        self,
        source: str,
        target: str,
        layers: Optional[Iterable[Union[str, NetworkLayer]]] = None,
    ) -> List[Edge]:
        """Get every raw edge reporting exactly source -> target."""
        layer_set = None
        if layers is not None:
            layer_set = {NetworkLayer.parse(layer) for layer in layers}
        return [
            e for e in self._edges
            if e.source == source and e.target == target
            and (layer_set is None or e.layer in layer_set)
        ]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Convert to a DataFrame.

        Returns:
            DataFrame with columns from, to, source, weight, layer
        """
        return pd.DataFrame(
            [
                {
                    "from": e.source,
                    "to": e.target,
                    "source": e.data_source,
                    "weight": e.weight,
                    "layer": e.layer.value,
                }
                for e in self._edges
            ],
            columns=["from", "to", "source", "weight", "layer"],
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get per-layer edge and source counts."""
        stats: Dict[str, Any] = {"n_edges": len(self._edges), "layers": {}}
        for layer in NetworkLayer:
            layer_edges = self.edges(layer)
            stats["layers"][layer.value] = {
                "n_edges": len(layer_edges),
                "n_sources": len({e.data_source for e in layer_edges}),
                "n_nodes": len(self.nodes(layer)),
            }
        return stats


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip() == ""


def load_edges_from_file(
    file_path: Union[str, Path],
    layer: Union[str, NetworkLayer],
    sep: str = "\t",
) -> EdgeStore:
    """
    Load one layer of edges from a delimited file.

    The file needs a header with from, to and source columns; a weight
    column is optional.

    Args:
        file_path: Path to the edge table
        layer: Layer the edges belong to
        sep: Column separator

    Returns:
        EdgeStore
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Edge file not found: {path}")

    df = pd.read_csv(path, sep=sep, dtype={"from": str, "to": str, "source": str})
    store = EdgeStore.from_dataframe(df, layer)
    logger.info(f"Loaded {len(store)} edges from {path}")
    return store


def load_gene_list(file_path: Union[str, Path]) -> List[str]:
    """
    Load a gene list with one identifier per line.

    Blank lines and lines starting with '#' are skipped; duplicates are
    removed while keeping first-seen order.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Gene list not found: {path}")

    genes: List[str] = []
    seen: Set[str] = set()
    with open(path, "r") as f:
        for line in f:
            gene = line.strip()
            if not gene or gene.startswith("#"):
                continue
            if gene not in seen:
                seen.add(gene)
                genes.append(gene)

    logger.info(f"Loaded {len(genes)} genes from {path}")
    return genes
