"""
Regulatory Potential Propagation

Computes the regulatory potential of ligands for network nodes. Influence
first spreads from the ligand through the signaling layer as a damped
random walk with restart (personalized PageRank); the resulting signaling
potential of each transcription factor then flows one step through the
gene-regulatory layer. By default only gene-regulatory targets are scored.
With secondary_targets the signaling and regulatory layers are scored as
one combined graph, including targets of targets.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple
import logging
import threading
import warnings

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import splu

import sys
from pathlib import Path
_module_dir = Path(__file__).parent
for _dep_dir in (
    _module_dir,
    _module_dir.parent / "01_network_data",
    _module_dir.parent / "02_network_integration",
):
    if str(_dep_dir) not in sys.path:
        sys.path.insert(0, str(_dep_dir))

from network_errors import ConvergenceWarning, EmptyGraphError, InvalidParameterError
from weighted_network import GraphLayer, WeightedNetwork
from ligand_target_matrix import LigandTargetMatrix

logger = logging.getLogger(__name__)


class PropagationMethod(Enum):
    """Scoring functions over the shared transition matrices."""

    PPR = "ppr"  # Personalized PageRank, iterative
    DIRECT = "direct"  # One signaling hop, no random walk
    HUB_CORRECTED = "hub_corrected"  # PPR divided by target in-degree
    EXACT = "exact"  # Closed-form PPR via sparse LU (small graphs)


@dataclass
class PropagationConfig:
    """Configuration for regulatory potential propagation."""

    method: PropagationMethod = PropagationMethod.PPR

    # Random walk parameters
    damping_factor: float = 0.5  # Probability of continuing the walk (d)
    max_iterations: int = 100  # Iteration cap
    tolerance: float = 1e-6  # L1 convergence threshold

    # Regulatory step
    ltf_cutoff: float = 0.0  # Quantile of signaling potential zeroed before regulation
    secondary_targets: bool = False  # Score the combined graph instead of regulatory targets only

    # Output processing
    normalize_scores: bool = False  # Divide each ligand's scores by their maximum
    hub_factor: float = 0.5  # Exponent for HUB_CORRECTED

    # Parallel map over ligands
    n_jobs: int = 1

    def validate(self) -> None:
        """Raise InvalidParameterError for out-of-range values."""
        if not 0.0 < self.damping_factor < 1.0:
            raise InvalidParameterError(
                f"damping_factor must be in (0, 1), got {self.damping_factor}"
            )
        if not 0.0 <= self.ltf_cutoff < 1.0:
            raise InvalidParameterError(
                f"ltf_cutoff must be in [0, 1), got {self.ltf_cutoff}"
            )
        if self.max_iterations < 1:
            raise InvalidParameterError("max_iterations must be >= 1")
        if self.tolerance <= 0:
            raise InvalidParameterError("tolerance must be > 0")
        if self.hub_factor < 0:
            raise InvalidParameterError("hub_factor must be >= 0")
        if self.n_jobs < 1:
            raise InvalidParameterError("n_jobs must be >= 1")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PropagationConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if isinstance(known.get("method"), str):
            try:
                known["method"] = PropagationMethod(known["method"].lower())
            except ValueError:
                raise InvalidParameterError(f"Unknown propagation method: {known['method']}")
        return cls(**known)


@dataclass
class PropagationResult:
    """Propagation result for one ligand seed."""

    ligand: str
    scores: np.ndarray  # Scores over all network nodes
    signaling_scores: np.ndarray  # Signaling-layer potential alone
    n_iterations: int  # Iterations used (0 for non-iterative methods)
    converged: bool  # Whether the walk reached the tolerance
    method: str
    empty_seed: bool = False  # Ligand has no outgoing signaling edges
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_scores(self, nodes: Sequence[str], min_score: float = 0.0) -> Dict[str, float]:
        """Map node identifiers to scores above min_score."""
        return {
            node: float(score)
            for node, score in zip(nodes, self.scores)
            if score > min_score
        }


class PropagationEngine:
    """
    Propagates ligand influence through the integrated network.

    For a ligand l the signaling potential is the fixed point of

        p_{k+1} = d * P^T p_k + (1 - d) * e_l

    with P the row-stochastic signaling transition matrix. Nodes without
    outgoing edges are absorbing, so the mass of p never exceeds 1.
    """

    def __init__(self, network: WeightedNetwork, config: Optional[PropagationConfig] = None):
        """
        Initialize propagation engine.

        Args:
            network: Integrated weighted network
            config: Propagation configuration

        Raises:
            InvalidParameterError: For out-of-range hyperparameters
            EmptyGraphError: If the network has no edges at all
        """
        self.config = config or PropagationConfig()
        self.config.validate()

        if network.n_edges(GraphLayer.COMBINED) == 0:
            raise EmptyGraphError("Network has no edges to propagate over")

        self.network = network
        self._sig_t = sparse.csr_matrix(network.transition_matrix(GraphLayer.SIGNALING).T)
        self._gr_t = sparse.csr_matrix(network.transition_matrix(GraphLayer.REGULATORY).T)
        self._lu = None
        self._lu_lock = threading.Lock()

    def iterate(self, ligand: str) -> Iterator[np.ndarray]:
        """
        Yield successive random-walk iterates starting from p_0 = e_l.

        Yields max_iterations + 1 vectors regardless of convergence.
        """
        seed = self._seed_vector(self.network.node_index.get_idx(ligand))
        d = self.config.damping_factor
        p = seed.copy()
        yield p
        for _ in range(self.config.max_iterations):
            p = d * (self._sig_t @ p) + (1.0 - d) * seed
            yield p

    def propagate(
        self,
        ligand: str,
        stop_event: Optional[threading.Event] = None,
    ) -> PropagationResult:
        """
        Compute the regulatory potential of one ligand.

        Args:
            ligand: Ligand node identifier
            stop_event: Optional event; when set, the walk stops and the last
                iterate is returned flagged as not converged

        Returns:
            PropagationResult

        Raises:
            UnknownNodeError: If the ligand is not in the network
        """
        config = self.config
        method = config.method
        idx = self.network.node_index.get_idx(ligand)
        n_nodes = self.network.n_nodes

        if self.network.out_degree(ligand, GraphLayer.SIGNALING) == 0:
            logger.warning(f"Ligand {ligand} has no outgoing signaling edges; returning zero scores")
            zeros = np.zeros(n_nodes)
            return PropagationResult(
                ligand=ligand,
                scores=zeros,
                signaling_scores=zeros.copy(),
                n_iterations=0,
                converged=True,
                method=method.value,
                empty_seed=True,
            )

        n_iterations = 0
        converged = True
        damping = config.damping_factor

        if method in (PropagationMethod.PPR, PropagationMethod.HUB_CORRECTED):
            signaling, n_iterations, converged = self._personalized_pagerank(ligand, stop_event)
        elif method == PropagationMethod.EXACT:
            signaling = self._exact_pagerank(idx)
        elif method == PropagationMethod.DIRECT:
            signaling = self._direct(idx)
            damping = 1.0
        else:
            raise InvalidParameterError(f"Unknown propagation method: {method}")

        targets = self._regulatory_potential(signaling, damping)
        if config.secondary_targets:
            # Combined graph: signaling nodes and targets of targets are scored too
            scores = signaling + targets
        else:
            scores = targets

        if method == PropagationMethod.HUB_CORRECTED:
            in_degree = self.network.in_degrees(GraphLayer.COMBINED).astype(float)
            scores = scores / np.maximum(in_degree, 1.0) ** config.hub_factor

        if config.normalize_scores and scores.max() > 0:
            scores = scores / scores.max()

        if not converged:
            message = (
                f"Propagation from {ligand} did not converge within "
                f"{n_iterations} iterations (tolerance {config.tolerance})"
            )
            logger.warning(message)
            warnings.warn(message, ConvergenceWarning, stacklevel=2)

        return PropagationResult(
            ligand=ligand,
            scores=scores,
            signaling_scores=signaling,
            n_iterations=n_iterations,
            converged=converged,
            method=method.value,
            metadata={
                "damping_factor": config.damping_factor,
                "ltf_cutoff": config.ltf_cutoff,
                "secondary_targets": config.secondary_targets,
            },
        )

    def build_matrix(
        self,
        ligands: Sequence[str],
        targets: Optional[Sequence[str]] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> LigandTargetMatrix:
        """
        Build the ligand-target matrix.

        Ligands are independent seeds; with n_jobs > 1 they are propagated
        on a thread pool and gathered back in input order.

        Args:
            ligands: Ligand identifiers (duplicates removed, order kept)
            targets: Optional target columns (default: every network node)
            stop_event: Optional early-abort event

        Returns:
            LigandTargetMatrix

        Raises:
            UnknownNodeError: If any ligand or target is not in the network
        """
        ligands = list(dict.fromkeys(ligands))
        node_index = self.network.node_index
        node_index.indices(ligands, context="network")
        if targets is None:
            target_list = list(node_index.idx_to_node)
        else:
            target_list = list(dict.fromkeys(targets))
        columns = node_index.indices(target_list, context="network")

        logger.info(
            f"Propagating {len(ligands)} ligands over {self.network.n_nodes} nodes "
            f"({self.config.method.value}, d={self.config.damping_factor}, "
            f"n_jobs={self.config.n_jobs})"
        )

        results = self._map(ligands, stop_event)

        if results:
            scores = np.vstack([r.scores[columns] for r in results])
        else:
            scores = np.zeros((0, len(columns)))

        n_failed = sum(1 for r in results if not r.converged)
        if n_failed:
            logger.warning(f"{n_failed}/{len(results)} ligands did not converge")

        return LigandTargetMatrix(
            ligands=ligands,
            targets=target_list,
            scores=scores,
            converged={r.ligand: r.converged for r in results},
            empty_seeds={r.ligand for r in results if r.empty_seed},
            metadata={
                "method": self.config.method.value,
                "damping_factor": self.config.damping_factor,
                "ltf_cutoff": self.config.ltf_cutoff,
                "secondary_targets": self.config.secondary_targets,
                "normalized": self.config.normalize_scores,
                "n_iterations": {r.ligand: r.n_iterations for r in results},
                "network": dict(self.network.metadata),
            },
        )

    def _map(
        self,
        ligands: List[str],
        stop_event: Optional[threading.Event],
    ) -> List[PropagationResult]:
        if self.config.n_jobs == 1 or len(ligands) < 2:
            return [self.propagate(ligand, stop_event) for ligand in ligands]

        with ThreadPoolExecutor(max_workers=self.config.n_jobs) as executor:
            return list(executor.map(lambda ligand: self.propagate(ligand, stop_event), ligands))

    def _seed_vector(self, idx: int) -> np.ndarray:
        seed = np.zeros(self.network.n_nodes)
        seed[idx] = 1.0
        return seed

    def _personalized_pagerank(
        self,
        ligand: str,
        stop_event: Optional[threading.Event],
    ) -> Tuple[np.ndarray, int, bool]:
        """
        Run iterate() until the L1 change drops below the tolerance.

        Returns:
            (signaling potential, iterations used, converged)
        """
        walk = self.iterate(ligand)
        p = next(walk)
        n_iterations = 0

        for p_new in walk:
            if stop_event is not None and stop_event.is_set():
                return p, n_iterations, False
            n_iterations += 1
            delta = np.abs(p_new - p).sum()
            p = p_new
            if delta < self.config.tolerance:
                return p, n_iterations, True

        return p, n_iterations, False

    def _exact_pagerank(self, idx: int) -> np.ndarray:
        """Solve (I - d P^T) p = (1 - d) e_l directly."""
        d = self.config.damping_factor
        with self._lu_lock:
            if self._lu is None:
                system = sparse.identity(self.network.n_nodes, format="csc") - d * self._sig_t.tocsc()
                self._lu = splu(sparse.csc_matrix(system))
        p = self._lu.solve((1.0 - d) * self._seed_vector(idx))
        return np.clip(p, 0.0, None)

    def _direct(self, idx: int) -> np.ndarray:
        """Immediate transition probabilities from the ligand."""
        transition = self.network.transition_matrix(GraphLayer.SIGNALING)
        return transition[idx].toarray().ravel()

    def _apply_ltf_cutoff(self, signaling: np.ndarray) -> np.ndarray:
        """Zero signaling potential below the ltf_cutoff quantile of its positive values."""
        cutoff = self.config.ltf_cutoff
        positive = signaling[signaling > 0]
        if cutoff <= 0 or positive.size == 0:
            return signaling
        threshold = np.quantile(positive, cutoff)
        cut = signaling.copy()
        cut[cut < threshold] = 0.0
        return cut

    def _regulatory_potential(self, signaling: np.ndarray, damping: float) -> np.ndarray:
        """Spread signaling potential over gene-regulatory edges."""
        regulators = self._apply_ltf_cutoff(signaling)
        targets = damping * (self._gr_t @ regulators)
        if self.config.secondary_targets:
            targets = targets + damping * (self._gr_t @ targets)
        return targets
