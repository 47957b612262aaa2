"""
Ligand-Target Matrix

Dense ligand x target regulatory-potential scores produced by propagation.
A matrix is built once per network and hyperparameter configuration and is
read-only afterwards; every transformation returns a new matrix.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union
import logging

import numpy as np
import pandas as pd

import sys
_module_dir = Path(__file__).parent
for _dep_dir in (_module_dir, _module_dir.parent / "01_network_data"):
    if str(_dep_dir) not in sys.path:
        sys.path.insert(0, str(_dep_dir))

from network_errors import InvalidInputError, InvalidParameterError, UnknownNodeError

logger = logging.getLogger(__name__)


@dataclass
class LigandTargetMatrix:
    """
    Regulatory potential of every ligand for every target.

    Attributes:
        ligands: Ligand identifiers (rows)
        targets: Target identifiers (columns)
        scores: Array of shape (n_ligands, n_targets), write-protected
        converged: Ligand -> whether propagation reached the tolerance
        empty_seeds: Ligands without outgoing signaling edges (zero rows)
        ligand_index: Mapping from ligand to row
        target_index: Mapping from target to column
        metadata: Hyperparameters and provenance
    """

    ligands: List[str]
    targets: List[str]
    scores: np.ndarray  # shape: (n_ligands, n_targets)
    converged: Dict[str, bool] = field(default_factory=dict)
    empty_seeds: Set[str] = field(default_factory=set)
    ligand_index: Dict[str, int] = field(default_factory=dict)
    target_index: Dict[str, int] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Build index mappings and freeze the score array."""
        self.ligands = list(self.ligands)
        self.targets = list(self.targets)
        scores = np.array(self.scores, dtype=float, copy=True)
        if scores.shape != (len(self.ligands), len(self.targets)):
            raise InvalidInputError(
                f"Score array shape {scores.shape} does not match "
                f"{len(self.ligands)} ligands x {len(self.targets)} targets"
            )
        scores.flags.writeable = False
        self.scores = scores

        if not self.ligand_index:
            self.ligand_index = {l: i for i, l in enumerate(self.ligands)}
        if not self.target_index:
            self.target_index = {t: i for i, t in enumerate(self.targets)}
        if len(self.ligand_index) != len(self.ligands):
            raise InvalidInputError("Ligand identifiers must be unique")
        if len(self.target_index) != len(self.targets):
            raise InvalidInputError("Target identifiers must be unique")
        if not self.converged:
            self.converged = {l: True for l in self.ligands}

    @property
    def n_ligands(self) -> int:
        return len(self.ligands)

    @property
    def n_targets(self) -> int:
        return len(self.targets)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.scores.shape

    @property
    def has_convergence_warning(self) -> bool:
        """True if propagation for any ligand stopped before converging."""
        return not all(self.converged.values())

    def has_ligand(self, ligand: str) -> bool:
        return ligand in self.ligand_index

    def has_target(self, target: str) -> bool:
        return target in self.target_index

    def get_ligand(self, ligand: str) -> np.ndarray:
        """
        Get the target score vector of a ligand.

        Raises:
            UnknownNodeError: If the ligand is not a row of the matrix
        """
        if ligand not in self.ligand_index:
            raise UnknownNodeError([ligand], context="ligand-target matrix")
        return self.scores[self.ligand_index[ligand]]

    def get_target(self, target: str) -> np.ndarray:
        """Get the scores of all ligands for one target."""
        if target not in self.target_index:
            raise UnknownNodeError([target], context="ligand-target matrix")
        return self.scores[:, self.target_index[target]]

    def get_score(self, ligand: str, target: str) -> float:
        """Get score for a ligand-target pair, 0.0 when either is absent."""
        if ligand not in self.ligand_index or target not in self.target_index:
            return 0.0
        return float(self.scores[self.ligand_index[ligand], self.target_index[target]])

    def get_top_targets(self, ligand: str, n: int = 10) -> List[Tuple[str, float]]:
        """
        Get the highest scoring targets of a ligand.

        Args:
            ligand: Ligand identifier
            n: Number of targets to return

        Returns:
            List of (target, score), descending, ties by target identifier
        """
        row = self.get_ligand(ligand)
        ranked = sorted(
            ((self.targets[j], float(row[j])) for j in np.flatnonzero(row > 0)),
            key=lambda x: (-x[1], x[0]),
        )
        return ranked[:n]

    def get_weighted_ligand_target_links(
        self,
        ligand: str,
        geneset: Iterable[str],
        n: int = 250,
    ) -> List[Tuple[str, float]]:
        """
        Top predicted targets of a ligand that are also in a gene set.

        The n best targets of the ligand are taken first and then intersected
        with the gene set, so links are only reported for strong predictions.
        """
        genes = set(geneset)
        return [(t, s) for t, s in self.get_top_targets(ligand, n) if t in genes]

    def restrict(
        self,
        ligands: Optional[Iterable[str]] = None,
        targets: Optional[Iterable[str]] = None,
    ) -> "LigandTargetMatrix":
        """
        Sub-matrix for the given ligands and/or targets (order preserved).

        Raises:
            UnknownNodeError: If any requested ligand or target is absent
        """
        lig = list(ligands) if ligands is not None else list(self.ligands)
        tgt = list(targets) if targets is not None else list(self.targets)

        missing = [l for l in lig if l not in self.ligand_index]
        missing += [t for t in tgt if t not in self.target_index]
        if missing:
            raise UnknownNodeError(missing, context="ligand-target matrix")

        rows = [self.ligand_index[l] for l in lig]
        cols = [self.target_index[t] for t in tgt]
        return LigandTargetMatrix(
            ligands=lig,
            targets=tgt,
            scores=self.scores[np.ix_(rows, cols)],
            converged={l: self.converged.get(l, True) for l in lig},
            empty_seeds={l for l in lig if l in self.empty_seeds},
            metadata=dict(self.metadata),
        )

    def normalize_rows(self) -> "LigandTargetMatrix":
        """Divide each ligand's scores by its maximum, giving values in [0, 1]."""
        maxima = self.scores.max(axis=1, keepdims=True) if self.n_targets else np.ones((self.n_ligands, 1))
        maxima = np.where(maxima > 0, maxima, 1.0)
        return LigandTargetMatrix(
            ligands=self.ligands,
            targets=self.targets,
            scores=self.scores / maxima,
            converged=dict(self.converged),
            empty_seeds=set(self.empty_seeds),
            metadata={**self.metadata, "normalized": True},
        )

    def make_discrete(
        self,
        cutoff: Optional[float] = None,
        top_n: Optional[int] = None,
        quantile: Optional[float] = None,
    ) -> "LigandTargetMatrix":
        """
        Binarize scores into predicted target / non-target.

        Exactly one criterion must be given:
            cutoff: scores >= cutoff (and > 0) are targets
            top_n: the n highest scoring targets of each ligand
            quantile: scores above the per-ligand quantile are targets

        Returns:
            New matrix with 0/1 scores
        """
        given = [c for c in (cutoff, top_n, quantile) if c is not None]
        if len(given) != 1:
            raise InvalidParameterError("Specify exactly one of cutoff, top_n or quantile")

        discrete = np.zeros_like(self.scores, dtype=float)
        if cutoff is not None:
            discrete[(self.scores >= cutoff) & (self.scores > 0)] = 1.0
        elif top_n is not None:
            if top_n < 1:
                raise InvalidParameterError(f"top_n must be >= 1, got {top_n}")
            for i in range(self.n_ligands):
                row = self.scores[i]
                # stable sort on target order keeps ties deterministic
                order = np.argsort(-row, kind="stable")[:top_n]
                order = order[row[order] > 0]
                discrete[i, order] = 1.0
        else:
            if not 0.0 <= quantile < 1.0:
                raise InvalidParameterError(f"quantile must be in [0, 1), got {quantile}")
            for i in range(self.n_ligands):
                row = self.scores[i]
                threshold = np.quantile(row, quantile) if row.size else 0.0
                discrete[i, (row > threshold) & (row > 0)] = 1.0

        return LigandTargetMatrix(
            ligands=self.ligands,
            targets=self.targets,
            scores=discrete,
            converged=dict(self.converged),
            empty_seeds=set(self.empty_seeds),
            metadata={
                **self.metadata,
                "discrete": True,
                "discretization": {"cutoff": cutoff, "top_n": top_n, "quantile": quantile},
            },
        )

    def to_dataframe(self) -> pd.DataFrame:
        """
        Convert to pandas DataFrame.

        Returns:
            DataFrame with ligands as rows, targets as columns
        """
        return pd.DataFrame(
            np.array(self.scores),
            index=pd.Index(self.ligands, name="ligand"),
            columns=self.targets,
        )

    def save_tsv(self, path: Union[str, Path]) -> None:
        """Write the matrix as a labeled tab-separated table."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_dataframe().to_csv(path, sep="\t")
        logger.info(f"Saved {self.n_ligands}x{self.n_targets} ligand-target matrix to {path}")

    @classmethod
    def load_tsv(cls, path: Union[str, Path]) -> "LigandTargetMatrix":
        """Read a matrix written by save_tsv."""
        df = pd.read_csv(path, sep="\t", index_col=0)
        return cls.from_dataframe(df)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "LigandTargetMatrix":
        """Build from a DataFrame with ligands as rows and targets as columns."""
        return cls(
            ligands=[str(l) for l in df.index],
            targets=[str(t) for t in df.columns],
            scores=df.to_numpy(dtype=float),
        )
