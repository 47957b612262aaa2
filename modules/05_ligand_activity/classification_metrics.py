"""
Classification Metrics

Evaluates a score vector as a classifier of a binary response (target gene
or not). Used for ranking ligands and for judging model hyperparameters.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional
import logging

import numpy as np
from scipy import stats
from sklearn.metrics import auc, precision_recall_curve, roc_auc_score

import sys
from pathlib import Path
_module_dir = Path(__file__).parent
for _dep_dir in (_module_dir, _module_dir.parent / "01_network_data"):
    if str(_dep_dir) not in sys.path:
        sys.path.insert(0, str(_dep_dir))

from network_errors import InvalidInputError

logger = logging.getLogger(__name__)


@dataclass
class PredictionPerformance:
    """Performance of one score vector against a binary response."""

    auroc: float  # Area under the ROC curve
    aupr: float  # Trapezoidal area under the precision-recall curve
    aupr_corrected: float  # aupr minus the positive fraction
    pearson: float  # Pearson correlation of scores and response (0 if constant)
    spearman: float  # Spearman correlation (0 if constant)
    n_positives: int
    n_total: int

    # Only set when scores are thresholded
    sensitivity: Optional[float] = None
    specificity: Optional[float] = None

    @property
    def baseline(self) -> float:
        """Expected AUPR of a random predictor."""
        return self.n_positives / self.n_total

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def area_under_pr(response: np.ndarray, scores: np.ndarray) -> float:
    """Trapezoidal area under the precision-recall curve."""
    precision, recall, _ = precision_recall_curve(response, scores)
    return float(auc(recall, precision))


def correlation(x: np.ndarray, y: np.ndarray, method: str = "pearson") -> float:
    """Pearson or Spearman correlation, 0.0 when either input is constant."""
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return 0.0
    if method == "spearman":
        value = stats.spearmanr(x, y)[0]
    else:
        value = stats.pearsonr(x, y)[0]
    return float(value) if np.isfinite(value) else 0.0


def evaluate_target_prediction(
    response: np.ndarray,
    scores: np.ndarray,
    threshold: Optional[float] = None,
) -> PredictionPerformance:
    """
    Evaluate scores as a predictor of a binary response.

    Scores without any spread carry no ranking information; they are given
    the random-predictor AUROC of 0.5 and the positive fraction as AUPR.

    Args:
        response: Boolean vector, True for positives
        scores: Prediction scores, same length
        threshold: Optional cutoff for sensitivity/specificity. Binary 0/1
            scores are thresholded at 0.5 when not given.

    Returns:
        PredictionPerformance

    Raises:
        InvalidInputError: If lengths differ or either class is missing
    """
    response = np.asarray(response, dtype=bool)
    scores = np.asarray(scores, dtype=float)
    if response.shape != scores.shape:
        raise InvalidInputError(
            f"Response and scores differ in length: {response.size} vs {scores.size}"
        )
    n_positives = int(response.sum())
    n_total = int(response.size)
    if n_positives == 0:
        raise InvalidInputError("Response has no positives")
    if n_positives == n_total:
        raise InvalidInputError("Response has no negatives")

    baseline = n_positives / n_total
    if np.ptp(scores) == 0:
        auroc = 0.5
        aupr = baseline
    else:
        auroc = float(roc_auc_score(response, scores))
        aupr = area_under_pr(response, scores)

    sensitivity = specificity = None
    if threshold is None and np.isin(scores, (0.0, 1.0)).all():
        threshold = 0.5
    if threshold is not None:
        predicted = scores >= threshold
        sensitivity = float((predicted & response).sum() / n_positives)
        specificity = float((~predicted & ~response).sum() / (n_total - n_positives))

    return PredictionPerformance(
        auroc=auroc,
        aupr=aupr,
        aupr_corrected=aupr - baseline,
        pearson=correlation(scores, response.astype(float), "pearson"),
        spearman=correlation(scores, response.astype(float), "spearman"),
        n_positives=n_positives,
        n_total=n_total,
        sensitivity=sensitivity,
        specificity=specificity,
    )
