"""
Module 05: Ligand Activity

Ranks ligands by how well their predicted targets recover a gene set.

Components:
- ActivityEvaluator: Per-ligand AUPR / AUROC / correlation against a gene set
- LigandActivityTable: Ranked results with table export
- evaluate_target_prediction: Generic score-vs-response classification metrics

Example Usage:
    from modules.05_ligand_activity import ActivityEvaluator

    evaluator = ActivityEvaluator()
    activities = evaluator.predict_ligand_activities(
        geneset=de_genes,
        background=expressed_genes,
        ligand_target_matrix=matrix,
        potential_ligands=["TGFB1", "BMP2", "IL6"],
    )
    print(activities.summary())
"""

import sys
from pathlib import Path

# Add module directory to path to handle numeric prefix in module name
_module_dir = Path(__file__).parent
if str(_module_dir) not in sys.path:
    sys.path.insert(0, str(_module_dir))

from classification_metrics import (
    PredictionPerformance,
    area_under_pr,
    correlation,
    evaluate_target_prediction,
)
from activity import (
    ActivityConfig,
    ActivityEvaluator,
    LigandActivity,
    LigandActivityTable,
)

__all__ = [
    "ActivityConfig",
    "ActivityEvaluator",
    "LigandActivity",
    "LigandActivityTable",
    "PredictionPerformance",
    "area_under_pr",
    "correlation",
    "evaluate_target_prediction",
]
