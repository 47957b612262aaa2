"""
End-to-end pipelines for ligand activity analysis.

This module provides complete workflows that integrate multiple modules:

- LigandPrioritizationPipeline: From multi-source edges to ranked ligands
  and their signaling paths
- evaluate_hyperparameters: Fitness function for hyperparameter optimization
  against validation settings

Example Usage:
    from pipelines import LigandPrioritizationPipeline, PrioritizationConfig

    pipeline = LigandPrioritizationPipeline(PrioritizationConfig(output_dir="results"))
    result = pipeline.run(edge_store, geneset, background)

    from pipelines import ValidationSetting, evaluate_hyperparameters
    fitness = evaluate_hyperparameters(edge_store, hyperparameters, settings)
"""

from pipelines.ligand_prioritization import (
    HyperparameterConfig,
    HyperparameterFitness,
    LigandPrioritizationPipeline,
    LigandPrioritizationResult,
    PrioritizationConfig,
    SignalingPathConfig,
    ValidationSetting,
    evaluate_hyperparameters,
    run_ligand_prioritization,
)

__all__ = [
    "HyperparameterConfig",
    "HyperparameterFitness",
    "LigandPrioritizationPipeline",
    "LigandPrioritizationResult",
    "PrioritizationConfig",
    "SignalingPathConfig",
    "ValidationSetting",
    "evaluate_hyperparameters",
    "run_ligand_prioritization",
]
