"""
Tests for the Ligand Prioritization Pipeline.

These tests run the pipeline end to end on a small two-ligand network.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add project root to path
_project_root = Path(__file__).parent.parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from pipelines.ligand_prioritization import (
    EdgeStore,
    HyperparameterConfig,
    HyperparameterFitness,
    InvalidInputError,
    InvalidParameterError,
    LigandPrioritizationPipeline,
    LigandPrioritizationResult,
    PathCost,
    PrioritizationConfig,
    PropagationMethod,
    SignalingPathConfig,
    ValidationSetting,
    evaluate_hyperparameters,
    run_ligand_prioritization,
)

BACKGROUND = ["g1", "g2", "g3", "g4", "g5", "g6"]


@pytest.fixture
def edge_store():
    """Two ligands, each reaching its own pair of genes."""
    store = EdgeStore()
    store.add_edge("LA", "RA", "lr_db", "lr")
    store.add_edge("LB", "RB", "lr_db", "lr")
    store.add_edge("RA", "TFA", "sig_db", "sig")
    store.add_edge("RB", "TFB", "sig_db", "sig")
    for tf, gene in [("TFA", "g1"), ("TFA", "g2"), ("TFB", "g3"), ("TFB", "g4"),
                     ("TFC", "g5"), ("TFC", "g6")]:
        store.add_edge(tf, gene, "gr_db", "gr")
    return store


@pytest.fixture
def hyperparameters():
    return HyperparameterConfig(
        source_weights={"lr_db": 1.0, "sig_db": 1.0, "gr_db": 1.0},
        damping_factor=0.5,
    )


class TestHyperparameterConfig:
    """Tests for HyperparameterConfig."""

    def test_from_dict(self):
        config = HyperparameterConfig.from_dict({
            "source_weights": {"a": 1},
            "algorithm": "hub_corrected",
            "damping_factor": 0.3,
            "output_dir": "ignored",
        })
        assert config.algorithm == PropagationMethod.HUB_CORRECTED
        assert config.source_weights == {"a": 1.0}
        assert config.damping_factor == 0.3

    def test_unknown_algorithm(self):
        with pytest.raises(InvalidParameterError):
            HyperparameterConfig.from_dict({"algorithm": "magic"})

    def test_component_configs(self, hyperparameters):
        propagation = hyperparameters.propagation_config(n_jobs=2)
        assert propagation.damping_factor == 0.5
        assert propagation.n_jobs == 2
        integration = hyperparameters.integration_config()
        assert integration.source_weights == hyperparameters.source_weights

    def test_to_dict(self, hyperparameters):
        data = hyperparameters.to_dict()
        assert data["algorithm"] == "ppr"
        assert HyperparameterConfig.from_dict(data) == hyperparameters

    def test_path_config_from_dict(self):
        config = SignalingPathConfig.from_dict({"cost": "neglog", "top_ligands": 2})
        assert config.cost == PathCost.NEG_LOG
        assert config.extraction_config().cost == PathCost.NEG_LOG


class TestLigandPrioritizationPipeline:
    """Tests for LigandPrioritizationPipeline.run."""

    def test_ranks_true_ligand_first(self, edge_store, hyperparameters):
        config = PrioritizationConfig(hyperparameters=hyperparameters, verbose=False)
        result = LigandPrioritizationPipeline(config).run(
            edge_store, ["g1", "g2"], BACKGROUND
        )

        assert isinstance(result, LigandPrioritizationResult)
        assert result.top_ligands == ["LA", "LB"]
        top = result.activities.get("LA")
        assert top.auroc == pytest.approx(1.0)
        assert top.aupr_corrected == pytest.approx(1.0 - 2 / 6)

    def test_signaling_paths_for_top_ligand(self, edge_store, hyperparameters):
        config = PrioritizationConfig(hyperparameters=hyperparameters, verbose=False)
        result = LigandPrioritizationPipeline(config).run(
            edge_store, ["g1", "g2"], BACKGROUND
        )

        assert set(result.signaling_networks) == {"LA"}
        subnetwork = result.signaling_networks["LA"]
        assert {(s, t) for s, t, _ in subnetwork.signaling_edges} == {("LA", "RA"), ("RA", "TFA")}
        assert set(result.datasources["LA"]["source_database"]) == {"lr_db", "sig_db", "gr_db"}

    def test_paths_disabled(self, edge_store, hyperparameters):
        config = PrioritizationConfig(
            hyperparameters=hyperparameters,
            paths=SignalingPathConfig(enabled=False),
            verbose=False,
        )
        result = LigandPrioritizationPipeline(config).run(edge_store, ["g1", "g2"], BACKGROUND)
        assert result.signaling_networks == {}

    def test_absent_ligands_skipped(self, edge_store, hyperparameters):
        config = PrioritizationConfig(hyperparameters=hyperparameters, verbose=False)
        result = LigandPrioritizationPipeline(config).run(
            edge_store, ["g1", "g2"], BACKGROUND, potential_ligands=["LA", "LZ"]
        )
        assert result.skipped_ligands == ["LZ"]
        assert result.activities.ligands == ["LA"]

    def test_no_ligand_in_network(self, edge_store, hyperparameters):
        config = PrioritizationConfig(hyperparameters=hyperparameters, verbose=False)
        with pytest.raises(InvalidInputError):
            LigandPrioritizationPipeline(config).run(
                edge_store, ["g1"], BACKGROUND, potential_ligands=["LZ"]
            )

    def test_null_distribution(self, edge_store, hyperparameters):
        config = PrioritizationConfig(
            hyperparameters=hyperparameters, n_null_iterations=20, verbose=False
        )
        first = LigandPrioritizationPipeline(config).run(edge_store, ["g1", "g2"], BACKGROUND)
        second = LigandPrioritizationPipeline(config).run(edge_store, ["g1", "g2"], BACKGROUND)
        assert first.null_aupr_corrected.shape == (20,)
        np.testing.assert_array_equal(first.null_aupr_corrected, second.null_aupr_corrected)
        assert "RANDOM BACKGROUND" in first.summary

    def test_saves_outputs(self, edge_store, hyperparameters, tmp_path):
        config = PrioritizationConfig(
            hyperparameters=hyperparameters, output_dir=str(tmp_path), verbose=False
        )
        LigandPrioritizationPipeline(config).run(edge_store, ["g1", "g2"], BACKGROUND + ["gX"])

        for name in [
            "ligand_activities.tsv",
            "ligand_target_matrix.tsv",
            "signaling_edges.tsv",
            "signaling_datasources.tsv",
            "summary.txt",
        ]:
            assert (tmp_path / name).exists()

        matrix = pd.read_csv(tmp_path / "ligand_target_matrix.tsv", sep="\t", index_col=0)
        assert list(matrix.columns) == BACKGROUND
        edges = pd.read_csv(tmp_path / "signaling_edges.tsv", sep="\t")
        assert set(edges["ligand"]) == {"LA"}

    def test_summary(self, edge_store, hyperparameters):
        config = PrioritizationConfig(hyperparameters=hyperparameters, verbose=False)
        result = LigandPrioritizationPipeline(config).run(edge_store, ["g1", "g2"], BACKGROUND)
        summary = result.summary
        assert "LIGAND PRIORITIZATION RESULTS" in summary
        assert "#1 LA" in summary

    def test_convenience_function(self, edge_store):
        result = run_ligand_prioritization(
            edge_store, ["g3", "g4"], BACKGROUND, damping_factor=0.8
        )
        assert result.top_ligands[0] == "LB"
        assert result.ligand_target_matrix.metadata["damping_factor"] == 0.8


class TestEvaluateHyperparameters:
    """Tests for the hyperparameter fitness function."""

    @pytest.fixture
    def settings(self):
        return [
            ValidationSetting("LA", ["g1", "g2"], BACKGROUND, name="LA_treatment"),
            ValidationSetting("LB", ["g3", "g4"], BACKGROUND),
        ]

    def test_fitness_values(self, edge_store, hyperparameters, settings):
        fitness = evaluate_hyperparameters(edge_store, hyperparameters, settings)

        assert isinstance(fitness, HyperparameterFitness)
        assert fitness.mean_auroc == pytest.approx(1.0)
        assert fitness.mean_aupr_corrected == pytest.approx(1.0 - 2 / 6)
        assert fitness.mean_ligand_aupr_corrected == pytest.approx(0.5)
        assert fitness.per_setting["ligand_rank"].tolist() == [1, 1]
        assert fitness.per_setting["setting"].tolist() == ["LA_treatment", "LB"]

    def test_deterministic(self, edge_store, hyperparameters, settings):
        first = evaluate_hyperparameters(edge_store, hyperparameters, settings)
        second = evaluate_hyperparameters(edge_store, hyperparameters, settings, n_jobs=2)
        assert first.as_tuple() == second.as_tuple()

    def test_requires_two_ligands(self, edge_store, hyperparameters, settings):
        with pytest.raises(InvalidInputError):
            evaluate_hyperparameters(edge_store, hyperparameters, settings[:1])
