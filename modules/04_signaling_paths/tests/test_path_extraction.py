"""
Tests for Module 04: Signaling Paths

Tests regulator selection, shortest-path sub-network extraction and data
source provenance.
"""

import sys
from pathlib import Path

import networkx as nx
import numpy as np
import pandas as pd
import pytest

_module_dir = Path(__file__).parent.parent
sys.path.insert(0, str(_module_dir))
sys.path.insert(0, str(_module_dir.parent / "01_network_data"))
sys.path.insert(0, str(_module_dir.parent / "02_network_integration"))
sys.path.insert(0, str(_module_dir.parent / "03_regulatory_potential"))

from network_errors import InvalidParameterError, UnknownNodeError
from edge_store import EdgeStore
from weighted_network import IntegrationConfig, NetworkIntegrator
from ligand_target_matrix import LigandTargetMatrix
from path_extraction import (
    PathCost,
    PathExtractionConfig,
    PathExtractor,
    SignalingNetwork,
    rank_regulators_by_potential,
)
from datasources import infer_supporting_datasources


def make_store():
    store = EdgeStore()
    store.add_edge("L1", "R1", "db_a", "lr", 1.0)
    store.add_edge("L1", "R1", "db_b", "lr", 1.0)
    store.add_edge("L2", "R2", "db_a", "lr", 1.0)
    store.add_edge("R1", "TF1", "db_a", "sig", 2.0)
    store.add_edge("R1", "X", "db_a", "sig", 1.0)
    store.add_edge("X", "TF1", "db_a", "sig", 1.0)
    store.add_edge("R1", "TF3", "db_c", "sig", 1.0)
    store.add_edge("TF1", "G1", "db_g", "gr", 3.0)
    store.add_edge("TF3", "G1", "db_g", "gr", 2.0)
    store.add_edge("TF2", "G1", "db_g", "gr", 1.0)
    store.add_edge("TF2", "G2", "db_g", "gr", 1.0)
    return store


def build(store):
    return NetworkIntegrator(IntegrationConfig(default_source_weight=1.0)).build(store)


@pytest.fixture
def edge_store():
    return make_store()


@pytest.fixture
def network(edge_store):
    return build(edge_store)


def pairs(edges):
    return {(s, t) for s, t, _ in edges}


class TestPathExtractionConfig:
    """Tests for PathExtractionConfig."""

    def test_defaults(self):
        config = PathExtractionConfig()
        assert config.top_n_regulators == 4
        assert config.cost == PathCost.RECIPROCAL
        assert not config.minmax_scaling

    def test_from_dict(self):
        config = PathExtractionConfig.from_dict({"cost": "neglog", "top_n_regulators": 2})
        assert config.cost == PathCost.NEG_LOG
        assert config.top_n_regulators == 2

    def test_invalid_top_n(self, network):
        with pytest.raises(InvalidParameterError):
            PathExtractor(network, PathExtractionConfig(top_n_regulators=0))


class TestPathExtractor:
    """Tests for PathExtractor.extract."""

    def test_select_regulators(self, network):
        regulators = PathExtractor(network).select_regulators(["G1", "G2"], top_n=2)
        assert regulators == {"G1": ["TF1", "TF3"], "G2": ["TF2"]}

    def test_extract_top_two_regulators(self, network):
        result = PathExtractor(network).extract(["L1"], ["G1"], top_n_regulators=2)

        assert isinstance(result, SignalingNetwork)
        assert pairs(result.signaling_edges) == {("L1", "R1"), ("R1", "TF1"), ("R1", "TF3")}
        assert pairs(result.regulatory_edges) == {("TF1", "G1"), ("TF3", "G1")}
        weights = {(s, t): w for s, t, w in result.signaling_edges}
        assert weights[("L1", "R1")] == pytest.approx(2.0)

    def test_longer_path_not_used(self, network):
        result = PathExtractor(network).extract(["L1"], ["G1"], top_n_regulators=1)
        assert pairs(result.signaling_edges) == {("L1", "R1"), ("R1", "TF1")}
        assert pairs(result.regulatory_edges) == {("TF1", "G1")}
        assert "X" not in result.nodes

    def test_unreachable_regulator_skipped(self, network):
        result = PathExtractor(network).extract(["L1"], ["G1"], top_n_regulators=3)
        assert result.regulators["G1"] == ["TF1", "TF3", "TF2"]
        assert ("TF2", "G1") not in pairs(result.regulatory_edges)

    def test_tied_paths_all_kept(self):
        store = EdgeStore()
        for source, target in [("A", "B"), ("A", "C"), ("B", "T"), ("C", "T")]:
            store.add_edge(source, target, "db", "sig", 1.0)
        store.add_edge("T", "G", "db", "gr", 1.0)
        result = PathExtractor(build(store)).extract(["A"], ["G"])
        assert pairs(result.signaling_edges) == {("A", "B"), ("A", "C"), ("B", "T"), ("C", "T")}

    def test_no_path_gives_empty_network(self, network):
        result = PathExtractor(network).extract(["L2"], ["G2"])
        assert result.is_empty
        assert result.to_edge_table().empty

    def test_unknown_nodes(self, network):
        with pytest.raises(UnknownNodeError) as exc_info:
            PathExtractor(network).extract(["L1", "LX"], ["G1", "GX"])
        assert exc_info.value.nodes == ["GX", "LX"]

    def test_minmax_scaling(self, network):
        result = PathExtractor(network).extract(
            ["L1"], ["G1"], top_n_regulators=2, minmax_scaling=True
        )
        signaling = {(s, t): w for s, t, w in result.signaling_edges}
        regulatory = {(s, t): w for s, t, w in result.regulatory_edges}
        assert signaling[("L1", "R1")] == pytest.approx(1.0)
        assert signaling[("R1", "TF3")] == pytest.approx(0.0)
        assert regulatory == {("TF1", "G1"): pytest.approx(1.0), ("TF3", "G1"): pytest.approx(0.0)}

    def test_neglog_cost(self, network):
        extractor = PathExtractor(network, PathExtractionConfig(cost=PathCost.NEG_LOG))
        assert extractor.cost_graph["L1"]["R1"]["cost"] == pytest.approx(0.0)
        assert extractor.cost_graph["R1"]["X"]["cost"] == pytest.approx(np.log(2.0))

        result = extractor.extract(["L1"], ["G1"], top_n_regulators=1)
        assert pairs(result.signaling_edges) == {("L1", "R1"), ("R1", "TF1")}

    def test_regulator_potential(self, network):
        matrix = LigandTargetMatrix(
            ligands=["L1"],
            targets=["TF1", "TF3"],
            scores=np.array([[0.1, 0.3]]),
        )
        result = PathExtractor(network).extract(
            ["L1"], ["G1"], top_n_regulators=2, ligand_target_matrix=matrix
        )
        assert result.regulator_potential["G1"] == [("TF3", 0.3), ("TF1", 0.1)]


class TestRankRegulators:
    """Tests for rank_regulators_by_potential."""

    def test_sums_over_ligands_and_breaks_ties(self):
        matrix = LigandTargetMatrix(
            ligands=["L1", "L2"],
            targets=["A", "B", "C"],
            scores=np.array([[0.1, 0.2, 0.0], [0.2, 0.1, 0.0]]),
        )
        ranked = rank_regulators_by_potential(matrix, ["L1", "L2"], ["C", "B", "A"])
        assert [tf for tf, _ in ranked] == ["A", "B", "C"]
        assert ranked[0][1] == pytest.approx(0.3)


class TestSignalingNetworkExport:
    """Tests for SignalingNetwork exports."""

    @pytest.fixture
    def subnetwork(self, network):
        return PathExtractor(network).extract(["L1"], ["G1"], top_n_regulators=1)

    def test_edge_table(self, subnetwork):
        table = subnetwork.to_edge_table()
        assert list(table.columns) == ["from", "to", "weight", "layer"]
        assert set(table["layer"]) == {"signaling", "regulatory"}
        assert len(table) == 3

    def test_to_networkx(self, subnetwork):
        graph = subnetwork.to_networkx()
        assert isinstance(graph, nx.DiGraph)
        assert graph.nodes["L1"]["role"] == "ligand"
        assert graph.nodes["G1"]["role"] == "target"
        assert graph.nodes["R1"]["role"] == "intermediate"
        assert graph["TF1"]["G1"]["layer"] == "regulatory"

    def test_export_for_graph_tools(self, subnetwork, edge_store, tmp_path):
        datasources = infer_supporting_datasources(subnetwork, edge_store)
        files = subnetwork.export_for_graph_tools(tmp_path / "export", datasources)

        edges = pd.read_csv(files["edges"], sep="\t")
        sources = pd.read_csv(files["datasources"], sep="\t")
        assert len(edges) == 3
        assert list(sources.columns) == ["from", "to", "source_database", "layer"]

    def test_export_without_datasources(self, subnetwork, tmp_path):
        files = subnetwork.export_for_graph_tools(tmp_path)
        assert set(files) == {"edges"}


class TestSupportingDatasources:
    """Tests for infer_supporting_datasources."""

    def test_one_row_per_source(self, network, edge_store):
        subnetwork = PathExtractor(network).extract(["L1"], ["G1"], top_n_regulators=1)
        df = infer_supporting_datasources(subnetwork, edge_store)

        rows = set(df.itertuples(index=False, name=None))
        assert rows == {
            ("L1", "R1", "db_a", "ligand_receptor"),
            ("L1", "R1", "db_b", "ligand_receptor"),
            ("R1", "TF1", "db_a", "signaling"),
            ("TF1", "G1", "db_g", "gene_regulatory"),
        }

    def test_only_subnetwork_edges(self, edge_store):
        # Same endpoints in another layer must not be reported
        edge_store.add_edge("R1", "TF1", "db_z", "gr", 1.0)
        network = build(edge_store)
        subnetwork = PathExtractor(network).extract(["L1"], ["G1"], top_n_regulators=2)
        df = infer_supporting_datasources(subnetwork, edge_store)

        allowed = {(s, t) for s, t, _ in subnetwork.edge_keys()}
        assert set(zip(df["from"], df["to"])) <= allowed
        assert "db_z" not in set(df["source_database"])

    def test_empty_subnetwork(self, network, edge_store):
        subnetwork = PathExtractor(network).extract(["L2"], ["G2"])
        df = infer_supporting_datasources(subnetwork, edge_store)
        assert df.empty
        assert list(df.columns) == ["from", "to", "source_database", "layer"]
