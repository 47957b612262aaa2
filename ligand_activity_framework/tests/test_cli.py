"""
Tests for the command-line interface and file-driven pipeline.
"""

import sys
from pathlib import Path

import pandas as pd
import pytest
import yaml
from click.testing import CliRunner

_project_root = Path(__file__).parent.parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from ligand_activity_framework import LigandActivityPipeline, PipelineConfig, __version__
from ligand_activity_framework.cli import main
from ligand_activity_framework.utils import get_rng, set_global_seed
from pipelines.ligand_prioritization import ConfigurationError, PropagationMethod


def write_inputs(directory: Path, geneset=("G1", "G2")) -> Path:
    """Write a small network and gene lists, return the config path."""
    (directory / "lr.tsv").write_text(
        "from\tto\tsource\nLA\tRA\tdb1\nLB\tRB\tdb1\n"
    )
    (directory / "sig.tsv").write_text(
        "from\tto\tsource\tweight\nRA\tTFA\tdb2\t1.0\nRB\tTFB\tdb2\t2.0\n"
    )
    (directory / "gr.tsv").write_text(
        "from\tto\tsource\nTFA\tG1\tdb3\nTFA\tG2\tdb3\nTFB\tG3\tdb3\nTFB\tG4\tdb3\n"
    )
    (directory / "geneset.txt").write_text("\n".join(geneset) + "\n")
    (directory / "background.txt").write_text("G1\nG2\nG3\nG4\n")
    (directory / "weights.yaml").write_text("source_weights:\n  db1: 1.0\n  db2: 0.5\n")

    config = {
        "network": {
            "ligand_receptor": "lr.tsv",
            "signaling": ["sig.tsv"],
            "gene_regulatory": ["gr.tsv"],
        },
        "data": {"geneset": "geneset.txt", "background": "background.txt"},
        "hyperparameters": {
            "source_weights_file": "weights.yaml",
            "source_weights": {"db3": 1.0},
            "damping_factor": 0.5,
        },
        "output_dir": str(directory / "out"),
        "verbose": False,
    }
    path = directory / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


class TestPipelineConfig:
    """Tests for PipelineConfig loading."""

    def test_from_yaml_resolves_paths(self, tmp_path):
        config = PipelineConfig.from_yaml(write_inputs(tmp_path))
        assert config.ligand_receptor_edges == [str(tmp_path / "lr.tsv")]
        assert config.geneset_path == str(tmp_path / "geneset.txt")
        assert config.potential_ligands_path is None
        assert config.hyperparameters.algorithm == PropagationMethod.PPR

    def test_source_weights_file_merged(self, tmp_path):
        config = PipelineConfig.from_yaml(write_inputs(tmp_path))
        assert config.hyperparameters.source_weights == {"db1": 1.0, "db2": 0.5, "db3": 1.0}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            PipelineConfig.from_yaml(tmp_path / "nope.yaml")

    def test_validate_requires_geneset(self):
        config = PipelineConfig(
            signaling_edges=["sig.tsv"],
            gene_regulatory_edges=["gr.tsv"],
            background_path="bg.txt",
        )
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_example_config_loads(self):
        example = _project_root / "configs" / "example.yaml"
        config = PipelineConfig.from_yaml(example)
        config.validate()
        assert Path(config.geneset_path).exists()


class TestLigandActivityPipeline:
    """Tests for LigandActivityPipeline."""

    def test_run_writes_outputs(self, tmp_path):
        config = PipelineConfig.from_yaml(write_inputs(tmp_path))
        result = LigandActivityPipeline(config).run()

        assert result.activities.ligands[0] == "LA"
        out = tmp_path / "out"
        activities = pd.read_csv(out / "ligand_activities.tsv", sep="\t")
        assert activities["ligand_id"].tolist() == ["LA", "LB"]
        assert (out / "signaling_edges.tsv").exists()
        assert (out / "signaling_datasources.tsv").exists()


class TestCLI:
    """Tests for the click command."""

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_run(self, tmp_path):
        config_path = write_inputs(tmp_path)
        result = CliRunner().invoke(
            main, ["--config", str(config_path), "--quiet", "--top-ligands", "2"]
        )
        assert result.exit_code == 0, result.output
        assert "#1 LA" in result.output
        assert "Pipeline completed successfully!" in result.output

    def test_output_override(self, tmp_path):
        config_path = write_inputs(tmp_path)
        override = tmp_path / "elsewhere"
        result = CliRunner().invoke(
            main, ["-c", str(config_path), "-o", str(override), "-q"]
        )
        assert result.exit_code == 0, result.output
        assert (override / "ligand_activities.tsv").exists()

    def test_invalid_input_exits_nonzero(self, tmp_path):
        config_path = write_inputs(tmp_path, geneset=("G1", "NOT_IN_BACKGROUND"))
        result = CliRunner().invoke(main, ["--config", str(config_path), "--quiet"])
        assert result.exit_code == 1
        assert "Invalid input" in result.output

    def test_missing_config(self, tmp_path):
        result = CliRunner().invoke(main, ["--config", str(tmp_path / "nope.yaml")])
        assert result.exit_code != 0


class TestSeed:
    """Tests for seed utilities."""

    def test_global_seed_drives_rng(self):
        set_global_seed(7)
        first = get_rng().random(3)
        set_global_seed(7)
        second = get_rng().random(3)
        assert (first == second).all()

    def test_explicit_seed(self):
        assert get_rng(1).random() == get_rng(1).random()
