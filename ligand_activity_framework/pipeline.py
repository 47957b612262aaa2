"""
File-driven ligand activity pipeline.

Reads edge tables and gene lists named in a YAML configuration, runs the
ligand prioritization pipeline and writes its tables to the output
directory.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from pipelines.ligand_prioritization import (
    ConfigurationError,
    EdgeStore,
    HyperparameterConfig,
    LigandPrioritizationPipeline,
    LigandPrioritizationResult,
    NetworkLayer,
    PrioritizationConfig,
    SignalingPathConfig,
    load_edges_from_file,
    load_gene_list,
    source_weights_from_yaml,
)

from .utils import set_global_seed

logger = logging.getLogger(__name__)

_LAYER_KEYS = {
    "ligand_receptor": NetworkLayer.LIGAND_RECEPTOR,
    "signaling": NetworkLayer.SIGNALING,
    "gene_regulatory": NetworkLayer.GENE_REGULATORY,
}


@dataclass
class PipelineConfig:
    """Configuration for a file-driven pipeline run."""

    # Edge tables per layer (from, to, source[, weight])
    ligand_receptor_edges: List[str] = field(default_factory=list)
    signaling_edges: List[str] = field(default_factory=list)
    gene_regulatory_edges: List[str] = field(default_factory=list)

    # Gene lists, one identifier per line
    geneset_path: Optional[str] = None
    background_path: Optional[str] = None
    potential_ligands_path: Optional[str] = None

    # Model
    hyperparameters: HyperparameterConfig = field(default_factory=HyperparameterConfig)
    signaling_paths: SignalingPathConfig = field(default_factory=SignalingPathConfig)
    n_null_iterations: int = 0

    # Run
    n_jobs: int = 1
    seed: int = 42
    output_dir: str = "outputs/ligand_activity"
    verbose: bool = True

    def validate(self) -> None:
        """Raise ConfigurationError for missing required entries."""
        if not self.ligand_receptor_edges and not self.signaling_edges:
            raise ConfigurationError("No ligand-receptor or signaling edge files configured")
        if not self.gene_regulatory_edges:
            raise ConfigurationError("No gene-regulatory edge files configured")
        if not self.geneset_path:
            raise ConfigurationError("No gene set file configured")
        if not self.background_path:
            raise ConfigurationError("No background gene file configured")

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        base_dir: Optional[Union[str, Path]] = None,
    ) -> "PipelineConfig":
        """
        Build from a nested mapping.

        Relative file paths are resolved against base_dir when given.
        """
        base = Path(base_dir) if base_dir is not None else None

        def resolve(path: Optional[str]) -> Optional[str]:
            if path is None:
                return None
            p = Path(path)
            if base is not None and not p.is_absolute():
                p = base / p
            return str(p)

        def resolve_all(paths: Any) -> List[str]:
            if paths is None:
                return []
            if isinstance(paths, str):
                paths = [paths]
            return [resolve(p) for p in paths]

        network = data.get("network", {}) or {}
        inputs = data.get("data", {}) or {}
        hyper_data = dict(data.get("hyperparameters", {}) or {})

        weights_file = hyper_data.pop("source_weights_file", None)
        if weights_file is not None:
            file_weights = source_weights_from_yaml(resolve(weights_file))
            hyper_data["source_weights"] = {**file_weights, **(hyper_data.get("source_weights") or {})}

        config = cls(
            ligand_receptor_edges=resolve_all(network.get("ligand_receptor")),
            signaling_edges=resolve_all(network.get("signaling")),
            gene_regulatory_edges=resolve_all(network.get("gene_regulatory")),
            geneset_path=resolve(inputs.get("geneset")),
            background_path=resolve(inputs.get("background")),
            potential_ligands_path=resolve(inputs.get("potential_ligands")),
            hyperparameters=HyperparameterConfig.from_dict(hyper_data),
            signaling_paths=SignalingPathConfig.from_dict(data.get("signaling_paths", {}) or {}),
            n_null_iterations=int(data.get("n_null_iterations", 0)),
            n_jobs=int(data.get("n_jobs", 1)),
            seed=int(data.get("seed", 42)),
            output_dir=data.get("output_dir", "outputs/ligand_activity"),
            verbose=bool(data.get("verbose", True)),
        )
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PipelineConfig":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {path}")
        return cls.from_dict(data, base_dir=path.parent)

    def prioritization_config(self) -> PrioritizationConfig:
        return PrioritizationConfig(
            hyperparameters=self.hyperparameters,
            paths=self.signaling_paths,
            n_null_iterations=self.n_null_iterations,
            n_jobs=self.n_jobs,
            verbose=self.verbose,
            random_state=self.seed,
            output_dir=self.output_dir,
        )


class LigandActivityPipeline:
    """Loads configured inputs and runs ligand prioritization."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.result: Optional[LigandPrioritizationResult] = None

    def load_edges(self) -> EdgeStore:
        """Load every configured edge table into one store."""
        store = EdgeStore()
        for key, layer in _LAYER_KEYS.items():
            for path in getattr(self.config, f"{key}_edges"):
                store = store.merge(load_edges_from_file(path, layer))
        logger.info(f"Loaded {len(store)} edges from {len(store.sources())} data sources")
        return store

    def run(self) -> LigandPrioritizationResult:
        """
        Execute the pipeline.

        Returns:
            LigandPrioritizationResult; tables are written to config.output_dir

        Raises:
            ConfigurationError: For incomplete configuration
            FileNotFoundError: For missing input files
        """
        self.config.validate()
        set_global_seed(self.config.seed)

        edge_store = self.load_edges()
        geneset = load_gene_list(self.config.geneset_path)
        background = load_gene_list(self.config.background_path)
        potential_ligands = None
        if self.config.potential_ligands_path:
            potential_ligands = load_gene_list(self.config.potential_ligands_path)

        pipeline = LigandPrioritizationPipeline(self.config.prioritization_config())
        self.result = pipeline.run(edge_store, geneset, background, potential_ligands)
        return self.result
