"""
Ligand Prioritization Pipeline

End-to-end pipeline from multi-source interaction edges to ranked ligand
activities for a gene set of interest.

This pipeline integrates:
- Module 01: Network data (edges, gene lists)
- Module 02: Network integration (source weighting, layer graphs)
- Module 03: Regulatory potential (propagation, ligand-target matrix)
- Module 04: Signaling paths (sub-network extraction, data sources)
- Module 05: Ligand activity (AUPR-based ligand ranking)

It also provides evaluate_hyperparameters, the fitness function an external
optimizer calls to score a hyperparameter set against validation data.

Example Usage:
    from pipelines import LigandPrioritizationPipeline, PrioritizationConfig

    config = PrioritizationConfig(
        hyperparameters=HyperparameterConfig(
            source_weights={"omnipath": 1.0, "kegg": 0.5},
            damping_factor=0.5,
        ),
    )
    pipeline = LigandPrioritizationPipeline(config)
    result = pipeline.run(edge_store, geneset, background, potential_ligands)
    print(result.summary)
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

# =============================================================================
# Dynamic Module Imports (handles numeric prefixes in module names)
# =============================================================================

_project_root = Path(__file__).parent.parent
_modules_dir = _project_root / "modules"


def _import_module_from_path(module_name: str, dir_name: str):
    """Import a module from a directory with numeric prefix."""
    module_path = _modules_dir / dir_name / "__init__.py"
    if not module_path.exists():
        raise ImportError(f"Module not found: {module_path}")

    # Add module directory to path for internal imports
    module_dir = str(_modules_dir / dir_name)
    if module_dir not in sys.path:
        sys.path.insert(0, module_dir)

    if module_name in sys.modules:
        return sys.modules[module_name]

    spec = importlib.util.spec_from_file_location(module_name, module_path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


# Module 01: Network Data
_mod_01 = _import_module_from_path("network_data", "01_network_data")
EdgeStore = _mod_01.EdgeStore
NetworkLayer = _mod_01.NetworkLayer
load_edges_from_file = _mod_01.load_edges_from_file
load_gene_list = _mod_01.load_gene_list
LigandNetworkError = _mod_01.LigandNetworkError
ConfigurationError = _mod_01.ConfigurationError
InvalidInputError = _mod_01.InvalidInputError
InvalidParameterError = _mod_01.InvalidParameterError
UnknownNodeError = _mod_01.UnknownNodeError

# Module 02: Network Integration
_mod_02 = _import_module_from_path("network_integration", "02_network_integration")
IntegrationConfig = _mod_02.IntegrationConfig
NetworkIntegrator = _mod_02.NetworkIntegrator
WeightedNetwork = _mod_02.WeightedNetwork
source_weights_from_yaml = _mod_02.source_weights_from_yaml

# Module 03: Regulatory Potential
_mod_03 = _import_module_from_path("regulatory_potential", "03_regulatory_potential")
LigandTargetMatrix = _mod_03.LigandTargetMatrix
PropagationConfig = _mod_03.PropagationConfig
PropagationEngine = _mod_03.PropagationEngine
PropagationMethod = _mod_03.PropagationMethod

# Module 04: Signaling Paths
_mod_04 = _import_module_from_path("signaling_paths", "04_signaling_paths")
PathCost = _mod_04.PathCost
PathExtractionConfig = _mod_04.PathExtractionConfig
PathExtractor = _mod_04.PathExtractor
SignalingNetwork = _mod_04.SignalingNetwork
infer_supporting_datasources = _mod_04.infer_supporting_datasources

# Module 05: Ligand Activity
_mod_05 = _import_module_from_path("ligand_activity", "05_ligand_activity")
ActivityConfig = _mod_05.ActivityConfig
ActivityEvaluator = _mod_05.ActivityEvaluator
LigandActivityTable = _mod_05.LigandActivityTable
evaluate_target_prediction = _mod_05.evaluate_target_prediction

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Dataclasses
# =============================================================================

@dataclass
class HyperparameterConfig:
    """Model hyperparameters: network integration plus propagation."""

    # Network integration
    source_weights: Dict[str, float] = field(default_factory=dict)
    default_source_weight: Optional[float] = None
    lr_sig_weight: float = 1.0
    gr_weight: float = 1.0
    lr_sig_hub: float = 0.0
    gr_hub: float = 0.0

    # Propagation
    algorithm: PropagationMethod = PropagationMethod.PPR
    damping_factor: float = 0.5
    ltf_cutoff: float = 0.0
    secondary_targets: bool = False
    normalize_scores: bool = False
    hub_factor: float = 0.5
    max_iterations: int = 100
    tolerance: float = 1e-6

    def integration_config(self) -> IntegrationConfig:
        return IntegrationConfig(
            source_weights=dict(self.source_weights),
            default_source_weight=self.default_source_weight,
            lr_sig_weight=self.lr_sig_weight,
            gr_weight=self.gr_weight,
            lr_sig_hub=self.lr_sig_hub,
            gr_hub=self.gr_hub,
        )

    def propagation_config(self, n_jobs: int = 1) -> PropagationConfig:
        return PropagationConfig(
            method=self.algorithm,
            damping_factor=self.damping_factor,
            ltf_cutoff=self.ltf_cutoff,
            secondary_targets=self.secondary_targets,
            normalize_scores=self.normalize_scores,
            hub_factor=self.hub_factor,
            max_iterations=self.max_iterations,
            tolerance=self.tolerance,
            n_jobs=n_jobs,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["algorithm"] = self.algorithm.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HyperparameterConfig:
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if isinstance(known.get("algorithm"), str):
            try:
                known["algorithm"] = PropagationMethod(known["algorithm"].lower())
            except ValueError:
                raise InvalidParameterError(f"Unknown propagation algorithm: {known['algorithm']}")
        if "source_weights" in known:
            known["source_weights"] = {
                str(k): float(v) for k, v in (known["source_weights"] or {}).items()
            }
        return cls(**known)


@dataclass
class SignalingPathConfig:
    """Configuration for explaining the top ligands."""

    enabled: bool = True
    top_ligands: int = 1  # Ligands to extract signaling paths for
    top_n_targets: int = 250  # Best predicted targets intersected with the gene set
    top_n_regulators: int = 4
    cost: PathCost = PathCost.RECIPROCAL
    minmax_scaling: bool = False

    def extraction_config(self) -> PathExtractionConfig:
        return PathExtractionConfig(
            top_n_regulators=self.top_n_regulators,
            cost=self.cost,
            minmax_scaling=self.minmax_scaling,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SignalingPathConfig:
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if isinstance(known.get("cost"), str):
            try:
                known["cost"] = PathCost(known["cost"].lower())
            except ValueError:
                raise InvalidParameterError(f"Unknown path cost: {known['cost']}")
        return cls(**known)


@dataclass
class PrioritizationConfig:
    """Complete pipeline configuration."""

    hyperparameters: HyperparameterConfig = field(default_factory=HyperparameterConfig)
    paths: SignalingPathConfig = field(default_factory=SignalingPathConfig)

    # Random-background null distribution (0 disables)
    n_null_iterations: int = 0

    # Pipeline behavior
    n_jobs: int = 1
    verbose: bool = True
    random_state: int = 42

    # Output
    output_dir: Optional[str] = None


# =============================================================================
# Pipeline Result
# =============================================================================

@dataclass
class LigandPrioritizationResult:
    """Complete results from the ligand prioritization pipeline."""

    # Core results
    activities: LigandActivityTable
    ligand_target_matrix: LigandTargetMatrix

    # Explanations of the top ligands
    signaling_networks: Dict[str, SignalingNetwork] = field(default_factory=dict)
    datasources: Dict[str, pd.DataFrame] = field(default_factory=dict)

    # Optional null distribution of aupr_corrected
    null_aupr_corrected: Optional[np.ndarray] = None

    # Metadata
    network_stats: Dict[str, Any] = field(default_factory=dict)
    skipped_ligands: List[str] = field(default_factory=list)
    config: Optional[PrioritizationConfig] = None
    runtime_seconds: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def top_ligands(self) -> List[str]:
        return self.activities.ligands[:10]

    @property
    def summary(self) -> str:
        """Generate a summary of the pipeline results."""
        lines = [
            "=" * 60,
            "LIGAND PRIORITIZATION RESULTS",
            "=" * 60,
            f"Timestamp: {self.timestamp}",
            f"Runtime: {self.runtime_seconds:.1f} seconds",
            "",
            "NETWORK:",
            f"  Nodes: {self.network_stats.get('n_nodes', 'N/A')}",
            f"  Signaling edges: {self.network_stats.get('signaling', {}).get('n_edges', 'N/A')}",
            f"  Regulatory edges: {self.network_stats.get('regulatory', {}).get('n_edges', 'N/A')}",
            "",
            "LIGAND ACTIVITY:",
            f"  Ligands scored: {len(self.activities)}",
            f"  Gene set: {self.activities.geneset_size} of "
            f"{self.activities.background_size} background genes",
        ]

        lines.append("  Top ligands:")
        for activity in self.activities.top(10):
            lines.append(f"    {activity.summary()}")

        if self.null_aupr_corrected is not None and len(self.null_aupr_corrected):
            lines.extend([
                "",
                "RANDOM BACKGROUND:",
                f"  Mean aupr_corrected: {np.mean(self.null_aupr_corrected):.4f}",
                f"  95th percentile: {np.percentile(self.null_aupr_corrected, 95):.4f}",
            ])

        if self.signaling_networks:
            lines.extend(["", "SIGNALING PATHS:"])
            for ligand, network in self.signaling_networks.items():
                lines.append(f"  {ligand}: {network.n_edges} edges")

        if self.ligand_target_matrix.has_convergence_warning:
            lines.extend(["", "WARNING: Propagation did not converge for some ligands"])

        lines.append("=" * 60)
        return "\n".join(lines)


# =============================================================================
# Main Pipeline
# =============================================================================

class LigandPrioritizationPipeline:
    """
    End-to-end pipeline for ligand activity prediction.

    Builds the integrated network, computes the ligand-target matrix, ranks
    the potential ligands against the gene set and extracts the signaling
    paths of the best ligands.
    """

    def __init__(self, config: Optional[PrioritizationConfig] = None):
        """
        Initialize the pipeline.

        Args:
            config: Complete pipeline configuration
        """
        self.config = config or PrioritizationConfig()
        self._setup_logging()

    def _setup_logging(self) -> None:
        """Configure logging based on verbosity setting."""
        level = logging.INFO if self.config.verbose else logging.WARNING
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    def run(
        self,
        edge_store: EdgeStore,
        geneset: Iterable[str],
        background: Iterable[str],
        potential_ligands: Optional[Sequence[str]] = None,
        targets: Optional[Sequence[str]] = None,
    ) -> LigandPrioritizationResult:
        """
        Execute the complete ligand prioritization pipeline.

        Args:
            edge_store: Raw multi-source edges
            geneset: Genes of interest
            background: Background genes
            potential_ligands: Ligands to rank (default: every ligand-receptor source node)
            targets: Matrix columns (default: background genes in the network)

        Returns:
            LigandPrioritizationResult with all pipeline outputs
        """
        start_time = datetime.now()
        logger.info("Starting ligand prioritization pipeline")
        hyper = self.config.hyperparameters
        geneset = list(dict.fromkeys(geneset))
        background = list(dict.fromkeys(background))

        # Step 1: Build network
        logger.info("Step 1: Integrating network")
        network = NetworkIntegrator(hyper.integration_config()).build(edge_store)

        # Step 2: Select ligands and targets
        logger.info("Step 2: Selecting ligands and targets")
        ligands, skipped = self._select_ligands(edge_store, network, potential_ligands)
        if targets is None:
            targets = [g for g in background if network.has_node(g)]

        # Step 3: Regulatory potential
        logger.info("Step 3: Computing ligand-target matrix")
        engine = PropagationEngine(network, hyper.propagation_config(self.config.n_jobs))
        matrix = engine.build_matrix(ligands, targets)

        # Step 4: Ligand activity
        logger.info("Step 4: Predicting ligand activities")
        evaluator = ActivityEvaluator(ActivityConfig(n_jobs=self.config.n_jobs))
        activities = evaluator.predict_ligand_activities(geneset, background, matrix, ligands)

        null = None
        if self.config.n_null_iterations > 0:
            logger.info("Step 4b: Sampling random-background null distribution")
            null = evaluator.get_random_background_auprs(
                activities.geneset_size,
                activities.background_size,
                n_iterations=self.config.n_null_iterations,
                rng=np.random.default_rng(self.config.random_state),
            )

        # Step 5: Signaling paths (optional)
        signaling_networks: Dict[str, SignalingNetwork] = {}
        datasources: Dict[str, pd.DataFrame] = {}
        if self.config.paths.enabled:
            logger.info("Step 5: Extracting signaling paths")
            signaling_networks, datasources = self._extract_paths(
                network, edge_store, matrix, activities, geneset
            )

        result = LigandPrioritizationResult(
            activities=activities,
            ligand_target_matrix=matrix,
            signaling_networks=signaling_networks,
            datasources=datasources,
            null_aupr_corrected=null,
            network_stats=network.get_stats(),
            skipped_ligands=skipped,
            config=self.config,
            runtime_seconds=(datetime.now() - start_time).total_seconds(),
        )

        if self.config.output_dir:
            self._save_results(result)

        logger.info(f"Pipeline complete in {result.runtime_seconds:.1f} seconds")
        return result

    # =========================================================================
    # Steps
    # =========================================================================

    def _select_ligands(
        self,
        edge_store: EdgeStore,
        network: WeightedNetwork,
        potential_ligands: Optional[Sequence[str]],
    ) -> Tuple[List[str], List[str]]:
        """Keep potential ligands present in the network."""
        if potential_ligands is None:
            potential_ligands = sorted(
                {e.source for e in edge_store.edges(NetworkLayer.LIGAND_RECEPTOR)}
            )
        potential_ligands = list(dict.fromkeys(potential_ligands))
        ligands = [l for l in potential_ligands if network.has_node(l)]
        skipped = [l for l in potential_ligands if not network.has_node(l)]
        if skipped:
            logger.warning(f"Skipping {len(skipped)} potential ligands absent from the network")
        if not ligands:
            raise InvalidInputError("None of the potential ligands is in the network")
        return ligands, skipped

    def _extract_paths(
        self,
        network: WeightedNetwork,
        edge_store: EdgeStore,
        matrix: LigandTargetMatrix,
        activities: LigandActivityTable,
        geneset: List[str],
    ) -> Tuple[Dict[str, SignalingNetwork], Dict[str, pd.DataFrame]]:
        paths_config = self.config.paths
        extractor = PathExtractor(network, paths_config.extraction_config())
        signaling_networks = {}
        datasources = {}
        for activity in activities.top(paths_config.top_ligands):
            ligand = activity.ligand_id
            links = matrix.get_weighted_ligand_target_links(
                ligand, geneset, n=paths_config.top_n_targets
            )
            if not links:
                logger.info(f"No predicted gene set targets for {ligand}; no paths extracted")
                continue
            subnetwork = extractor.extract(
                [ligand], [t for t, _ in links], ligand_target_matrix=matrix
            )
            signaling_networks[ligand] = subnetwork
            datasources[ligand] = infer_supporting_datasources(subnetwork, edge_store)
        return signaling_networks, datasources

    # =========================================================================
    # Utilities
    # =========================================================================

    def _save_results(self, result: LigandPrioritizationResult) -> None:
        """Save pipeline results to output directory."""
        output_dir = Path(self.config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        result.activities.save_tsv(output_dir / "ligand_activities.tsv")
        result.ligand_target_matrix.save_tsv(output_dir / "ligand_target_matrix.tsv")

        if result.signaling_networks:
            edges = pd.concat(
                [
                    net.to_edge_table().assign(ligand=ligand)
                    for ligand, net in result.signaling_networks.items()
                ],
                ignore_index=True,
            )
            edges.to_csv(output_dir / "signaling_edges.tsv", sep="\t", index=False)

            sources = pd.concat(
                [df.assign(ligand=ligand) for ligand, df in result.datasources.items()],
                ignore_index=True,
            )
            sources.to_csv(output_dir / "signaling_datasources.tsv", sep="\t", index=False)

        # Save summary
        with open(output_dir / "summary.txt", "w") as f:
            f.write(result.summary)

        logger.info(f"Results saved to {output_dir}")


# =============================================================================
# Hyperparameter Fitness
# =============================================================================

@dataclass
class ValidationSetting:
    """A known ligand treatment and the genes it changed."""

    ligand: str
    response_genes: List[str]
    background: List[str]
    name: str = ""


@dataclass
class HyperparameterFitness:
    """Fitness of one hyperparameter set across validation settings."""

    mean_aupr_corrected: float  # Target prediction
    mean_auroc: float  # Target prediction
    mean_ligand_aupr_corrected: float  # True-ligand recovery among all ligands
    per_setting: pd.DataFrame = field(default_factory=pd.DataFrame)

    def as_tuple(self) -> Tuple[float, float, float]:
        """Objective values for an external multi-objective optimizer."""
        return (self.mean_aupr_corrected, self.mean_auroc, self.mean_ligand_aupr_corrected)


def evaluate_hyperparameters(
    edge_store: EdgeStore,
    hyperparameters: HyperparameterConfig,
    validation_settings: Sequence[ValidationSetting],
    n_jobs: int = 1,
) -> HyperparameterFitness:
    """
    Score a hyperparameter set against validation settings.

    For each setting the true ligand's regulatory potential is evaluated as a
    predictor of the response genes, and every validation ligand is ranked
    by activity to see how well the true ligand is recovered. The function is
    deterministic in its inputs.

    Args:
        edge_store: Raw multi-source edges
        hyperparameters: Hyperparameters to evaluate
        validation_settings: Settings with distinct ligands (at least two)
        n_jobs: Threads for propagation and activity scoring

    Returns:
        HyperparameterFitness

    Raises:
        InvalidInputError: If fewer than two distinct ligands are given
        UnknownNodeError: If a validation ligand is not in the network
    """
    ligands = sorted({s.ligand for s in validation_settings})
    if len(ligands) < 2:
        raise InvalidInputError("Validation settings must cover at least two ligands")

    network = NetworkIntegrator(hyperparameters.integration_config()).build(edge_store)
    engine = PropagationEngine(network, hyperparameters.propagation_config(n_jobs))
    matrix = engine.build_matrix(ligands)
    evaluator = ActivityEvaluator(ActivityConfig(n_jobs=n_jobs))

    rows = []
    for setting in validation_settings:
        background = [g for g in dict.fromkeys(setting.background) if matrix.has_target(g)]
        response_genes = set(setting.response_genes)
        response = np.array([g in response_genes for g in background], dtype=bool)
        scores = matrix.restrict(ligands=[setting.ligand], targets=background).scores[0]
        target_perf = evaluate_target_prediction(response, scores)

        activities = evaluator.predict_ligand_activities(
            [g for g in setting.response_genes if g in set(background)],
            background,
            matrix,
            ligands,
        )
        ordered = activities.ligands
        ligand_perf = evaluate_target_prediction(
            np.array([l == setting.ligand for l in ordered], dtype=bool),
            np.array([activities.get(l).aupr_corrected for l in ordered]),
        )
        rows.append({
            "setting": setting.name or setting.ligand,
            "ligand": setting.ligand,
            "aupr_corrected": target_perf.aupr_corrected,
            "auroc": target_perf.auroc,
            "ligand_aupr_corrected": ligand_perf.aupr_corrected,
            "ligand_rank": ordered.index(setting.ligand) + 1,
        })

    per_setting = pd.DataFrame(rows)
    fitness = HyperparameterFitness(
        mean_aupr_corrected=float(per_setting["aupr_corrected"].mean()),
        mean_auroc=float(per_setting["auroc"].mean()),
        mean_ligand_aupr_corrected=float(per_setting["ligand_aupr_corrected"].mean()),
        per_setting=per_setting,
    )
    logger.info(
        f"Hyperparameter fitness: aupr_corrected={fitness.mean_aupr_corrected:.4f}, "
        f"auroc={fitness.mean_auroc:.4f}, "
        f"ligand_aupr_corrected={fitness.mean_ligand_aupr_corrected:.4f}"
    )
    return fitness


# =============================================================================
# Convenience Functions
# =============================================================================

def run_ligand_prioritization(
    edge_store: EdgeStore,
    geneset: Iterable[str],
    background: Iterable[str],
    potential_ligands: Optional[Sequence[str]] = None,
    source_weights: Optional[Dict[str, float]] = None,
    output_dir: Optional[str] = None,
    **kwargs: Any,
) -> LigandPrioritizationResult:
    """
    Convenience function to run ligand prioritization with minimal configuration.

    Args:
        edge_store: Raw multi-source edges
        geneset: Genes of interest
        background: Background genes
        potential_ligands: Ligands to rank
        source_weights: Per-source weights (unlisted sources weighted 1.0)
        output_dir: Optional output directory
        **kwargs: Additional hyperparameters (e.g. damping_factor)

    Returns:
        LigandPrioritizationResult with pipeline outputs
    """
    hyperparameters = HyperparameterConfig(
        source_weights=dict(source_weights or {}),
        default_source_weight=1.0,
    )

    # Apply any additional kwargs
    for key, value in kwargs.items():
        if hasattr(hyperparameters, key):
            setattr(hyperparameters, key, value)

    config = PrioritizationConfig(hyperparameters=hyperparameters, output_dir=output_dir)
    pipeline = LigandPrioritizationPipeline(config)
    return pipeline.run(edge_store, geneset, background, potential_ligands)
