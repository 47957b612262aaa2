"""
Command-line interface for the Ligand Activity Framework.

Usage:
    python -m ligand_activity_framework --config configs/example.yaml
    laf --config configs/example.yaml
"""

import sys
from pathlib import Path

import click

from pipelines.ligand_prioritization import LigandNetworkError

from . import __version__
from .pipeline import LigandActivityPipeline, PipelineConfig


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Path to YAML configuration file",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default=None,
    help="Override output directory from config",
)
@click.option(
    "--seed",
    "-s",
    type=int,
    default=None,
    help="Override random seed from config",
)
@click.option(
    "--top-ligands",
    "-n",
    type=click.IntRange(min=1),
    default=None,
    help="Number of top ligands to report and explain with signaling paths",
)
@click.option(
    "--verbose/--quiet",
    "-v/-q",
    default=True,
    help="Enable/disable verbose output",
)
@click.version_option(version=__version__, prog_name="ligand-activity-framework")
def main(config: str, output: str, seed: int, top_ligands: int, verbose: bool) -> None:
    """
    Ligand Activity Framework - Ligand Prioritization Pipeline

    Rank potential ligands by how well their predicted target genes explain
    a gene set of interest.

    Example:
        python -m ligand_activity_framework --config configs/example.yaml
    """
    click.echo(f"Ligand Activity Framework v{__version__}")
    click.echo("=" * 50)

    # Load configuration
    config_path = Path(config)
    click.echo(f"Loading config: {config_path}")

    try:
        pipeline_config = PipelineConfig.from_yaml(str(config_path))

        # Apply overrides
        if output:
            pipeline_config.output_dir = output
        if seed is not None:
            pipeline_config.seed = seed
        if top_ligands is not None:
            pipeline_config.signaling_paths.top_ligands = top_ligands
        pipeline_config.verbose = verbose

        # Run pipeline
        pipeline = LigandActivityPipeline(pipeline_config)
        result = pipeline.run()

        click.echo("")
        click.echo("Top ligands:")
        for activity in result.activities.top(top_ligands or 10):
            click.echo(f"  {activity.summary()}")
        if result.ligand_target_matrix.has_convergence_warning:
            click.echo("Warning: propagation did not converge for some ligands", err=True)

        click.echo("")
        click.echo("Pipeline completed successfully!")
        click.echo(f"Results: {pipeline_config.output_dir}")

    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except LigandNetworkError as e:
        click.echo(f"Invalid input: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Pipeline failed: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
