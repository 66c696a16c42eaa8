"""Main CLI entry point for transcriptome-pipeline.

Provides the command group with global options and the run/info/stats
subcommands.
"""

import logging
import sys
from pathlib import Path

import click
import yaml

from transcriptome_pipeline import __version__
from transcriptome_pipeline.config.loader import load_config, load_config_with_overrides
from transcriptome_pipeline.errors import PipelineError
from transcriptome_pipeline.output.statistics import compute_length_statistics, format_length_block
from transcriptome_pipeline.persistence import PipelineStore
from transcriptome_pipeline.pipeline import STAGE_NAMES, run_pipeline
from transcriptome_pipeline.sequences.fasta import is_protein_input, read_fasta

logger = logging.getLogger(__name__)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def parse_overrides(ctx, param, values):
    """Turn KEY=VALUE pairs into a dict; values are parsed as YAML scalars/lists."""
    overrides = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}")
        try:
            overrides[key.strip()] = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise click.BadParameter(f"cannot parse value of {key.strip()}: {e}") from e
    return overrides


@click.group()
@click.option(
    '--config',
    type=click.Path(path_type=Path),
    default='config/default.yaml',
    help='Path to pipeline configuration YAML file'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose logging (DEBUG level)'
)
@click.version_option(__version__, prog_name='transcriptome-pipeline')
@click.pass_context
def cli(ctx, config, verbose):
    """Transcriptome-pipeline: annotate a de novo transcriptome.

    Runs expression filtering, frame selection, similarity search and
    functional annotation, and aggregates every tool's evidence into one
    record per sequence.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Verbose logging enabled")


@cli.command()
@click.pass_context
def info(ctx):
    """Display pipeline information and configuration summary."""
    config_path = ctx.obj['config_path']

    click.echo(f"Transcriptome Pipeline v{__version__}")
    click.echo(f"Config: {config_path}")
    click.echo()

    try:
        config = load_config(config_path)
    except PipelineError as e:
        click.echo(click.style(f"Error loading config: {e}", fg='red'), err=True)
        ctx.exit(1)

    click.echo(f"Config Hash: {config.config_hash()[:16]}...")
    click.echo()

    click.echo(click.style("Paths:", bold=True))
    click.echo(f"  Transcriptome: {config.transcriptome}")
    click.echo(f"  Output Directory: {config.output_dir}")
    click.echo(f"  DuckDB Path: {config.duckdb_path}")
    click.echo()

    click.echo(click.style("Stages:", bold=True))
    click.echo(f"  Expression filtering: {'on' if config.expression.enabled else 'off'}"
               f" (FPKM >= {config.expression.fpkm_threshold})")
    click.echo(f"  Frame selection: {'on' if config.frame_selection.enabled else 'off'}")
    search = config.similarity_search
    click.echo(f"  Similarity search: {'on' if search.enabled else 'off'}"
               f" ({len(search.databases)} database(s), E-value {search.evalue:g})")
    ontology = config.ontology
    click.echo(f"  Functional annotation: {'on' if ontology.enabled else 'off'}"
               f" ({', '.join(ontology.software) or 'none'}; GO levels {ontology.go_levels})")
    click.echo()

    click.echo(click.style("Executables:", bold=True))
    for name, executable in config.executables.model_dump().items():
        click.echo(f"  {name}: {executable}")

    if config.duckdb_path.exists():
        with PipelineStore(config.duckdb_path) as store:
            checkpoints = store.list_checkpoints()
        current_hash = config.config_hash()
        click.echo()
        click.echo(click.style("Checkpoints:", bold=True))
        if not checkpoints:
            click.echo("  none")
        for checkpoint in checkpoints:
            state = "current" if checkpoint["config_hash"] == current_hash else "stale"
            click.echo(f"  {checkpoint['table_name']}: {checkpoint['row_count']} rows ({state})")


@cli.command()
@click.option(
    '--overwrite',
    is_flag=True,
    help='Delete previous stage output and re-run every stage'
)
@click.option(
    '--skip-stage',
    'skip_stages',
    multiple=True,
    type=click.Choice(STAGE_NAMES),
    help='Do not run this stage (may be given more than once)'
)
@click.option(
    '--set',
    'overrides',
    multiple=True,
    metavar='KEY=VALUE',
    callback=parse_overrides,
    help='Override a config value, e.g. similarity_search.evalue=1e-10 (may be given more than once)'
)
@click.pass_context
def run(ctx, overwrite, skip_stages, overrides):
    """Run the annotation pipeline.

    Stages whose output from a previous run with the same configuration is
    still valid are not executed again; their output is parsed as if they
    had just run (use --overwrite to force execution).

    Examples:

        # Full run
        transcriptome-pipeline --config run.yaml run

        # Re-run everything, without InterProScan
        transcriptome-pipeline --config run.yaml run --overwrite --skip-stage interpro

        # Stricter E-value for this run only
        transcriptome-pipeline --config run.yaml run --set similarity_search.evalue=1e-10
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Transcriptome Annotation ===", bold=True))
    click.echo()

    try:
        if overrides:
            config = load_config_with_overrides(config_path, overrides)
        else:
            config = load_config(config_path)
        click.echo(click.style(f"  Config loaded: {config_path}", fg='green'))
        for key, value in overrides.items():
            click.echo(f"  Override: {key} = {value!r}")
        click.echo()

        result = run_pipeline(config, skip_stages=skip_stages, overwrite=overwrite or None)
    except PipelineError as e:
        logger.exception("Pipeline run failed")
        click.echo(click.style(f"Pipeline failed: {e}", fg='red'), err=True)
        sys.exit(1)

    summary = result.summary
    click.echo(click.style("=== Summary ===", bold=True))
    click.echo(f"Stages executed: {', '.join(result.executed) or 'none'}")
    click.echo(f"Stages reusing previous output: {', '.join(result.reused) or 'none'}")
    click.echo(f"Stages not run: {', '.join(result.skipped) or 'none'}")
    click.echo(f"Input sequences: {summary.total_input}")
    click.echo(f"  Removed by expression filtering: {summary.removed_expression}")
    click.echo(f"  Removed by frame selection: {summary.removed_frame_selection}")
    click.echo(f"Annotated: {summary.annotated}")
    click.echo(f"Unannotated: {summary.unannotated}")
    click.echo(f"Statistics: {result.statistics_path}")
    click.echo()
    click.echo(click.style("Pipeline complete!", fg='green', bold=True))


@cli.command()
@click.argument('fasta', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    '--full-headers',
    is_flag=True,
    help='Use the full header line as sequence identifier'
)
def stats(fasta, full_headers):
    """Print length statistics (n50, n90, ...) of a FASTA file."""
    entries = list(read_fasta(fasta, trim_headers=not full_headers))
    if not entries:
        click.echo(click.style(f"No sequences in {fasta}", fg='red'), err=True)
        sys.exit(1)

    protein = is_protein_input(entry.sequence for entry in entries)
    lengths = [len(entry.sequence) for entry in entries]
    click.echo(f"Input type: {'Protein' if protein else 'Nucleotide'}")
    click.echo(format_length_block(
        str(fasta), compute_length_statistics(lengths), "aa" if protein else "bp"
    ))


if __name__ == '__main__':
    cli()
