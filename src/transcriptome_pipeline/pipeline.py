"""Run controller: load the transcriptome, run stages in order, write final outputs."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from transcriptome_pipeline.config.schema import PipelineConfig
from transcriptome_pipeline.errors import ConfigurationError
from transcriptome_pipeline.lookup import DuckDBLookup, TaxonomyLookup
from transcriptome_pipeline.output.headers import (
    EGGNOG_HEADERS,
    INTERPRO_HEADERS,
    SIMILARITY_HEADERS,
    Header,
    HeaderContext,
    ordered,
)
from transcriptome_pipeline.output.report import (
    FinalSummary,
    StatisticsReport,
    final_statistics,
    input_statistics,
)
from transcriptome_pipeline.persistence import PipelineStore, ProvenanceTracker
from transcriptome_pipeline.sequences.selection import SelectionPolicy
from transcriptome_pipeline.sequences.store import SequenceStore
from transcriptome_pipeline.stages.base import PipelineContext, StageModule, run_stage
from transcriptome_pipeline.stages.expression import ExpressionStage
from transcriptome_pipeline.stages.frame_selection import FrameSelectionStage
from transcriptome_pipeline.stages.functional_annotation import (
    EggnogStage,
    GeneOntologyResolver,
    InterproStage,
)
from transcriptome_pipeline.stages.similarity_search import SimilaritySearchStage

logger = logging.getLogger(__name__)

# Names accepted by --skip-stage, in execution order
STAGE_NAMES = ("expression", "frame_selection", "similarity_search", "eggnog", "interpro")

FINAL_DIRECTORY = "final_results"
# Parquet copies of the stage tables, under FINAL_DIRECTORY
TABLES_DIRECTORY = "tables"


@dataclass
class Lookups:
    """Lookup services configured for the run (None when not configured)."""

    taxonomy: Optional[TaxonomyLookup] = None
    eggnog: Optional[DuckDBLookup] = None
    go: GeneOntologyResolver = field(default_factory=lambda: GeneOntologyResolver(None))


@dataclass
class RunResult:
    """
    Outcome of a completed run.

    Attributes:
        summary: Final annotation counts
        executed: Stages whose external tool ran
        reused: Stages that reused output of a previous run
        skipped: Stages not run (disabled, skipped or not applicable)
        statistics_path: Run-level statistics log
    """

    summary: FinalSummary
    executed: list[str]
    reused: list[str]
    skipped: list[str]
    statistics_path: Path


def build_lookups(config: PipelineConfig, pipeline_store: PipelineStore) -> Lookups:
    """Register configured lookup TSV files as DuckDB views."""
    lookups = Lookups()
    paths = config.lookups
    if paths.taxonomy is not None:
        lookups.taxonomy = TaxonomyLookup(
            DuckDBLookup.from_tsv(pipeline_store, paths.taxonomy, "lookup_taxonomy", "species", case_insensitive=True)
        )
    if paths.gene_ontology is not None:
        lookups.go = GeneOntologyResolver(
            DuckDBLookup.from_tsv(pipeline_store, paths.gene_ontology, "lookup_gene_ontology", "go_id")
        )
    if paths.eggnog is not None:
        lookups.eggnog = DuckDBLookup.from_tsv(pipeline_store, paths.eggnog, "lookup_eggnog", "seed_ortholog")
    return lookups


def plan_stages(
    context: PipelineContext,
    lookups: Lookups,
    skip_stages: Iterable[str] = (),
) -> tuple[list[StageModule], list[str]]:
    """
    Stages to run, in order, and the names of those left out.

    Frame selection only applies to nucleotide input.

    Raises:
        ConfigurationError: Unknown stage name in skip_stages, or InterProScan
            would receive nucleotide sequences because frame selection is off
    """
    skip = set(skip_stages)
    unknown = skip - set(STAGE_NAMES)
    if unknown:
        raise ConfigurationError(
            f"Unknown stage(s) {', '.join(sorted(unknown))}; choose from {', '.join(STAGE_NAMES)}"
        )

    config = context.config
    ontology = config.ontology
    enabled = {
        "expression": config.expression.enabled,
        "frame_selection": config.frame_selection.enabled and not context.store.is_protein,
        "similarity_search": config.similarity_search.enabled,
        "eggnog": ontology.enabled and "eggnog" in ontology.software,
        "interpro": ontology.enabled and "interpro" in ontology.software,
    }
    factories = {
        "expression": lambda: ExpressionStage(context),
        "frame_selection": lambda: FrameSelectionStage(context),
        "similarity_search": lambda: SimilaritySearchStage(context, lookups.taxonomy),
        "eggnog": lambda: EggnogStage(context, lookups.eggnog, lookups.go),
        "interpro": lambda: InterproStage(context, lookups.go),
    }

    planned = [name for name in STAGE_NAMES if enabled[name] and name not in skip]
    if "interpro" in planned and "frame_selection" not in planned and not context.store.is_protein:
        raise ConfigurationError(
            "InterProScan needs protein sequences: use protein input or enable frame selection"
        )

    modules = [factories[name]() for name in planned]
    left_out = [name for name in STAGE_NAMES if name not in planned]
    return modules, left_out


def final_headers(config: PipelineConfig) -> list[Header]:
    """Columns of the final annotation tables for the enabled stages."""
    headers = [Header.QUERY, Header.FRAME, Header.FPKM]
    if config.similarity_search.enabled:
        headers += SIMILARITY_HEADERS
    if config.ontology.enabled and "eggnog" in config.ontology.software:
        headers += EGGNOG_HEADERS
    if config.ontology.enabled and "interpro" in config.ontology.software:
        headers += INTERPRO_HEADERS
    return ordered(headers)


def run_pipeline(
    config: PipelineConfig,
    skip_stages: Iterable[str] = (),
    overwrite: Optional[bool] = None,
) -> RunResult:
    """
    Run every enabled stage and write the final outputs.

    Args:
        config: Validated configuration
        skip_stages: Stage names (STAGE_NAMES) not to run
        overwrite: Override config.overwrite

    Returns:
        RunResult describing the run

    Raises:
        PipelineError: Any fatal stage failure (outputs of the failing stage
            are removed before it propagates)
    """
    config.check_paths()
    overwrite = config.overwrite if overwrite is None else overwrite

    store = SequenceStore.from_fasta(config.transcriptome, trim_headers=config.output.trim_headers)
    report = StatisticsReport(config.output_dir)
    input_statistics(store, report, config.transcriptome)
    logger.info(f"Loaded {len(store)} sequences from {config.transcriptome}")

    pipeline_store = PipelineStore.from_config(config)
    provenance = ProvenanceTracker.from_config(config)
    policy = SelectionPolicy.from_config(config)
    try:
        lookups = build_lookups(config, pipeline_store)
        context = PipelineContext(config, store, pipeline_store, provenance, report, policy)
        modules, left_out = plan_stages(context, lookups, skip_stages)

        executed: list[str] = []
        reused: list[str] = []
        for module in modules:
            logger.info(f"Running stage {module.name}")
            if run_stage(module, overwrite=overwrite):
                reused.append(module.name)
            else:
                executed.append(module.name)

        final_dir = config.output_dir / FINAL_DIRECTORY
        summary = final_statistics(
            store,
            report,
            final_dir,
            final_headers(config),
            config.output.formats,
            go_levels=config.ontology.go_levels,
            context=HeaderContext(policy=policy),
            config_hash=provenance.config_hash,
        )
        for module in modules:
            table_path = final_dir / TABLES_DIRECTORY / f"{module.table_name}.parquet"
            pipeline_store.export_parquet(module.table_name, table_path)
            logger.debug(f"Exported {module.table_name} to {table_path}")
        provenance.record_step("final_statistics", {
            "annotated": summary.annotated,
            "unannotated": summary.unannotated,
        })
        sidecar = provenance.save_sidecar(final_dir / "pipeline_run")
        provenance.save_to_store(pipeline_store)
        logger.info(f"Provenance written to {sidecar}")
    finally:
        pipeline_store.close()

    return RunResult(
        summary=summary,
        executed=executed,
        reused=reused,
        skipped=left_out,
        statistics_path=report.path,
    )
