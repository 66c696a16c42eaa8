"""Save functional annotation best hits to DuckDB with provenance tracking."""

import polars as pl
import structlog

from transcriptome_pipeline.persistence import PipelineStore, ProvenanceTracker
from transcriptome_pipeline.sequences.models import DomainScanHit, OrthologHit, Stage
from transcriptome_pipeline.sequences.selection import SelectionPolicy
from transcriptome_pipeline.sequences.store import SequenceStore
from transcriptome_pipeline.stages.functional_annotation.models import (
    EGGNOG_SOFTWARE,
    EGGNOG_TABLE_NAME,
    INTERPRO_SOFTWARE,
    INTERPRO_TABLE_NAME,
)

logger = structlog.get_logger()


def _best_hits(store: SequenceStore, software: str, policy: SelectionPolicy):
    stage = Stage.FUNCTIONAL_ANNOTATION
    for record in store:
        if record.hit_stage(stage, software):
            yield record.identifier, record.get_best_overall(stage, software, policy)


def _go_ids(hit) -> str:
    return ",".join(term.go_id for term in hit.go_terms)


def eggnog_frame(store: SequenceStore, policy: SelectionPolicy) -> pl.DataFrame:
    """One row per sequence with its best seed ortholog and orthogroup annotations."""
    rows = []
    for sequence_id, hit in _best_hits(store, EGGNOG_SOFTWARE, policy):
        rows.append({
            "sequence_id": sequence_id,
            "seed_ortholog": hit.seed_ortholog,
            "evalue": hit.evalue,
            "seed_score": hit.seed_score,
            "tax_scope": hit.tax_scope_readable,
            "predicted_gene": hit.predicted_gene,
            "member_ogs": hit.member_ogs,
            "kegg_terms": ",".join(hit.kegg_terms),
            "go_terms": _go_ids(hit),
        })
    schema = {
        "sequence_id": pl.Utf8,
        "seed_ortholog": pl.Utf8,
        "evalue": pl.Float64,
        "seed_score": pl.Float64,
        "tax_scope": pl.Utf8,
        "predicted_gene": pl.Utf8,
        "member_ogs": pl.Utf8,
        "kegg_terms": pl.Utf8,
        "go_terms": pl.Utf8,
    }
    return pl.DataFrame(rows, schema=schema)


def interpro_frame(store: SequenceStore, policy: SelectionPolicy) -> pl.DataFrame:
    """One row per sequence with its best InterProScan match."""
    rows = []
    for sequence_id, hit in _best_hits(store, INTERPRO_SOFTWARE, policy):
        rows.append({
            "sequence_id": sequence_id,
            "domain_id": hit.domain_id,
            "source_database": hit.source_database,
            "interpro_id": hit.interpro_id,
            "interpro_description": hit.interpro_description,
            "evalue": hit.evalue,
            "go_terms": _go_ids(hit),
            "pathways": ",".join(hit.pathways),
        })
    schema = {
        "sequence_id": pl.Utf8,
        "domain_id": pl.Utf8,
        "source_database": pl.Utf8,
        "interpro_id": pl.Utf8,
        "interpro_description": pl.Utf8,
        "evalue": pl.Float64,
        "go_terms": pl.Utf8,
        "pathways": pl.Utf8,
    }
    return pl.DataFrame(rows, schema=schema)


TABLES = {
    EGGNOG_SOFTWARE: (EGGNOG_TABLE_NAME, "EggNOG best seed ortholog per sequence"),
    INTERPRO_SOFTWARE: (INTERPRO_TABLE_NAME, "InterProScan best match per sequence"),
}


def load_to_duckdb(
    df: pl.DataFrame,
    software: str,
    store: PipelineStore,
    provenance: ProvenanceTracker,
) -> None:
    """Save one annotation source's best hits and record a provenance step."""
    table_name, description = TABLES[software]
    store.save_dataframe(
        df,
        table_name,
        config_hash=provenance.config_hash,
        description=description,
    )
    with_go = df.filter(pl.col("go_terms") != "").height
    provenance.record_step(f"load_{table_name}", {
        "row_count": df.height,
        "with_go_terms": with_go,
    })
    logger.info("annotation_load_complete", software=software, rows=df.height)
