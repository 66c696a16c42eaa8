"""Save similarity search best hits to DuckDB with provenance tracking."""

import polars as pl
import structlog

from transcriptome_pipeline.persistence import PipelineStore, ProvenanceTracker
from transcriptome_pipeline.sequences.models import Stage
from transcriptome_pipeline.sequences.selection import SelectionPolicy
from transcriptome_pipeline.sequences.store import SequenceStore
from transcriptome_pipeline.stages.similarity_search.models import BEST_HITS_TABLE_NAME, SOFTWARE

logger = structlog.get_logger()


def best_hits_frame(store: SequenceStore, databases: list[str], policy: SelectionPolicy) -> pl.DataFrame:
    """One row per (sequence, database) best hit."""
    rows = []
    for record in store:
        for database in databases:
            if not record.hit_database(Stage.SIMILARITY_SEARCH, SOFTWARE, database):
                continue
            hit = record.get_best_hit(Stage.SIMILARITY_SEARCH, SOFTWARE, database, policy)
            rows.append({
                "sequence_id": record.identifier,
                "database": database,
                "target_id": hit.target_id,
                "evalue": hit.evalue,
                "percent_identity": hit.percent_identity,
                "coverage": hit.coverage,
                "description": hit.description,
                "species": hit.species,
                "lineage": hit.lineage,
                "is_contaminant": hit.is_contaminant,
                "is_informative": hit.is_informative,
                "tax_score": hit.tax_score,
            })
    schema = {
        "sequence_id": pl.Utf8,
        "database": pl.Utf8,
        "target_id": pl.Utf8,
        "evalue": pl.Float64,
        "percent_identity": pl.Float64,
        "coverage": pl.Float64,
        "description": pl.Utf8,
        "species": pl.Utf8,
        "lineage": pl.Utf8,
        "is_contaminant": pl.Boolean,
        "is_informative": pl.Boolean,
        "tax_score": pl.Int64,
    }
    return pl.DataFrame(rows, schema=schema)


def load_to_duckdb(df: pl.DataFrame, store: PipelineStore, provenance: ProvenanceTracker) -> None:
    """Save best hits (replacing any previous table) and record a provenance step."""
    store.save_dataframe(
        df,
        BEST_HITS_TABLE_NAME,
        config_hash=provenance.config_hash,
        description="DIAMOND best hit per sequence and database",
    )
    per_database = df.group_by("database").len().sort("database")
    provenance.record_step("load_similarity_best_hits", {
        "row_count": df.height,
        "contaminant_count": df.filter(pl.col("is_contaminant")).height,
        "per_database": {row["database"]: row["len"] for row in per_database.to_dicts()},
    })
    logger.info("similarity_load_complete", rows=df.height)
