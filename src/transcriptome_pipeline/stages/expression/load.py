"""Save expression filtering results to DuckDB with provenance tracking."""

import polars as pl
import structlog

from transcriptome_pipeline.persistence import PipelineStore, ProvenanceTracker
from transcriptome_pipeline.stages.expression.models import EXPRESSION_TABLE_NAME

logger = structlog.get_logger()


def load_to_duckdb(
    df: pl.DataFrame,
    store: PipelineStore,
    provenance: ProvenanceTracker,
    threshold: float,
) -> None:
    """
    Save per-sequence FPKM values and the kept decision.

    Args:
        df: DataFrame with sequence_id, fpkm, expression_kept
        store: PipelineStore instance
        provenance: ProvenanceTracker instance
        threshold: FPKM threshold the decision was made with
    """
    kept = df.filter(pl.col("expression_kept")).height
    store.save_dataframe(
        df,
        EXPRESSION_TABLE_NAME,
        config_hash=provenance.config_hash,
        description=f"RSEM FPKM per sequence (threshold {threshold})",
    )
    provenance.record_step("load_expression_fpkm", {
        "row_count": df.height,
        "kept_count": kept,
        "removed_count": df.height - kept,
        "fpkm_threshold": threshold,
    })
    logger.info("expression_load_complete", rows=df.height, kept=kept)
