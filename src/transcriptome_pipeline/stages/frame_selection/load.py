"""Save frame selection results to DuckDB with provenance tracking."""

import polars as pl
import structlog

from transcriptome_pipeline.persistence import PipelineStore, ProvenanceTracker
from transcriptome_pipeline.stages.frame_selection.models import FRAME_TABLE_NAME

logger = structlog.get_logger()


def load_to_duckdb(df: pl.DataFrame, store: PipelineStore, provenance: ProvenanceTracker) -> None:
    """
    Save per-sequence frame calls.

    Args:
        df: DataFrame with sequence_id, frame_type, protein_length, frame_selected_kept
        store: PipelineStore instance
        provenance: ProvenanceTracker instance
    """
    frame_counts = (
        df.filter(pl.col("frame_selected_kept"))
        .group_by("frame_type")
        .len()
        .sort("frame_type")
    )
    store.save_dataframe(
        df,
        FRAME_TABLE_NAME,
        config_hash=provenance.config_hash,
        description="GeneMarkS-T frame calls per expression-kept sequence",
    )
    provenance.record_step("load_frame_selection", {
        "row_count": df.height,
        "frame_counts": {row["frame_type"]: row["len"] for row in frame_counts.to_dicts()},
    })
    logger.info("frame_selection_load_complete", rows=df.height)
