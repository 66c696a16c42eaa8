"""Persistence layer for stage result tables and provenance tracking."""

from transcriptome_pipeline.persistence.duckdb_store import PipelineStore
from transcriptome_pipeline.persistence.provenance import ProvenanceTracker

__all__ = ["PipelineStore", "ProvenanceTracker"]
