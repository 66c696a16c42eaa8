"""Transcriptome annotation pipeline: aggregates frame selection, similarity
search and functional annotation results into per-sequence records."""

__version__ = "0.1.0"
