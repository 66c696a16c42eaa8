"""Lookup databases consulted during best hit enrichment."""

from transcriptome_pipeline.lookup.databases import DuckDBLookup, LookupService, TaxonomyLookup

__all__ = ["DuckDBLookup", "LookupService", "TaxonomyLookup"]
