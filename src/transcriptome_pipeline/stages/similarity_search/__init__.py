"""Similarity search stage (DIAMOND)."""

from transcriptome_pipeline.stages.similarity_search.models import BEST_HITS_TABLE_NAME, database_name
from transcriptome_pipeline.stages.similarity_search.module import SimilaritySearchStage
from transcriptome_pipeline.stages.similarity_search.parse import parse_similarity_output, read_diamond_rows
from transcriptome_pipeline.stages.similarity_search.transform import (
    TaxonomicScorer,
    enrich_best_hits,
    find_contaminant,
    is_informative,
    parse_species,
)

__all__ = [
    "BEST_HITS_TABLE_NAME",
    "database_name",
    "SimilaritySearchStage",
    "parse_similarity_output",
    "read_diamond_rows",
    "TaxonomicScorer",
    "enrich_best_hits",
    "find_contaminant",
    "is_informative",
    "parse_species",
]
