"""Output generation: statistics, alignment tables, graph data and the run report."""

from transcriptome_pipeline.output.graphs import write_graph_data
from transcriptome_pipeline.output.headers import (
    ALL_HEADERS,
    EGGNOG_HEADERS,
    INTERPRO_HEADERS,
    SIMILARITY_HEADERS,
    Header,
    HeaderContext,
)
from transcriptome_pipeline.output.report import FinalSummary, StatisticsReport, final_statistics
from transcriptome_pipeline.output.statistics import (
    CategoryCount,
    LengthStatistics,
    compute_length_statistics,
    top_n_categories,
)
from transcriptome_pipeline.output.writers import emit_alignment_tables, write_provenance_yaml

__all__ = [
    "write_graph_data",
    "ALL_HEADERS",
    "EGGNOG_HEADERS",
    "INTERPRO_HEADERS",
    "SIMILARITY_HEADERS",
    "Header",
    "HeaderContext",
    "FinalSummary",
    "StatisticsReport",
    "final_statistics",
    "CategoryCount",
    "LengthStatistics",
    "compute_length_statistics",
    "top_n_categories",
    "emit_alignment_tables",
    "write_provenance_yaml",
]
