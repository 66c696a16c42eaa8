"""Expression filtering stage (RSEM)."""

from transcriptome_pipeline.stages.expression.models import EXPRESSION_TABLE_NAME
from transcriptome_pipeline.stages.expression.module import ExpressionStage
from transcriptome_pipeline.stages.expression.parse import parse_rsem_results

__all__ = ["EXPRESSION_TABLE_NAME", "ExpressionStage", "parse_rsem_results"]
