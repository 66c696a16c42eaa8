"""Frame selection stage (GeneMarkS-T)."""

from transcriptome_pipeline.stages.frame_selection.models import FRAME_TABLE_NAME
from transcriptome_pipeline.stages.frame_selection.module import FrameSelectionStage
from transcriptome_pipeline.stages.frame_selection.parse import (
    classify_frame,
    parse_genemark_output,
    parse_lst,
)

__all__ = [
    "FRAME_TABLE_NAME",
    "FrameSelectionStage",
    "classify_frame",
    "parse_genemark_output",
    "parse_lst",
]
