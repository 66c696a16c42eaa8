"""Query sequences, their alignment evidence and best hit selection."""

from transcriptome_pipeline.sequences.models import (
    AlignmentResult,
    DomainScanHit,
    EvidenceKey,
    FrameType,
    GoCategory,
    GoTerm,
    OrthologHit,
    SequenceRecord,
    SimilaritySearchHit,
    Stage,
)
from transcriptome_pipeline.sequences.selection import (
    DEFAULT_POLICY,
    Ordering,
    SelectionPolicy,
    compare,
    select_best,
)
from transcriptome_pipeline.sequences.store import (
    FilteredView,
    SequenceStore,
    all_of,
    hit_in,
    is_expression_kept,
    is_frame_kept,
    no_hit_in,
)

__all__ = [
    "AlignmentResult",
    "DomainScanHit",
    "EvidenceKey",
    "FrameType",
    "GoCategory",
    "GoTerm",
    "OrthologHit",
    "SequenceRecord",
    "SimilaritySearchHit",
    "Stage",
    "DEFAULT_POLICY",
    "Ordering",
    "SelectionPolicy",
    "compare",
    "select_best",
    "FilteredView",
    "SequenceStore",
    "all_of",
    "hit_in",
    "is_expression_kept",
    "is_frame_kept",
    "no_hit_in",
]
