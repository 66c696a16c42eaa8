"""Pipeline stages wrapping the external analysis tools."""

from transcriptome_pipeline.stages.base import (
    PipelineContext,
    StageModule,
    VerifyResult,
    run_stage,
)

__all__ = ["PipelineContext", "StageModule", "VerifyResult", "run_stage"]
