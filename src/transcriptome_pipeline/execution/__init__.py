"""External tool execution."""

from transcriptome_pipeline.execution.runner import ProcessResult, run_process

__all__ = ["ProcessResult", "run_process"]
