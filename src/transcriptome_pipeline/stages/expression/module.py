"""Expression filtering stage (RSEM)."""

from pathlib import Path

import polars as pl
import structlog

from transcriptome_pipeline.output.graphs import FPKM_HEADER, write_graph_data
from transcriptome_pipeline.output.statistics import compute_length_statistics, format_length_block
from transcriptome_pipeline.sequences.fasta import record_entries, write_fasta
from transcriptome_pipeline.sequences.models import Stage
from transcriptome_pipeline.sequences.store import is_expression_kept
from transcriptome_pipeline.stages.base import StageModule, VerifyResult, tsv_is_complete
from transcriptome_pipeline.stages.expression.load import load_to_duckdb
from transcriptome_pipeline.stages.expression.models import (
    DIRECTORY,
    EXPRESSION_TABLE_NAME,
    SOFTWARE,
    fpkm_graph_filename,
    kept_filename,
    removed_filename,
    results_filename,
)
from transcriptome_pipeline.stages.expression.parse import parse_rsem_results
from transcriptome_pipeline.stages.expression.run import run_rsem

logger = structlog.get_logger()


class ExpressionStage(StageModule):
    """
    Remove lowly expressed sequences.

    Sequences whose FPKM is below the configured threshold, or that RSEM
    does not report at all, get expression_kept=False.
    """

    stage = Stage.EXPRESSION
    software = SOFTWARE
    directory = DIRECTORY
    table_name = EXPRESSION_TABLE_NAME

    def __init__(self, context):
        super().__init__(context)
        self.settings = self.config.expression
        self.basename = self.config.transcriptome.stem

    @property
    def results_path(self) -> Path:
        return self.stage_dir / results_filename(self.basename)

    def verify_previous_output(self) -> VerifyResult:
        if tsv_is_complete(self.results_path):
            logger.info("rsem_output_found", path=str(self.results_path))
            return VerifyResult(True, [self.results_path])
        return VerifyResult(False)

    def execute(self) -> None:
        run_rsem(
            self.config.executables.rsem_prepare,
            self.config.executables.rsem_calculate,
            self.config.transcriptome.resolve(),
            self.settings.alignment_path.resolve(),
            self.stage_dir,
            self.basename,
            self.config.threads,
            self.settings.single_end,
        )

    def parse(self) -> None:
        self.reset_derived_outputs()
        report = self.context.report
        df, skipped = parse_rsem_results(self.results_path)
        report.record_skipped_rows(self.results_path.name, skipped)

        source = self.results_path.name
        for sequence_id, fpkm in df.iter_rows():
            self.store.get(sequence_id, source=source).expression_fpkm = fpkm

        threshold = self.settings.fpkm_threshold
        candidates = list(self.store.filtered_view(is_expression_kept))
        removed = [
            record
            for record in candidates
            if record.expression_fpkm is None or record.expression_fpkm < threshold
        ]
        for record in removed:
            self.store.flag(record.identifier, "expression_kept", False)
        kept = [record for record in candidates if record.expression_kept]

        protein = self.store.is_protein
        write_fasta(self.processed_dir / kept_filename(self.basename), record_entries(kept, protein))
        write_fasta(self.processed_dir / removed_filename(self.basename), record_entries(removed, protein))
        write_graph_data(
            self.figures_dir / fpkm_graph_filename(self.basename),
            FPKM_HEADER,
            [(record.identifier, record.expression_fpkm) for record in candidates
             if record.expression_fpkm is not None],
        )

        unit = "aa" if protein else "bp"
        lines = [
            f"FPKM threshold: {threshold}",
            f"Total sequences kept after expression filtering: {len(kept)}",
            f"Total sequences removed (FPKM < {threshold}): {len(removed)}",
        ]
        if kept:
            lines.append(format_length_block(
                "Kept Sequences", compute_length_statistics(r.length for r in kept), unit
            ))
        if removed:
            lines.append(format_length_block(
                "Removed Sequences", compute_length_statistics(r.length for r in removed), unit
            ))
        report.write_section("Expression Filtering - RSEM", "\n".join(lines))

        table = pl.DataFrame(
            {
                "sequence_id": [r.identifier for r in candidates],
                "fpkm": [r.expression_fpkm for r in candidates],
                "expression_kept": [r.expression_kept for r in candidates],
            },
            schema={"sequence_id": pl.Utf8, "fpkm": pl.Float64, "expression_kept": pl.Boolean},
        )
        load_to_duckdb(table, self.context.pipeline_store, self.context.provenance, threshold)
        logger.info("expression_filter_complete", kept=len(kept), removed=len(removed))

    def output_paths(self) -> list[Path]:
        paths = [self.processed_dir, self.figures_dir]
        if self.stage_dir.exists():
            paths += sorted(self.stage_dir.glob(f"{self.basename}.*"))
            paths += sorted(self.stage_dir.glob(f"{self.basename}_ref*"))
            paths += sorted(self.stage_dir.glob("rsem_*_std.*"))
        return paths
