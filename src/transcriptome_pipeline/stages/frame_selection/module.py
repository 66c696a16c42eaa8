"""Frame selection stage (GeneMarkS-T)."""

from pathlib import Path

import polars as pl
import structlog

from transcriptome_pipeline.output.graphs import FRAME_BOX_HEADER, FRAME_PIE_HEADER, write_graph_data
from transcriptome_pipeline.output.statistics import compute_length_statistics, format_length_block
from transcriptome_pipeline.sequences.fasta import FastaEntry, record_entries, write_fasta
from transcriptome_pipeline.sequences.models import FrameType, Stage
from transcriptome_pipeline.sequences.store import is_expression_kept
from transcriptome_pipeline.stages.base import (
    StageModule,
    VerifyResult,
    file_is_valid,
    lst_has_record,
)
from transcriptome_pipeline.stages.frame_selection.load import load_to_duckdb
from transcriptome_pipeline.stages.frame_selection.models import (
    COMPARISON_GRAPH_FILENAME,
    COMPLETE_FILENAME,
    DIRECTORY,
    FRAME_TABLE_NAME,
    GENEMARK_HMM_FILE,
    GENEMARK_LOG_FILE,
    INTERNAL_FILENAME,
    KEPT_FLAG,
    LOST_FILENAME,
    PARTIAL_FILENAME,
    REJECTED_FLAG,
    RESULTS_GRAPH_FILENAME,
    SOFTWARE,
)
from transcriptome_pipeline.stages.frame_selection.parse import parse_genemark_output
from transcriptome_pipeline.stages.frame_selection.run import (
    lst_output,
    nucleotide_output,
    protein_output,
    run_genemark,
)

logger = structlog.get_logger()

FRAME_FILES = {
    FrameType.COMPLETE: COMPLETE_FILENAME,
    FrameType.PARTIAL_5: PARTIAL_FILENAME,
    FrameType.PARTIAL_3: PARTIAL_FILENAME,
    FrameType.INTERNAL: INTERNAL_FILENAME,
}


class FrameSelectionStage(StageModule):
    """
    Translate expression-kept transcripts into their predicted proteins.

    Transcripts without a predicted gene get frame_selected_kept=False;
    kept transcripts receive the protein sequence and frame type.
    """

    stage = Stage.FRAME_SELECTION
    software = SOFTWARE
    directory = DIRECTORY
    table_name = FRAME_TABLE_NAME

    def __init__(self, context):
        super().__init__(context)
        self.input_path = self.stage_dir / f"{self.config.transcriptome.stem}.fasta"

    @property
    def protein_path(self) -> Path:
        return protein_output(self.input_path)

    @property
    def lst_path(self) -> Path:
        return lst_output(self.input_path)

    def verify_previous_output(self) -> VerifyResult:
        if file_is_valid(self.protein_path) and lst_has_record(self.lst_path):
            logger.info("genemark_output_found", path=str(self.protein_path))
            return VerifyResult(True, [self.protein_path, self.lst_path])
        return VerifyResult(False)

    def execute(self) -> None:
        self.stage_dir.mkdir(parents=True, exist_ok=True)
        count = write_fasta(
            self.input_path,
            record_entries(self.store.filtered_view(is_expression_kept), protein=False),
        )
        logger.info("genemark_input_written", path=str(self.input_path), sequences=count)
        run_genemark(self.config.executables.genemark, self.input_path, self.stage_dir)

    def parse(self) -> None:
        self.reset_derived_outputs()
        report = self.context.report
        predictions, skipped = parse_genemark_output(self.protein_path, self.lst_path)
        report.record_skipped_rows(self.lst_path.name, skipped)

        for identifier in predictions:
            self.store.get(identifier, source=self.lst_path.name)

        kept, lost = [], []
        for record in self.store.filtered_view(is_expression_kept):
            prediction = predictions.get(record.identifier)
            if prediction is None:
                self.store.flag(record.identifier, "frame_selected_kept", False)
                lost.append(record)
                continue
            record.sequence_protein, record.frame_type = prediction
            kept.append(record)

        self._write_outputs(kept, lost)
        self._write_statistics(kept, lost)

        table = pl.DataFrame(
            {
                "sequence_id": [r.identifier for r in kept + lost],
                "frame_type": [r.frame_type.value if r.frame_type else None for r in kept + lost],
                "protein_length": [len(r.sequence_protein) if r.sequence_protein else None for r in kept + lost],
                "frame_selected_kept": [r.frame_selected_kept for r in kept + lost],
            },
            schema={
                "sequence_id": pl.Utf8,
                "frame_type": pl.Utf8,
                "protein_length": pl.Int64,
                "frame_selected_kept": pl.Boolean,
            },
        )
        load_to_duckdb(table, self.context.pipeline_store, self.context.provenance)
        logger.info("frame_selection_complete", kept=len(kept), removed=len(lost))

    def _write_outputs(self, kept, lost) -> None:
        write_fasta(self.processed_dir / LOST_FILENAME, record_entries(lost, protein=False))
        for filename in sorted(set(FRAME_FILES.values())):
            write_fasta(
                self.processed_dir / filename,
                (
                    FastaEntry(r.identifier, r.sequence_protein)
                    for r in kept
                    if FRAME_FILES[r.frame_type] == filename
                ),
            )

        counts = {frame: sum(1 for r in kept if r.frame_type == frame) for frame in FrameType}
        write_graph_data(
            self.figures_dir / RESULTS_GRAPH_FILENAME,
            FRAME_PIE_HEADER,
            [
                (REJECTED_FLAG, len(lost)),
                (FrameType.PARTIAL_5.value, counts[FrameType.PARTIAL_5]),
                (FrameType.PARTIAL_3.value, counts[FrameType.PARTIAL_3]),
                (FrameType.COMPLETE.value, counts[FrameType.COMPLETE]),
                (FrameType.INTERNAL.value, counts[FrameType.INTERNAL]),
            ],
        )
        write_graph_data(
            self.figures_dir / COMPARISON_GRAPH_FILENAME,
            FRAME_BOX_HEADER,
            [(KEPT_FLAG, r.length) for r in kept] + [(REJECTED_FLAG, r.length) for r in lost],
        )

    def _write_statistics(self, kept, lost) -> None:
        counts = {frame: sum(1 for r in kept if r.frame_type == frame) for frame in FrameType}
        processed = self.processed_dir
        lines = [
            f"Total sequences frame selected: {len(kept)}",
            f"\tTranslated protein sequences: {self.protein_path}",
            f"Total sequences removed (no frame): {len(lost)}",
            f"\tFrame selected CDS removed: {processed / LOST_FILENAME}",
            f"Total of {counts[FrameType.PARTIAL_5]} 5 prime partials and "
            f"{counts[FrameType.PARTIAL_3]} 3 prime partials",
            f"\tPartial CDS: {processed / PARTIAL_FILENAME}",
            f"Total of {counts[FrameType.COMPLETE]} complete genes:\n\t{processed / COMPLETE_FILENAME}",
            f"Total of {counts[FrameType.INTERNAL]} internal genes:\n\t{processed / INTERNAL_FILENAME}",
        ]
        self.context.report.write_section("Frame Selection: GeneMarkS-T", "\n".join(lines))

        blocks = []
        if kept:
            blocks.append(format_length_block(
                "Kept Sequences", compute_length_statistics(r.length for r in kept)
            ))
        if lost:
            blocks.append(format_length_block(
                "Removed Sequences (no frame)", compute_length_statistics(r.length for r in lost)
            ))
        self.context.report.write_section(
            "Frame Selection: New Reference Transcriptome Statistics", "\n".join(blocks)
        )

    def output_paths(self) -> list[Path]:
        return [
            self.input_path,
            self.protein_path,
            nucleotide_output(self.input_path),
            self.lst_path,
            self.stage_dir / GENEMARK_LOG_FILE,
            self.stage_dir / GENEMARK_HMM_FILE,
            self.stage_dir / "genemark_std.out",
            self.stage_dir / "genemark_std.err",
            self.processed_dir,
            self.figures_dir,
        ]
