"""Run-level statistics log and final annotation outputs."""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Sequence

from transcriptome_pipeline.output.headers import Header, HeaderContext
from transcriptome_pipeline.output.statistics import compute_length_statistics, format_length_block
from transcriptome_pipeline.output.writers import emit_alignment_tables, write_provenance_yaml
from transcriptome_pipeline.sequences.models import SequenceRecord, Stage
from transcriptome_pipeline.sequences.store import SequenceStore, is_frame_kept

logger = logging.getLogger(__name__)

SECTION_BREAK = "-" * 50

FINAL_ANNOTATED = "final_annotated"
FINAL_UNANNOTATED = "final_unannotated"


class StatisticsReport:
    """
    Human-readable statistics log shared by every stage of a run.

    Blocks are appended to log_file_<timestamp>.txt in the output directory,
    so the file grows across stages and survives a failed run.
    """

    def __init__(self, output_dir: Path, timestamp: datetime | None = None):
        timestamp = timestamp or datetime.now()
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        self.path = output_dir / f"log_file_{timestamp.strftime('%Y.%m.%d-%Hh%Mm%Ss')}.txt"
        self.skipped_rows: dict[str, int] = {}

    def write_section(self, title: str, body: str = "") -> None:
        """Append a titled block."""
        with open(self.path, "a") as f:
            f.write(f"{SECTION_BREAK}\n{title}\n{SECTION_BREAK}\n")
            if body:
                f.write(body.rstrip("\n") + "\n")
            f.write("\n")

    def append(self, text: str) -> None:
        with open(self.path, "a") as f:
            f.write(text.rstrip("\n") + "\n")

    def record_skipped_rows(self, source: str, count: int) -> None:
        """Note malformed rows a parser skipped."""
        if count <= 0:
            return
        self.skipped_rows[source] = self.skipped_rows.get(source, 0) + count
        self.append(f"Skipped {count} malformed row(s) in {source}")

    def read(self) -> str:
        return self.path.read_text() if self.path.exists() else ""


@dataclass(frozen=True)
class FinalSummary:
    """Counts reported at the end of a run."""

    total_input: int
    removed_expression: int
    removed_frame_selection: int
    kept: int
    similarity_hits: int
    contaminants: int
    ontology_hits: int
    annotated: int
    unannotated: int


def is_annotated(record: SequenceRecord) -> bool:
    """Kept and hit by similarity search or functional annotation."""
    return is_frame_kept(record) and (
        record.hit_stage(Stage.SIMILARITY_SEARCH) or record.hit_stage(Stage.FUNCTIONAL_ANNOTATION)
    )


def is_unannotated(record: SequenceRecord) -> bool:
    return is_frame_kept(record) and not is_annotated(record)


def input_statistics(store: SequenceStore, report: StatisticsReport, input_path: Path) -> None:
    """Append the transcriptome statistics block written before any stage runs."""
    unit = "aa" if store.is_protein else "bp"
    body = f"Input: {input_path}\nInput type: {'Protein' if store.is_protein else 'Nucleotide'}\n"
    lengths = store.lengths()
    if lengths:
        body += format_length_block("Transcriptome Statistics", compute_length_statistics(lengths), unit)
    report.write_section("Transcriptome Statistics", body)


def final_statistics(
    store: SequenceStore,
    report: StatisticsReport,
    output_dir: Path,
    headers: Sequence[Header],
    formats: Sequence[str],
    go_levels: Sequence[int] = (0,),
    context: HeaderContext | None = None,
    config_hash: str = "",
) -> FinalSummary:
    """
    Write the pipeline summary and the final annotation files.

    Produces final_annotations_lvl<N>.tsv (every kept sequence, GO columns
    restricted to level N) for each GO level, plus final_annotated.* and
    final_unannotated.* in the requested formats, and a YAML provenance
    sidecar with the summary counts.

    Returns:
        FinalSummary with the reported counts
    """
    context = context or HeaderContext()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    kept = store.filtered_view(is_frame_kept)
    annotated = store.filtered_view(is_annotated)
    unannotated = store.filtered_view(is_unannotated)

    summary = FinalSummary(
        total_input=len(store),
        removed_expression=sum(1 for r in store if not r.expression_kept),
        removed_frame_selection=sum(
            1 for r in store if r.expression_kept and not r.frame_selected_kept
        ),
        kept=len(kept),
        similarity_hits=len(kept.filter(lambda r: r.hit_stage(Stage.SIMILARITY_SEARCH))),
        contaminants=len(kept.filter(lambda r: r.is_contaminant)),
        ontology_hits=len(kept.filter(lambda r: r.hit_stage(Stage.FUNCTIONAL_ANNOTATION))),
        annotated=len(annotated),
        unannotated=len(unannotated),
    )

    written: list[Path] = []
    for level in sorted(set(go_levels) | {0}):
        level_context = HeaderContext(
            stage=context.stage,
            software=context.software,
            database=context.database,
            go_level=level,
            policy=context.policy,
        )
        paths = emit_alignment_tables(
            kept, headers, ["tsv"], output_dir / f"final_annotations_lvl{level}", level_context
        )
        written.extend(paths.values())

    table_formats = sorted(set(formats) | {"tsv"}, key=lambda fmt: ["tsv", "csv", "faa", "fnn"].index(fmt))
    written.extend(
        emit_alignment_tables(annotated, headers, table_formats, output_dir / FINAL_ANNOTATED, context).values()
    )
    written.extend(
        emit_alignment_tables(unannotated, headers, table_formats, output_dir / FINAL_UNANNOTATED, context).values()
    )

    unit = "aa" if store.is_protein else "bp"
    lines = [
        f"Initial input sequences: {summary.total_input}",
        f"Sequences removed by expression filtering: {summary.removed_expression}",
        f"Sequences removed by frame selection: {summary.removed_frame_selection}",
        f"Sequences entering annotation: {summary.kept}",
        "Similarity Search",
        f"\tTotal unique sequences with an alignment: {summary.similarity_hits}",
        f"\tTotal unique sequences without an alignment: {summary.kept - summary.similarity_hits}",
        f"\tTotal unique contaminants: {summary.contaminants}",
        "Functional Annotation",
        f"\tTotal unique sequences with an annotation: {summary.ontology_hits}",
        f"\tTotal unique sequences without an annotation: {summary.kept - summary.ontology_hits}",
        f"Total sequences annotated: {summary.annotated}",
        f"Total sequences unannotated: {summary.unannotated}",
    ]
    annotated_lengths = [r.length for r in annotated]
    if annotated_lengths:
        lines.append(
            format_length_block("Annotated Sequences", compute_length_statistics(annotated_lengths), unit)
        )
    if report.skipped_rows:
        lines.append("Malformed rows skipped:")
        lines.extend(f"\t{source}: {count}" for source, count in sorted(report.skipped_rows.items()))
    report.write_section("Final Annotation Statistics", "\n".join(lines))

    write_provenance_yaml(
        output_dir / "final_annotations.tsv",
        written,
        asdict(summary),
        config_hash=config_hash,
    )
    logger.info(
        f"Final outputs written to {output_dir}: "
        f"{summary.annotated} annotated, {summary.unannotated} unannotated"
    )
    return summary
