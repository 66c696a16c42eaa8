"""Parse GeneMarkS-T protein predictions and frame classifications."""

from pathlib import Path

import structlog

from transcriptome_pipeline.errors import ExternalToolFailure, RowParseError
from transcriptome_pipeline.sequences.fasta import read_fasta
from transcriptome_pipeline.sequences.models import FrameType
from transcriptome_pipeline.stages.base import log_row_error
from transcriptome_pipeline.stages.tabular import REPLACEMENT_CHAR

logger = structlog.get_logger()


def classify_frame(gene_line: str) -> FrameType:
    """
    Frame type of a .lst gene row.

    "<" marks a gene open at the 5' end and ">" one open at the 3' end;
    both means internal, neither complete.
    """
    open_5 = "<" in gene_line
    open_3 = ">" in gene_line
    if open_5 and open_3:
        return FrameType.INTERNAL
    if open_5:
        return FrameType.PARTIAL_5
    if open_3:
        return FrameType.PARTIAL_3
    return FrameType.COMPLETE


def parse_lst(path: Path) -> tuple[dict[str, FrameType], int]:
    """
    Read frame classifications from a .lst file.

    Records start with "FASTA definition line: <id>"; gene rows start with a
    digit. Whitespace inside lines is ignored. When a sequence has several
    gene rows the last one wins. Lines with bytes that are not valid UTF-8
    are skipped; a skipped definition line drops the gene rows under it.

    Returns:
        (sequence id -> FrameType, number of skipped rows)
    """
    source = Path(path).name
    frames: dict[str, FrameType] = {}
    current_id: str | None = None
    skipped = 0
    with open(path, errors="replace") as f:
        for line_number, line in enumerate(f, start=1):
            compact = "".join(line.split())
            if not compact:
                continue
            if REPLACEMENT_CHAR in compact:
                log_row_error(RowParseError(source, line_number, "line is not valid UTF-8"))
                skipped += 1
                if compact.startswith("FASTA"):
                    current_id = None
                continue
            if compact.startswith("FASTA"):
                current_id = compact.split(":", 1)[1] if ":" in compact else None
                if not current_id:
                    log_row_error(RowParseError(source, line_number, "FASTA record without identifier"))
                    skipped += 1
                    current_id = None
            elif compact[0].isdigit():
                if current_id is None:
                    log_row_error(RowParseError(source, line_number, "gene row outside a FASTA record"))
                    skipped += 1
                    continue
                frames[current_id] = classify_frame(compact)

    logger.info("genemark_lst_parsed", sequences=len(frames), skipped=skipped)
    return frames, skipped


def parse_genemark_output(protein_path: Path, lst_path: Path) -> tuple[dict[str, tuple[str, FrameType]], int]:
    """
    Join predicted proteins with their frame classification.

    Returns:
        (sequence id -> (protein sequence, FrameType), skipped .lst rows)

    Raises:
        ExternalToolFailure: The protein file is not valid UTF-8, or the .lst
            and protein files disagree
    """
    try:
        proteins = {entry.identifier: entry.sequence for entry in read_fasta(protein_path)}
    except UnicodeDecodeError as e:
        raise ExternalToolFailure("genemark", f"unreadable output {protein_path.name}: {e}") from e
    frames, skipped = parse_lst(lst_path)

    unknown = sorted(set(frames) - set(proteins))
    if unknown:
        raise ExternalToolFailure(
            "genemark", f"{lst_path.name} lists sequences missing from {protein_path.name}: {', '.join(unknown[:5])}"
        )
    unclassified = sorted(set(proteins) - set(frames))
    if unclassified:
        raise ExternalToolFailure(
            "genemark", f"{protein_path.name} holds sequences without a frame in {lst_path.name}: {', '.join(unclassified[:5])}"
        )

    return {identifier: (proteins[identifier], frames[identifier]) for identifier in proteins}, skipped
