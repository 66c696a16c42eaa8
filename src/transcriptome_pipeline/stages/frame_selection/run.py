"""Invoke GeneMarkS-T to predict open reading frames."""

from pathlib import Path

import structlog

from transcriptome_pipeline.execution import run_process

logger = structlog.get_logger()


def build_genemark_command(executable: str, input_path: Path) -> list[str]:
    return [executable, "-faa", "-fnn", input_path.name]


def run_genemark(executable: str, input_path: Path, working_dir: Path) -> tuple[Path, Path]:
    """
    Run GeneMarkS-T on a nucleotide FASTA inside working_dir.

    GeneMarkS-T writes <input>.faa, <input>.fnn and <input>.lst next to
    the input file.

    Returns:
        (protein FASTA path, .lst path)

    Raises:
        ExternalToolFailure: GeneMarkS-T exits non-zero
    """
    logger.info("genemark_start", input=str(input_path))
    run_process(
        build_genemark_command(executable, input_path),
        working_dir,
        working_dir / "genemark",
    ).check("genemark")
    return protein_output(input_path), lst_output(input_path)


def protein_output(input_path: Path) -> Path:
    return input_path.parent / f"{input_path.name}.faa"


def nucleotide_output(input_path: Path) -> Path:
    return input_path.parent / f"{input_path.name}.fnn"


def lst_output(input_path: Path) -> Path:
    return input_path.parent / f"{input_path.name}.lst"
