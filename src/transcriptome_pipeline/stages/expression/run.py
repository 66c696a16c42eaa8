"""Invoke RSEM to quantify transcript expression."""

from pathlib import Path

import structlog

from transcriptome_pipeline.execution import run_process

logger = structlog.get_logger()


def build_prepare_command(executable: str, transcriptome: Path, reference_prefix: Path) -> list[str]:
    return [executable, str(transcriptome), str(reference_prefix)]


def build_calculate_command(
    executable: str,
    alignment: Path,
    reference_prefix: Path,
    output_prefix: Path,
    threads: int,
    single_end: bool,
) -> list[str]:
    """rsem-calculate-expression over a BAM alignment."""
    command = [executable, "--bam", "-p", str(threads)]
    if not single_end:
        command.append("--paired-end")
    command += [str(alignment), str(reference_prefix), str(output_prefix)]
    return command


def run_rsem(
    prepare_executable: str,
    calculate_executable: str,
    transcriptome: Path,
    alignment: Path,
    working_dir: Path,
    name: str,
    threads: int,
    single_end: bool,
) -> Path:
    """
    Build the RSEM reference from the transcriptome and quantify the alignment.

    Returns:
        Path of <name>.genes.results

    Raises:
        ExternalToolFailure: Either RSEM step exits non-zero
    """
    reference_prefix = working_dir / f"{name}_ref"
    output_prefix = working_dir / name

    logger.info("rsem_prepare_start", transcriptome=str(transcriptome))
    run_process(
        build_prepare_command(prepare_executable, transcriptome, reference_prefix),
        working_dir,
        working_dir / "rsem_reference",
    ).check("rsem-prepare-reference")

    logger.info("rsem_calculate_start", alignment=str(alignment), threads=threads)
    run_process(
        build_calculate_command(
            calculate_executable, alignment, reference_prefix, output_prefix, threads, single_end
        ),
        working_dir,
        working_dir / "rsem_expression",
    ).check("rsem-calculate-expression")

    return working_dir / f"{name}.genes.results"
