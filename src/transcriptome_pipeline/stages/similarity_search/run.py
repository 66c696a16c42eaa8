"""Invoke DIAMOND against a protein database."""

from pathlib import Path
from typing import Sequence

import structlog

from transcriptome_pipeline.execution import run_process
from transcriptome_pipeline.stages.similarity_search.models import DIAMOND_COLUMNS, DIAMOND_TOP_PERCENT

logger = structlog.get_logger()


def search_mode(protein_query: bool) -> str:
    return "blastp" if protein_query else "blastx"


def build_diamond_command(
    executable: str,
    mode: str,
    database: Path,
    query: Path,
    output: Path,
    threads: int,
    evalue: float,
    query_coverage: float | None = None,
    target_coverage: float | None = None,
    extra: Sequence[str] = ("--more-sensitive", "--top", str(DIAMOND_TOP_PERCENT)),
) -> list[str]:
    """DIAMOND command writing tabular output with DIAMOND_COLUMNS."""
    command = [
        executable, mode,
        "-d", str(database),
        "-q", str(query),
        "-o", str(output),
        "-p", str(threads),
        "--evalue", str(evalue),
    ]
    if query_coverage is not None:
        command += ["--query-cover", str(query_coverage)]
    if target_coverage is not None:
        command += ["--subject-cover", str(target_coverage)]
    command += list(extra)
    command += ["-f", "6", *DIAMOND_COLUMNS]
    return command


def run_diamond(command: list[str], working_dir: Path, log_prefix: Path, tool: str = "diamond") -> None:
    """
    Run a DIAMOND command built by build_diamond_command.

    Raises:
        ExternalToolFailure: DIAMOND exits non-zero
    """
    logger.info("diamond_start", mode=command[1], database=command[3])
    run_process(command, working_dir, log_prefix).check(tool)
