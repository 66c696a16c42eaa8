"""Invoke EggNOG seed ortholog search (DIAMOND) and InterProScan."""

from pathlib import Path
from typing import Sequence

import structlog

from transcriptome_pipeline.execution import run_process
from transcriptome_pipeline.stages.functional_annotation.models import EGGNOG_EVALUE, EGGNOG_TOP
from transcriptome_pipeline.stages.similarity_search.run import build_diamond_command, run_diamond

logger = structlog.get_logger()


def run_eggnog_search(
    executable: str,
    mode: str,
    database: Path,
    query: Path,
    output: Path,
    working_dir: Path,
    threads: int,
) -> None:
    """
    Align queries against the EggNOG protein database, keeping the top hit.

    Raises:
        ExternalToolFailure: DIAMOND exits non-zero
    """
    command = build_diamond_command(
        executable,
        mode,
        database,
        query,
        output,
        threads,
        evalue=EGGNOG_EVALUE,
        extra=("--top", str(EGGNOG_TOP), "--more-sensitive"),
    )
    run_diamond(command, working_dir, working_dir / "eggnog_diamond", tool="eggnog")


def build_interproscan_command(
    executable: str,
    query: Path,
    output: Path,
    threads: int,
    databases: Sequence[str] = (),
) -> list[str]:
    """InterProScan command writing XML with GO, InterPro and pathway lookups."""
    command = [
        executable,
        "-i", str(query),
        "-o", str(output),
        "-f", "xml",
        "-t", "p",
        "-cpu", str(threads),
        "--goterms",
        "--iprlookup",
        "--pathways",
    ]
    if databases:
        command += ["-appl", ",".join(databases)]
    return command


def run_interproscan(command: list[str], working_dir: Path) -> None:
    """
    Run an InterProScan command built by build_interproscan_command.

    Raises:
        ExternalToolFailure: InterProScan exits non-zero
    """
    logger.info("interproscan_start", query=command[2])
    run_process(command, working_dir, working_dir / "interproscan").check("interproscan")
