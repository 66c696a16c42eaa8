"""Alignment table and FASTA writers with provenance sidecar."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence

import polars as pl
import yaml

from transcriptome_pipeline.output.headers import Header, HeaderContext
from transcriptome_pipeline.sequences.fasta import FastaEntry, write_fasta
from transcriptome_pipeline.sequences.models import SequenceRecord

logger = logging.getLogger(__name__)

TABLE_FORMATS = ("tsv", "csv")
FASTA_FORMATS = ("faa", "fnn")


def alignment_frame(
    records: Iterable[SequenceRecord],
    headers: Sequence[Header],
    context: HeaderContext,
) -> pl.DataFrame:
    """One row per record, one Utf8 column per header title."""
    columns: dict[str, list[str]] = {header.title: [] for header in headers}
    for record in records:
        for header in headers:
            columns[header.title].append(header.extract(record, context))
    return pl.DataFrame(columns, schema={title: pl.Utf8 for title in columns})


def emit_alignment_tables(
    records: Iterable[SequenceRecord],
    headers: Sequence[Header],
    formats: Sequence[str],
    base_path: Path,
    context: HeaderContext | None = None,
) -> dict[str, Path]:
    """
    Write records as delimited tables and/or FASTA files.

    Records are written in iteration order (filtered_view order). Table rows
    hold every requested header; fields the record has no evidence for are
    empty. FASTA files skip records lacking that sequence type.

    Args:
        records: Records to write (iterated once per format)
        headers: Table columns
        formats: Any of "tsv", "csv", "faa", "fnn"
        base_path: Output path without extension; parents are created
        context: Evidence the headers read from

    Returns:
        Mapping format -> written file path

    Raises:
        ValueError: Unknown format
    """
    context = context or HeaderContext()
    base_path = Path(base_path)
    base_path.parent.mkdir(parents=True, exist_ok=True)
    records = list(records)

    written: dict[str, Path] = {}
    for fmt in formats:
        path = base_path.parent / f"{base_path.name}.{fmt}"
        if fmt in TABLE_FORMATS:
            df = alignment_frame(records, headers, context)
            if fmt == "tsv":
                df.write_csv(path, separator="\t", include_header=True, quote_style="never")
            else:
                df.write_csv(path, separator=",", include_header=True)
        elif fmt == "faa":
            write_fasta(
                path,
                (FastaEntry(r.identifier, r.sequence_protein) for r in records if r.sequence_protein),
            )
        elif fmt == "fnn":
            write_fasta(
                path,
                (FastaEntry(r.identifier, r.sequence_nucleotide) for r in records if r.sequence_nucleotide),
            )
        else:
            raise ValueError(f"Unknown output format: {fmt}")
        written[fmt] = path

    logger.debug(f"Wrote {len(records)} records to {base_path} ({', '.join(written)})")
    return written


def write_provenance_yaml(
    output_path: Path,
    output_files: Iterable[Path],
    statistics: dict,
    config_hash: str = "",
) -> Path:
    """
    Write a YAML provenance sidecar next to an output file.

    The sidecar is saved as {output_path without suffix}.provenance.yaml and
    lists the produced files with summary statistics.
    """
    output_path = Path(output_path)
    provenance_path = output_path.with_suffix(".provenance.yaml")
    provenance = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "config_hash": config_hash,
        "output_files": [Path(path).name for path in output_files],
        "statistics": statistics,
    }
    with open(provenance_path, "w") as f:
        yaml.dump(provenance, f, default_flow_style=False, sort_keys=False)
    return provenance_path
