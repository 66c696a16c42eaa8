"""Parse DIAMOND tabular output into similarity search hits."""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import polars as pl
import structlog

from transcriptome_pipeline.errors import RowParseError
from transcriptome_pipeline.sequences.models import SimilaritySearchHit, Stage
from transcriptome_pipeline.sequences.store import SequenceStore
from transcriptome_pipeline.stages.base import log_row_error
from transcriptome_pipeline.stages.similarity_search.models import DIAMOND_COLUMNS, SOFTWARE
from transcriptome_pipeline.stages.similarity_search.transform import is_informative, parse_species
from transcriptome_pipeline.stages.tabular import (
    LINE_COLUMN,
    check_encoding,
    read_tab_file,
    row_float,
    row_int,
    row_text,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class DiamondRow:
    """One validated row of DIAMOND --outfmt 6 output."""

    line_number: int
    query_id: str
    target_id: str
    pident: float
    length: int
    mismatch: int
    gapopen: int
    qstart: int
    qend: int
    sstart: int
    send: int
    evalue: float
    bitscore: float
    coverage: float
    title: str


def _convert(row: dict, source: str) -> DiamondRow:
    check_encoding(row, source)
    return DiamondRow(
        line_number=row[LINE_COLUMN],
        query_id=row_text(row, "qseqid", source),
        target_id=row_text(row, "sseqid", source),
        pident=row_float(row, "pident", source),
        length=row_int(row, "length", source),
        mismatch=row_int(row, "mismatch", source),
        gapopen=row_int(row, "gapopen", source),
        qstart=row_int(row, "qstart", source),
        qend=row_int(row, "qend", source),
        sstart=row_int(row, "sstart", source),
        send=row_int(row, "send", source),
        evalue=row_float(row, "evalue", source),
        bitscore=row_float(row, "bitscore", source),
        coverage=row_float(row, "qcovhsp", source),
        title=(row.get("stitle") or "").strip(),
    )


def read_diamond_rows(path: Path) -> tuple[list[DiamondRow], int]:
    """
    Read DIAMOND tabular output.

    Malformed rows, including rows with bytes that are not valid UTF-8,
    are logged and skipped.

    Returns:
        (valid rows in file order, number of skipped rows)

    Raises:
        ExternalToolFailure: The file cannot be read at all
    """
    source = Path(path).name
    raw = read_tab_file(path, columns=DIAMOND_COLUMNS, tool="diamond")
    rows: list[DiamondRow] = []
    skipped = 0
    for row in raw.iter_rows(named=True):
        try:
            rows.append(_convert(row, source))
        except RowParseError as e:
            log_row_error(e)
            skipped += 1
    return rows, skipped


@dataclass
class ParseOutcome:
    """Counts and rejected rows from parsing one database's output."""

    database: str
    attached: int = 0
    skipped: int = 0
    unselected: list[DiamondRow] | None = None


def parse_similarity_output(
    path: Path,
    database: str,
    store: SequenceStore,
    evalue_threshold: float,
    min_coverage: float,
    uninformative: list[str],
    tax_score: Callable[[str], int] | None = None,
) -> ParseOutcome:
    """
    Attach DIAMOND hits of one database to the store.

    Rows above the E-value threshold or below the query coverage threshold
    are returned as unselected instead of being attached.

    Args:
        path: DIAMOND output file
        database: Database identifier used in the evidence key
        store: Query sequences
        evalue_threshold: Maximum E-value of an attached hit
        min_coverage: Minimum query coverage (percent) of an attached hit
        uninformative: Lowercase keywords marking a title uninformative
        tax_score: Species -> taxonomic closeness to the target species

    Raises:
        UnknownSequenceReference: A row names a query absent from the store
    """
    source = Path(path).name
    rows, skipped = read_diamond_rows(path)
    outcome = ParseOutcome(database=database, skipped=skipped, unselected=[])

    for row in rows:
        record = store.get(row.query_id, source=source)
        if row.evalue > evalue_threshold or row.coverage < min_coverage:
            outcome.unselected.append(row)
            continue
        species = parse_species(row.title)
        hit = SimilaritySearchHit(
            database=database,
            target_id=row.target_id,
            evalue=row.evalue,
            percent_identity=row.pident,
            coverage=row.coverage,
            description=row.title,
            alignment_length=row.length,
            mismatches=row.mismatch,
            gap_openings=row.gapopen,
            query_start=row.qstart,
            query_end=row.qend,
            subject_start=row.sstart,
            subject_end=row.send,
            bit_score=row.bitscore,
            species=species,
            is_informative=is_informative(row.title, uninformative),
            tax_score=tax_score(species) if tax_score and species else 0,
        )
        record.add_alignment(Stage.SIMILARITY_SEARCH, SOFTWARE, database, hit)
        outcome.attached += 1

    logger.info(
        "diamond_parse_complete",
        database=database,
        rows=len(rows),
        attached=outcome.attached,
        unselected=len(outcome.unselected),
        skipped=skipped,
    )
    return outcome


def unselected_frame(rows: list[DiamondRow]) -> pl.DataFrame:
    """Rejected rows in DIAMOND column order, for <db>_unselected.tsv."""
    return pl.DataFrame(
        {
            "qseqid": [r.query_id for r in rows],
            "sseqid": [r.target_id for r in rows],
            "pident": [r.pident for r in rows],
            "length": [r.length for r in rows],
            "mismatch": [r.mismatch for r in rows],
            "gapopen": [r.gapopen for r in rows],
            "qstart": [r.qstart for r in rows],
            "qend": [r.qend for r in rows],
            "sstart": [r.sstart for r in rows],
            "send": [r.send for r in rows],
            "evalue": [r.evalue for r in rows],
            "bitscore": [r.bitscore for r in rows],
            "qcovhsp": [r.coverage for r in rows],
            "stitle": [r.title for r in rows],
        },
        schema={
            "qseqid": pl.Utf8,
            "sseqid": pl.Utf8,
            "pident": pl.Float64,
            "length": pl.Int64,
            "mismatch": pl.Int64,
            "gapopen": pl.Int64,
            "qstart": pl.Int64,
            "qend": pl.Int64,
            "sstart": pl.Int64,
            "send": pl.Int64,
            "evalue": pl.Float64,
            "bitscore": pl.Float64,
            "qcovhsp": pl.Float64,
            "stitle": pl.Utf8,
        },
    )
