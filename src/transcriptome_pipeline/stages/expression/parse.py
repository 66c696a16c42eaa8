"""Parse RSEM gene results into per-sequence FPKM values."""

from pathlib import Path

import polars as pl
import structlog

from transcriptome_pipeline.errors import ExternalToolFailure, RowParseError
from transcriptome_pipeline.stages.base import log_row_error
from transcriptome_pipeline.stages.expression.models import RSEM_FPKM_COLUMN, RSEM_ID_COLUMN, RSEM_TOOL
from transcriptome_pipeline.stages.tabular import check_encoding, read_tab_file, row_float, row_text

logger = structlog.get_logger()


def parse_rsem_results(path: Path) -> tuple[pl.DataFrame, int]:
    """
    Read gene_id and FPKM from a .genes.results file.

    Malformed rows are logged and skipped.

    Returns:
        (DataFrame with columns sequence_id, fpkm; number of skipped rows)

    Raises:
        ExternalToolFailure: The file is unreadable or its header lacks the
            gene_id or FPKM column
    """
    source = Path(path).name
    raw = read_tab_file(path, has_header=True, tool=RSEM_TOOL)
    missing = [column for column in (RSEM_ID_COLUMN, RSEM_FPKM_COLUMN) if column not in raw.columns]
    if missing:
        raise ExternalToolFailure(RSEM_TOOL, f"{source} lacks column(s) {', '.join(missing)}")

    identifiers: list[str] = []
    values: list[float] = []
    skipped = 0
    for row in raw.iter_rows(named=True):
        try:
            check_encoding(row, source)
            identifier = row_text(row, RSEM_ID_COLUMN, source)
            fpkm = row_float(row, RSEM_FPKM_COLUMN, source)
        except RowParseError as e:
            log_row_error(e)
            skipped += 1
            continue
        identifiers.append(identifier)
        values.append(fpkm)

    df = pl.DataFrame(
        {"sequence_id": identifiers, "fpkm": values},
        schema={"sequence_id": pl.Utf8, "fpkm": pl.Float64},
    )
    logger.info("rsem_parse_complete", rows=df.height, skipped=skipped)
    return df, skipped
