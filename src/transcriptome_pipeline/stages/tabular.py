"""Reading tab-delimited tool output with per-row validation."""

from pathlib import Path
from typing import Sequence

import polars as pl

from transcriptome_pipeline.errors import ExternalToolFailure, RowParseError

LINE_COLUMN = "_line"
# Stands in for bytes that are not valid UTF-8 after a lossy decode
REPLACEMENT_CHAR = "\ufffd"


def read_tab_file(
    path: Path,
    columns: Sequence[str] | None = None,
    has_header: bool = False,
    comment_prefix: str | None = None,
    tool: str = "",
) -> pl.DataFrame:
    """
    Read a tab-delimited file with every column as Utf8.

    Values are converted per row by the caller so one malformed row can be
    skipped without rejecting the file. Rows with too few fields get nulls;
    extra fields are dropped. A LINE_COLUMN with 1-based line numbers is
    added (counting the header line when present). Invalid UTF-8 is replaced
    with REPLACEMENT_CHAR; see check_encoding().

    Args:
        path: File to read
        columns: Column names for headerless files
        has_header: First line holds column names
        comment_prefix: Skip lines starting with this prefix
        tool: Tool that wrote the file, named in read failures

    Raises:
        ExternalToolFailure: The file cannot be read as delimited text
    """
    path = Path(path)
    try:
        empty = path.stat().st_size == 0
    except OSError as e:
        raise ExternalToolFailure(tool or path.name, f"missing output {path.name}: {e}") from e
    if empty:
        names = list(columns or [])
        schema = {name: pl.Utf8 for name in names}
        schema[LINE_COLUMN] = pl.UInt32
        return pl.DataFrame(schema=schema)

    try:
        df = pl.read_csv(
            path,
            separator="\t",
            has_header=has_header,
            new_columns=list(columns) if columns and not has_header else None,
            infer_schema_length=0,
            quote_char=None,
            truncate_ragged_lines=True,
            comment_prefix=comment_prefix,
            encoding="utf8-lossy",
        )
    except (pl.exceptions.PolarsError, OSError) as e:
        raise ExternalToolFailure(tool or path.name, f"unreadable output {path.name}: {e}") from e
    return df.with_row_index(LINE_COLUMN, offset=2 if has_header else 1)


def check_encoding(row: dict, source: str) -> None:
    """RowParseError if any field held bytes that are not valid UTF-8."""
    for column, value in row.items():
        if isinstance(value, str) and REPLACEMENT_CHAR in value:
            raise RowParseError(source, row[LINE_COLUMN], f"{column} is not valid UTF-8")


def row_float(row: dict, column: str, source: str) -> float:
    """Float value of a row field; RowParseError if missing or not a number."""
    value = row.get(column)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise RowParseError(source, row[LINE_COLUMN], f"{column} is not a number: {value!r}") from None
    if number != number:
        raise RowParseError(source, row[LINE_COLUMN], f"{column} is NaN")
    return number


def row_int(row: dict, column: str, source: str) -> int:
    value = row.get(column)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RowParseError(source, row[LINE_COLUMN], f"{column} is not an integer: {value!r}") from None


def row_text(row: dict, column: str, source: str) -> str:
    """Non-empty string field; RowParseError if missing."""
    value = row.get(column)
    if value is None or not str(value).strip():
        raise RowParseError(source, row[LINE_COLUMN], f"missing {column}")
    return str(value).strip()
