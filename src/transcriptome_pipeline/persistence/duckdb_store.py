"""DuckDB-backed storage for best hit tables and lookup views."""

from pathlib import Path
from typing import Optional

import duckdb
import polars as pl


def quote_identifier(name: str) -> str:
    """Quote a table/view name for interpolation into SQL."""
    return '"' + name.replace('"', '""') + '"'


class PipelineStore:
    """
    DuckDB database holding the tables a run produces.

    Each stage saves its reduced per-sequence results (best hits, frame
    calls, expression values) as a table. A _checkpoints metadata table keyed
    by table name records the config hash the table was produced with, so a
    resumed run can tell whether a table is still valid. Lookup TSV files are
    registered here as views and queried without loading them into Python.
    """

    def __init__(self, db_path: Path):
        """
        Open (or create) the DuckDB database.

        Args:
            db_path: Path to DuckDB database file. Parent directories
                     are created automatically.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = duckdb.connect(str(self.db_path))

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS _checkpoints (
                table_name VARCHAR PRIMARY KEY,
                config_hash VARCHAR,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                row_count INTEGER,
                description VARCHAR
            )
        """)

    def save_dataframe(
        self,
        df: pl.DataFrame,
        table_name: str,
        config_hash: str = "",
        description: str = "",
    ) -> None:
        """
        Save a polars DataFrame as a table, replacing any previous version.

        Args:
            df: Table contents
            table_name: Name for the DuckDB table
            config_hash: Hash of the configuration that produced the table
            description: Optional description for checkpoint metadata
        """
        self.conn.register("_incoming", df.to_arrow())
        try:
            self.conn.execute(
                f"CREATE OR REPLACE TABLE {quote_identifier(table_name)} AS SELECT * FROM _incoming"
            )
        finally:
            self.conn.unregister("_incoming")

        self.conn.execute("""
            INSERT OR REPLACE INTO _checkpoints
                (table_name, config_hash, row_count, description, created_at)
            VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
        """, [table_name, config_hash, len(df), description])

    def load_dataframe(self, table_name: str) -> Optional[pl.DataFrame]:
        """
        Load a table as a polars DataFrame.

        Returns:
            DataFrame or None if the table doesn't exist
        """
        try:
            return self.conn.execute(f"SELECT * FROM {quote_identifier(table_name)}").pl()
        except duckdb.CatalogException:
            return None

    def has_checkpoint(self, table_name: str, config_hash: Optional[str] = None) -> bool:
        """
        Check if a checkpoint exists.

        Args:
            table_name: Name of the table to check
            config_hash: When given, the checkpoint must have been produced
                with this configuration

        Returns:
            True if checkpoint exists, False otherwise
        """
        if config_hash is None:
            row = self.conn.execute(
                "SELECT COUNT(*) FROM _checkpoints WHERE table_name = ?",
                [table_name],
            ).fetchone()
        else:
            row = self.conn.execute(
                "SELECT COUNT(*) FROM _checkpoints WHERE table_name = ? AND config_hash = ?",
                [table_name, config_hash],
            ).fetchone()
        return row[0] > 0

    def list_checkpoints(self) -> list[dict]:
        """
        List all checkpoints with metadata.

        Returns:
            List of dicts with keys table_name, config_hash, created_at,
            row_count, description
        """
        rows = self.conn.execute("""
            SELECT table_name, config_hash, created_at, row_count, description
            FROM _checkpoints
            ORDER BY created_at DESC, table_name
        """).fetchall()
        return [
            {
                "table_name": row[0],
                "config_hash": row[1],
                "created_at": row[2],
                "row_count": row[3],
                "description": row[4],
            }
            for row in rows
        ]

    def delete_checkpoint(self, table_name: str) -> None:
        self.conn.execute(f"DROP TABLE IF EXISTS {quote_identifier(table_name)}")
        self.conn.execute("DELETE FROM _checkpoints WHERE table_name = ?", [table_name])

    def register_tsv(self, view_name: str, path: Path) -> None:
        """
        Expose a tab-delimited file with a header row as a view.

        Every column is read as VARCHAR; the file is scanned by DuckDB on each
        query and never loaded into Python memory.
        """
        path_literal = str(Path(path)).replace("'", "''")
        self.conn.execute(
            f"CREATE OR REPLACE VIEW {quote_identifier(view_name)} AS "
            f"SELECT * FROM read_csv('{path_literal}', delim='\\t', header=true, "
            f"all_varchar=true, quote='')"
        )

    def export_parquet(self, table_name: str, output_path: Path) -> None:
        """
        Export a table to Parquet format.

        Args:
            table_name: Name of the table to export
            output_path: Path to output Parquet file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        path_literal = str(output_path).replace("'", "''")
        self.conn.execute(
            f"COPY {quote_identifier(table_name)} TO '{path_literal}' (FORMAT PARQUET)"
        )

    def close(self) -> None:
        """Close the DuckDB connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @classmethod
    def from_config(cls, config: "PipelineConfig") -> "PipelineStore":
        return cls(config.duckdb_path)
