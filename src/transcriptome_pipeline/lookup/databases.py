"""Key-value lookups over taxonomy, Gene Ontology and EggNOG tables."""

from pathlib import Path
from typing import Optional, Protocol

import structlog

from transcriptome_pipeline.persistence.duckdb_store import PipelineStore, quote_identifier

logger = structlog.get_logger()


class LookupService(Protocol):
    """Single-key lookup; returns the matching row or None."""

    def lookup(self, key: str) -> Optional[dict]:
        ...


class DuckDBLookup:
    """
    Lookup of single rows from a DuckDB table or view by key column.

    Rows are fetched one at a time as enrichment needs them; results
    (including misses) are memoised for the lifetime of the object.
    """

    def __init__(
        self,
        store: PipelineStore,
        table: str,
        key_column: str,
        case_insensitive: bool = False,
    ):
        self.store = store
        self.table = table
        self.key_column = key_column
        self._cache: dict[str, Optional[dict]] = {}
        column = quote_identifier(key_column)
        condition = f"lower({column}) = lower(?)" if case_insensitive else f"{column} = ?"
        self._query = f"SELECT * FROM {quote_identifier(table)} WHERE {condition} LIMIT 1"

    @classmethod
    def from_tsv(
        cls,
        store: PipelineStore,
        path: Path,
        view_name: str,
        key_column: str,
        case_insensitive: bool = False,
    ) -> "DuckDBLookup":
        """Register a TSV file (header row required) as a view and look up from it."""
        store.register_tsv(view_name, path)
        logger.info("lookup_registered", view=view_name, path=str(path), key=key_column)
        return cls(store, view_name, key_column, case_insensitive)

    def lookup(self, key: str) -> Optional[dict]:
        if key in self._cache:
            return self._cache[key]

        cursor = self.store.conn.execute(self._query, [key])
        row = cursor.fetchone()
        result = None
        if row is not None:
            columns = [description[0] for description in cursor.description]
            result = dict(zip(columns, row))
        self._cache[key] = result
        return result


class TaxonomyLookup:
    """
    Species -> (tax_id, lineage) lookup.

    Names are lowercased before lookup, so the service should be built with
    case_insensitive=True. When the full name is not found the
    genus-species binomial is tried before giving up.
    """

    def __init__(self, service: LookupService):
        self.service = service

    def resolve(self, species: str) -> Optional[dict]:
        name = species.strip().lower()
        if not name:
            return None
        found = self.service.lookup(name)
        if found is None:
            words = name.split()
            if len(words) > 2:
                found = self.service.lookup(" ".join(words[:2]))
        return found
