"""Tests for DuckDB-backed lookup databases."""

import polars as pl
import pytest

from transcriptome_pipeline.lookup import DuckDBLookup, TaxonomyLookup
from transcriptome_pipeline.persistence import PipelineStore

TAXONOMY_TSV = """\
species\ttax_id\tlineage
homo sapiens\t9606\tcellular organisms;eukaryota;metazoa;chordata;mammalia;homo sapiens
mus musculus\t10090\tcellular organisms;eukaryota;metazoa;chordata;mammalia;mus musculus
escherichia coli\t562\tcellular organisms;bacteria;proteobacteria;escherichia coli
"""


@pytest.fixture
def store(tmp_path):
    store = PipelineStore(tmp_path / "lookup.duckdb")
    yield store
    store.close()


@pytest.fixture
def taxonomy_file(tmp_path):
    path = tmp_path / "taxonomy.tsv"
    path.write_text(TAXONOMY_TSV)
    return path


def test_lookup_returns_row_as_dict(store, taxonomy_file):
    lookup = DuckDBLookup.from_tsv(store, taxonomy_file, "lookup_taxonomy", "species")

    row = lookup.lookup("mus musculus")

    assert row == {
        "species": "mus musculus",
        "tax_id": "10090",
        "lineage": "cellular organisms;eukaryota;metazoa;chordata;mammalia;mus musculus",
    }
    assert lookup.lookup("danio rerio") is None


def test_case_sensitivity(store, taxonomy_file):
    exact = DuckDBLookup.from_tsv(store, taxonomy_file, "lookup_exact", "species")
    relaxed = DuckDBLookup.from_tsv(
        store, taxonomy_file, "lookup_relaxed", "species", case_insensitive=True
    )

    assert exact.lookup("Homo Sapiens") is None
    assert relaxed.lookup("Homo Sapiens")["tax_id"] == "9606"


def test_results_are_memoised(store, taxonomy_file):
    """Hits and misses are answered from memory once looked up."""
    lookup = DuckDBLookup.from_tsv(store, taxonomy_file, "lookup_taxonomy", "species")
    assert lookup.lookup("homo sapiens")["tax_id"] == "9606"
    assert lookup.lookup("danio rerio") is None

    # The view rescans the file on every query
    taxonomy_file.write_text("species\ttax_id\tlineage\ndanio rerio\t7955\teukaryota\n")

    assert lookup.lookup("homo sapiens")["tax_id"] == "9606"
    assert lookup.lookup("danio rerio") is None
    assert DuckDBLookup(store, "lookup_taxonomy", "species").lookup("danio rerio")["tax_id"] == "7955"


def test_lookup_over_saved_table(store):
    store.save_dataframe(
        pl.DataFrame({"go_id": ["GO:0008150"], "category": ["biological_process"], "level": ["1"]}),
        "go_terms",
    )
    lookup = DuckDBLookup(store, "go_terms", "go_id")

    assert lookup.lookup("GO:0008150")["category"] == "biological_process"


# ============================================================================
# Taxonomy resolution
# ============================================================================

@pytest.fixture
def taxonomy(store, taxonomy_file):
    return TaxonomyLookup(
        DuckDBLookup.from_tsv(store, taxonomy_file, "lookup_taxonomy", "species", case_insensitive=True)
    )


def test_taxonomy_resolves_lowercased_name(taxonomy):
    assert taxonomy.resolve("  Homo sapiens ")["tax_id"] == "9606"


def test_taxonomy_falls_back_to_binomial(taxonomy):
    found = taxonomy.resolve("Escherichia coli O157:H7 str. Sakai")

    assert found["tax_id"] == "562"


def test_taxonomy_unknown_species(taxonomy):
    assert taxonomy.resolve("Danio rerio") is None
    assert taxonomy.resolve("Danio rerio strain AB") is None
    assert taxonomy.resolve("   ") is None
