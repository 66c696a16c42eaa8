"""Tests for SequenceRecord evidence handling and flags."""

import dataclasses

import pytest

from transcriptome_pipeline.errors import NoAlignmentFound
from transcriptome_pipeline.sequences.models import (
    DomainScanHit,
    EvidenceKey,
    GoTerm,
    OrthologHit,
    SequenceRecord,
    SimilaritySearchHit,
    Stage,
)

SIM = Stage.SIMILARITY_SEARCH


def make_hit(target_id, evalue=1e-20, coverage=90.0, database="nr", **kwargs):
    return SimilaritySearchHit(
        database=database,
        target_id=target_id,
        evalue=evalue,
        coverage=coverage,
        description=kwargs.pop("description", f"{target_id} protein [Homo sapiens]"),
        **kwargs,
    )


@pytest.fixture
def record():
    return SequenceRecord(identifier="seq1", sequence_nucleotide="ATGGCC", length=6)


def test_add_alignment_and_best_hit(record):
    """Best hit of a key is the better of its results."""
    worse = make_hit("B", evalue=1e-5, coverage=50.0)
    better = make_hit("A", evalue=1e-50, coverage=95.0)
    record.add_alignment(SIM, "diamond", "nr", worse)
    record.add_alignment(SIM, "diamond", "nr", better)

    assert record.hit_database(SIM, "diamond", "nr")
    assert record.hit_stage(SIM)
    assert not record.hit_stage(Stage.FUNCTIONAL_ANNOTATION)
    assert record.get_best_hit(SIM, "diamond", "nr") is better
    assert record.evidence_keys() == [EvidenceKey(SIM, "diamond", "nr")]


def test_best_hit_recomputed_after_new_alignment(record):
    """Adding a result drops the cached best hit of its key."""
    first = make_hit("B", evalue=1e-5, coverage=50.0)
    record.add_alignment(SIM, "diamond", "nr", first)
    assert record.get_best_hit(SIM, "diamond", "nr") is first
    assert record.get_best_overall(SIM) is first

    better = make_hit("A", evalue=1e-100, coverage=99.0)
    record.add_alignment(SIM, "diamond", "nr", better)

    assert record.get_best_hit(SIM, "diamond", "nr") is better
    assert record.get_best_overall(SIM) is better


def test_best_overall_across_databases(record):
    nr_hit = make_hit("A", evalue=1e-10, coverage=60.0, database="nr")
    uniprot_hit = make_hit("B", evalue=1e-90, coverage=98.0, database="uniprot")
    record.add_alignment(SIM, "diamond", "nr", nr_hit)
    record.add_alignment(SIM, "diamond", "uniprot", uniprot_hit)

    assert record.get_best_hit(SIM, "diamond", "nr") is nr_hit
    assert record.get_best_overall(SIM, "diamond") is uniprot_hit


def test_no_alignment_raises(record):
    with pytest.raises(NoAlignmentFound):
        record.get_best_hit(SIM, "diamond", "nr")
    with pytest.raises(NoAlignmentFound):
        record.get_best_overall(SIM)


def test_alignments_returns_copy(record):
    record.add_alignment(SIM, "diamond", "nr", make_hit("A"))
    alignments = record.alignments(SIM, "diamond", "nr")
    alignments.clear()

    assert len(record.alignments(SIM, "diamond", "nr")) == 1


def test_enrich_best_hit_replaces_once(record):
    """Enrichment swaps the best hit for its enriched copy exactly once."""
    best = make_hit("A", evalue=1e-60)
    other = make_hit("B", evalue=1e-3, coverage=50.0)
    record.add_alignment(SIM, "diamond", "nr", best)
    record.add_alignment(SIM, "diamond", "nr", other)

    enriched = dataclasses.replace(best, lineage="eukaryota;metazoa", tax_id="9606")
    record.enrich_best_hit(SIM, "diamond", "nr", enriched)

    assert record.is_enriched(SIM, "diamond", "nr")
    assert record.get_best_hit(SIM, "diamond", "nr") is enriched
    assert record.alignments(SIM, "diamond", "nr") == [enriched, other]

    with pytest.raises(ValueError, match="already enriched"):
        record.enrich_best_hit(SIM, "diamond", "nr", enriched)


def test_kept_flags_only_clear(record):
    """Kept flags go from True to False and never back."""
    record.set_flag("expression_kept", False)
    assert not record.expression_kept
    assert not record.is_kept

    with pytest.raises(ValueError, match="cannot be reset"):
        record.set_flag("expression_kept", True)

    record.set_flag("is_contaminant", True)
    record.set_flag("is_contaminant", False)
    assert not record.is_contaminant


def test_unknown_flag(record):
    with pytest.raises(ValueError, match="Unknown sequence flag"):
        record.set_flag("annotated", True)


def test_gc_percent():
    record = SequenceRecord(identifier="gc", sequence_nucleotide="ATGC", length=4)
    assert record.gc_percent == 50.0
    assert SequenceRecord(identifier="p", sequence_protein="MKV", length=3).gc_percent is None


def test_go_term_label():
    assert GoTerm("GO:0005515", "protein binding", "molecular_function", 3).label() == (
        "GO:0005515-protein binding(L=3)"
    )
    assert GoTerm("GO:0005515").label() == "GO:0005515"


def test_hits_are_immutable():
    hit = make_hit("A")
    with pytest.raises(dataclasses.FrozenInstanceError):
        hit.species = "Homo sapiens"


def test_variant_kinds():
    assert make_hit("A").kind == "similarity_search"
    assert OrthologHit(database="eggnog", target_id="x", evalue=1e-5).kind == "ortholog"
    assert DomainScanHit(database="interpro", target_id="PF1", evalue=1e-5).kind == "domain_scan"
    assert make_hit("A", evalue=1.5e-30).evalue_display == "1.50e-30"
