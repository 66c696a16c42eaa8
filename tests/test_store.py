"""Tests for FASTA loading and SequenceStore views."""

import pytest

from transcriptome_pipeline.errors import DuplicateIdentifier, UnknownSequenceReference
from transcriptome_pipeline.sequences.fasta import (
    FastaEntry,
    is_protein_input,
    read_fasta,
    record_entries,
    write_fasta,
)
from transcriptome_pipeline.sequences.models import SequenceRecord, SimilaritySearchHit, Stage
from transcriptome_pipeline.sequences.store import (
    SequenceStore,
    hit_in,
    is_expression_kept,
    is_frame_kept,
    no_hit_in,
)


@pytest.fixture
def nucleotide_fasta(tmp_path):
    path = tmp_path / "transcripts.fasta"
    path.write_text(
        ">seq1 length=12 sample A\nATGAAACCCGGG\n"
        ">seq2\natgtttttt\nTAA\n"
        ">seq3\nATGCCC\n"
    )
    return path


@pytest.fixture
def store(nucleotide_fasta):
    return SequenceStore.from_fasta(nucleotide_fasta)


def test_read_fasta_trims_headers(nucleotide_fasta):
    entries = list(read_fasta(nucleotide_fasta))

    assert [entry.identifier for entry in entries] == ["seq1", "seq2", "seq3"]
    assert entries[1].sequence == "ATGTTTTTTTAA"


def test_read_fasta_full_headers(nucleotide_fasta):
    entries = list(read_fasta(nucleotide_fasta, trim_headers=False))

    assert entries[0].identifier == "seq1 length=12 sample A"


def test_protein_detection():
    assert not is_protein_input(["ATGAAACCCGGGTTT", "ACGTN"])
    assert is_protein_input(["MKVLAAGIVGLLLAQ", "MSTNPKPQRKTKRNT"])
    assert not is_protein_input([])


def test_write_fasta_round_trip(tmp_path):
    path = tmp_path / "nested" / "out.faa"
    count = write_fasta(path, [FastaEntry("p1", "MKV"), FastaEntry("p2", "MSTN")])

    assert count == 2
    assert list(read_fasta(path)) == [FastaEntry("p1", "MKV"), FastaEntry("p2", "MSTN")]


def test_from_fasta_preserves_order(store):
    assert len(store) == 3
    assert [record.identifier for record in store] == ["seq1", "seq2", "seq3"]
    assert not store.is_protein
    assert store.get("seq1").length == 12
    assert store.get("seq1").sequence_protein is None


def test_protein_store(tmp_path):
    path = tmp_path / "proteins.faa"
    path.write_text(">p1\nMKVLAAGIVGLLLAQ*\n>p2\nMSTNPKPQRKTKRNT\n")

    store = SequenceStore.from_fasta(path)

    assert store.is_protein
    assert store.get("p1").is_protein
    assert store.get("p1").sequence_protein == "MKVLAAGIVGLLLAQ"
    assert store.get("p1").length == 15


def test_duplicate_identifier(tmp_path):
    path = tmp_path / "dup.fasta"
    path.write_text(">seq1\nATG\n>seq1\nCCC\n")

    with pytest.raises(DuplicateIdentifier, match="seq1"):
        SequenceStore.from_fasta(path)


def test_unknown_identifier(store):
    with pytest.raises(UnknownSequenceReference) as exc_info:
        store.get("missing", "rsem.genes.results")

    assert exc_info.value.identifier == "missing"
    assert "rsem.genes.results" in str(exc_info.value)

    with pytest.raises(UnknownSequenceReference):
        store.flag("missing", "expression_kept", False)


def test_filtered_view_reflects_flags(store):
    """Views are lazy: flags set after creation are visible on iteration."""
    kept = store.filtered_view(is_expression_kept)
    assert kept.identifiers() == ["seq1", "seq2", "seq3"]

    store.flag("seq2", "expression_kept", False)
    store.flag("seq3", "frame_selected_kept", False)

    assert kept.identifiers() == ["seq1", "seq3"]
    assert len(kept) == 2
    assert store.filtered_view(is_frame_kept).identifiers() == ["seq1"]
    assert store.lengths(is_frame_kept) == [12]


def test_view_filter_narrows(store):
    hit = SimilaritySearchHit(database="nr", target_id="XP_1", evalue=1e-30, coverage=80.0)
    store.get("seq3").add_alignment(Stage.SIMILARITY_SEARCH, "diamond", "nr", hit)

    view = store.filtered_view(is_frame_kept)
    with_hits = view.filter(hit_in(Stage.SIMILARITY_SEARCH, "diamond", "nr"))
    without_hits = view.filter(no_hit_in(Stage.SIMILARITY_SEARCH))

    assert with_hits.identifiers() == ["seq3"]
    assert without_hits.identifiers() == ["seq1", "seq2"]
    assert not view.filter(hit_in(Stage.FUNCTIONAL_ANNOTATION))


def test_load_rejects_duplicates():
    records = [SequenceRecord(identifier="a"), SequenceRecord(identifier="a")]
    with pytest.raises(DuplicateIdentifier):
        SequenceStore.load(records)


def test_record_entries_skip_missing_type(store):
    entries = list(record_entries(store, protein=True))
    assert entries == []

    store.get("seq1").sequence_protein = "MKPG"
    assert list(record_entries(store, protein=True)) == [FastaEntry("seq1", "MKPG")]
