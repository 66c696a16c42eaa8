"""Tests for alignment table writers and the run statistics report."""

from datetime import datetime

import polars as pl
import pytest
import yaml

from transcriptome_pipeline.output.headers import (
    SIMILARITY_HEADERS,
    Header,
    HeaderContext,
    ordered,
)
from transcriptome_pipeline.output.report import StatisticsReport, final_statistics
from transcriptome_pipeline.output.writers import emit_alignment_tables, write_provenance_yaml
from transcriptome_pipeline.sequences.fasta import read_fasta
from transcriptome_pipeline.sequences.models import (
    FrameType,
    GoTerm,
    OrthologHit,
    SequenceRecord,
    SimilaritySearchHit,
    Stage,
)
from transcriptome_pipeline.sequences.store import SequenceStore


def read_tsv(path):
    return pl.read_csv(path, separator="\t", infer_schema_length=0).fill_null("")


@pytest.fixture
def store():
    """Three records: one with a hit, one without, one filtered out."""
    hit_record = SequenceRecord(
        identifier="seq1",
        sequence_nucleotide="ATGAAACCC",
        sequence_protein="MKP",
        length=9,
        frame_type=FrameType.COMPLETE,
        expression_fpkm=12.5,
    )
    hit_record.add_alignment(Stage.SIMILARITY_SEARCH, "diamond", "nr", SimilaritySearchHit(
        database="nr",
        target_id="XP_001",
        evalue=2e-40,
        percent_identity=88.5,
        coverage=95.0,
        description="heat shock protein 70 [Homo sapiens]",
        species="Homo sapiens",
        alignment_length=120,
    ))
    no_hit = SequenceRecord(identifier="seq2", sequence_nucleotide="ATGTTT", length=6)
    removed = SequenceRecord(identifier="seq3", sequence_nucleotide="ATGCCC", length=6)
    removed.set_flag("expression_kept", False)
    return SequenceStore.load([hit_record, no_hit, removed])


def test_tsv_rows_and_empty_fields(store, tmp_path):
    """Rows hold every header; fields without evidence are empty."""
    paths = emit_alignment_tables(list(store)[:2], SIMILARITY_HEADERS, ["tsv"], tmp_path / "hits")

    df = read_tsv(paths["tsv"])
    assert paths["tsv"] == tmp_path / "hits.tsv"
    assert df.columns == [header.title for header in SIMILARITY_HEADERS]
    assert df["Query Sequence"].to_list() == ["seq1", "seq2"]

    first = df.row(0, named=True)
    assert first["Subject Sequence"] == "XP_001"
    assert first["E Value"] == "2.00e-40"
    assert first["Percentage of Identical Matches"] == "88.5"
    assert first["Species"] == "Homo sapiens"
    assert first["Informative"] == "Yes"
    assert df.row(1, named=True)["Subject Sequence"] == ""


def test_csv_output(store, tmp_path):
    headers = ordered([Header.DESCRIPTION, Header.QUERY])
    paths = emit_alignment_tables(store, headers, ["csv"], tmp_path / "hits")

    df = pl.read_csv(paths["csv"], infer_schema_length=0).fill_null("")
    assert df.columns == ["Query Sequence", "Description"]
    assert df.row(0) == ("seq1", "heat shock protein 70 [Homo sapiens]")


def test_fasta_skips_missing_sequences(store, tmp_path):
    paths = emit_alignment_tables(store, [Header.QUERY], ["faa", "fnn"], tmp_path / "out" / "seqs")

    assert [entry.identifier for entry in read_fasta(paths["faa"])] == ["seq1"]
    assert [entry.identifier for entry in read_fasta(paths["fnn"])] == ["seq1", "seq2", "seq3"]


def test_unknown_format(store, tmp_path):
    with pytest.raises(ValueError, match="Unknown output format"):
        emit_alignment_tables(store, [Header.QUERY], ["xlsx"], tmp_path / "hits")


def test_frame_and_fpkm_columns(store, tmp_path):
    paths = emit_alignment_tables(store, [Header.QUERY, Header.FRAME, Header.FPKM], ["tsv"], tmp_path / "t")

    df = read_tsv(paths["tsv"])
    assert df.row(0) == ("seq1", "Complete", "12.5")
    assert df.row(1) == ("seq2", "", "")


def test_go_columns_respect_level(tmp_path):
    record = SequenceRecord(identifier="p1", sequence_protein="MKV", length=3, is_protein=True)
    record.add_alignment(Stage.FUNCTIONAL_ANNOTATION, "eggnog", "eggnog", OrthologHit(
        database="eggnog",
        target_id="9606.ENSP1",
        evalue=1e-30,
        go_terms=(
            GoTerm("GO:0008150", "biological_process", "biological_process", 1),
            GoTerm("GO:0006457", "protein folding", "biological_process", 3),
            GoTerm("GO:0005737", "cytoplasm", "cellular_component", 3),
        ),
    ))
    headers = [Header.QUERY, Header.EGG_GO_BIOLOGICAL, Header.EGG_GO_CELLULAR]

    all_levels = read_tsv(emit_alignment_tables([record], headers, ["tsv"], tmp_path / "l0")["tsv"])
    level3 = read_tsv(emit_alignment_tables(
        [record], headers, ["tsv"], tmp_path / "l3", HeaderContext(go_level=3)
    )["tsv"])

    assert all_levels.row(0)[1] == (
        "GO:0008150-biological_process(L=1),GO:0006457-protein folding(L=3)"
    )
    assert level3.row(0)[1] == "GO:0006457-protein folding(L=3)"
    assert level3.row(0)[2] == "GO:0005737-cytoplasm(L=3)"


def test_provenance_yaml(tmp_path):
    output = tmp_path / "final_annotations.tsv"
    sidecar = write_provenance_yaml(output, [tmp_path / "a.tsv"], {"annotated": 2}, config_hash="abc")

    assert sidecar == tmp_path / "final_annotations.provenance.yaml"
    data = yaml.safe_load(sidecar.read_text())
    assert data["output_files"] == ["a.tsv"]
    assert data["statistics"] == {"annotated": 2}
    assert data["config_hash"] == "abc"


def test_statistics_report_appends(tmp_path):
    report = StatisticsReport(tmp_path, timestamp=datetime(2024, 5, 1, 9, 30, 0))

    report.write_section("First", "line one")
    report.record_skipped_rows("nr.out", 2)
    report.record_skipped_rows("nr.out", 0)
    report.write_section("Second")

    assert report.path.name == "log_file_2024.05.01-09h30m00s.txt"
    text = report.read()
    assert text.index("First") < text.index("Skipped 2 malformed row(s) in nr.out") < text.index("Second")
    assert report.skipped_rows == {"nr.out": 2}


def test_final_statistics(store, tmp_path):
    """Annotated/unannotated partition covers every kept record."""
    report = StatisticsReport(tmp_path)
    headers = ordered([Header.QUERY, Header.FRAME, *SIMILARITY_HEADERS])

    summary = final_statistics(store, report, tmp_path / "final", headers, ["tsv", "faa"], go_levels=[1])

    assert summary.total_input == 3
    assert summary.removed_expression == 1
    assert summary.kept == 2
    assert summary.annotated == 1
    assert summary.unannotated == 1
    assert summary.annotated + summary.unannotated == summary.kept

    final = tmp_path / "final"
    assert read_tsv(final / "final_annotated.tsv")["Query Sequence"].to_list() == ["seq1"]
    assert read_tsv(final / "final_unannotated.tsv")["Query Sequence"].to_list() == ["seq2"]
    assert read_tsv(final / "final_annotations_lvl0.tsv").height == 2
    assert (final / "final_annotations_lvl1.tsv").exists()
    assert (final / "final_annotated.faa").exists()
    assert (final / "final_annotations.provenance.yaml").exists()
    assert "Total sequences annotated: 1" in report.read()
