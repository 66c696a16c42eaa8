"""Tests for frame selection: .lst parsing and the GeneMarkS-T stage."""

from pathlib import Path
from unittest.mock import patch

import polars as pl
import pytest

from transcriptome_pipeline.config.schema import OntologySettings, PipelineConfig, SimilaritySearchSettings
from transcriptome_pipeline.errors import ExternalToolFailure, UnknownSequenceReference
from transcriptome_pipeline.execution import ProcessResult
from transcriptome_pipeline.output.report import StatisticsReport
from transcriptome_pipeline.persistence import PipelineStore, ProvenanceTracker
from transcriptome_pipeline.sequences.fasta import read_fasta
from transcriptome_pipeline.sequences.models import FrameType
from transcriptome_pipeline.sequences.selection import SelectionPolicy
from transcriptome_pipeline.sequences.store import SequenceStore
from transcriptome_pipeline.stages.base import PipelineContext, run_stage
from transcriptome_pipeline.stages.frame_selection import (
    FRAME_TABLE_NAME,
    FrameSelectionStage,
    classify_frame,
    parse_genemark_output,
    parse_lst,
)

LST = """\
# GeneMark.hmm-2 LST format
# GeneMark.hmm-2 prokaryotic version: 1.14

FASTA definition line: seq1
     Gene    Strand    LeftEnd    RightEnd       Gene     Class
      #                                         Length
      1        +          1        12            12          1

FASTA definition line: seq2
      1        +         <2        >9             8          1

FASTA definition line: seq3
      1        +         <1         6             6          1
"""

PROTEINS = ">seq1\nMKPG\n>seq2\nMFK\n>seq3\nMP\n"


def write_genemark_output(directory: Path, lst_text: str = LST, proteins: str = PROTEINS) -> None:
    (directory / "transcripts.fasta.lst").write_text(lst_text)
    (directory / "transcripts.fasta.faa").write_text(proteins)


def save_checkpoint(context) -> None:
    """Mark GeneMarkS-T output as produced under the current configuration."""
    context.pipeline_store.save_dataframe(
        pl.DataFrame({"sequence_id": ["seq1"]}), FRAME_TABLE_NAME, context.provenance.config_hash
    )


@pytest.fixture
def context(tmp_path):
    transcriptome = tmp_path / "transcripts.fasta"
    transcriptome.write_text(
        ">seq1\nATGAAACCCGGG\n>seq2\nATGTTTAAA\n>seq3\nATGCCC\n>seq4\nATGGGGCCCTTT\n"
    )
    config = PipelineConfig(
        transcriptome=transcriptome,
        output_dir=tmp_path / "out",
        duckdb_path=tmp_path / "pipeline.duckdb",
        similarity_search=SimilaritySearchSettings(enabled=False),
        ontology=OntologySettings(enabled=False),
    )
    pipeline_store = PipelineStore(config.duckdb_path)
    yield PipelineContext(
        config,
        SequenceStore.from_fasta(transcriptome),
        pipeline_store,
        ProvenanceTracker.from_config(config),
        StatisticsReport(config.output_dir),
        SelectionPolicy.from_config(config),
    )
    pipeline_store.close()


@pytest.mark.parametrize("line,expected", [
    ("1+112121", FrameType.COMPLETE),
    ("1+<2>981", FrameType.INTERNAL),
    ("1+<1661", FrameType.PARTIAL_5),
    ("1+1>12121", FrameType.PARTIAL_3),
])
def test_classify_frame(line, expected):
    assert classify_frame(line) == expected


def test_parse_lst(tmp_path):
    path = tmp_path / "t.lst"
    path.write_text(LST)

    frames, skipped = parse_lst(path)

    assert skipped == 0
    assert frames == {
        "seq1": FrameType.COMPLETE,
        "seq2": FrameType.INTERNAL,
        "seq3": FrameType.PARTIAL_5,
    }


def test_parse_lst_skips_orphan_gene_rows(tmp_path):
    path = tmp_path / "t.lst"
    path.write_text("      1   +   1   12   12   1\nFASTA definition line: seq1\n  1  +  1  >12  12  1\n")

    frames, skipped = parse_lst(path)

    assert skipped == 1
    assert frames == {"seq1": FrameType.PARTIAL_3}


def test_parse_lst_skips_invalid_utf8(tmp_path):
    path = tmp_path / "t.lst"
    path.write_bytes(
        b"FASTA definition line: seq1\n  1  +  1  12  12  1\n"
        b"FASTA definition line: seq\xff2\n  1  +  <2  >9  8  1\n"
        b"FASTA definition line: seq3\n  1  +  <1  6  6  1 \xfe\n"
    )

    frames, skipped = parse_lst(path)

    assert frames == {"seq1": FrameType.COMPLETE}
    assert skipped == 3


def test_unreadable_proteins(tmp_path):
    write_genemark_output(tmp_path)
    (tmp_path / "transcripts.fasta.faa").write_bytes(b">seq1\nMKPG\xff\n")

    with pytest.raises(ExternalToolFailure, match="transcripts.fasta.faa"):
        parse_genemark_output(tmp_path / "transcripts.fasta.faa", tmp_path / "transcripts.fasta.lst")


def test_mismatched_outputs(tmp_path):
    write_genemark_output(tmp_path, proteins=">seq1\nMKPG\n>seq2\nMFK\n")

    with pytest.raises(ExternalToolFailure, match="seq3"):
        parse_genemark_output(tmp_path / "transcripts.fasta.faa", tmp_path / "transcripts.fasta.lst")


def test_frame_selection_stage(context):
    """Predicted sequences get proteins and frames; the rest are removed."""
    stage = FrameSelectionStage(context)

    def fake_genemark(command, working_dir, log_prefix):
        assert command[1:] == ["-faa", "-fnn", "transcripts.fasta"]
        submitted = [entry.identifier for entry in read_fasta(Path(working_dir) / command[-1])]
        assert submitted == ["seq1", "seq2", "seq3", "seq4"]
        write_genemark_output(Path(working_dir))
        return ProcessResult(0, Path(f"{log_prefix}_std.out"), Path(f"{log_prefix}_std.err"))

    with patch("transcriptome_pipeline.stages.frame_selection.run.run_process", side_effect=fake_genemark):
        assert run_stage(stage) is False

    store = context.store
    assert store.get("seq1").sequence_protein == "MKPG"
    assert store.get("seq1").frame_type == FrameType.COMPLETE
    assert store.get("seq2").frame_type == FrameType.INTERNAL
    assert not store.get("seq4").frame_selected_kept
    assert store.get("seq4").expression_kept

    processed = stage.processed_dir
    assert [e.identifier for e in read_fasta(processed / "frame_selected_lost.fnn")] == ["seq4"]
    assert [e.identifier for e in read_fasta(processed / "frame_selected_complete.faa")] == ["seq1"]
    assert [e.identifier for e in read_fasta(processed / "frame_selected_partial.faa")] == ["seq3"]
    assert [e.identifier for e in read_fasta(processed / "frame_selected_internal.faa")] == ["seq2"]
    assert (stage.figures_dir / "frame_results_pie.txt").exists()

    table = context.pipeline_store.load_dataframe(FRAME_TABLE_NAME)
    assert table.height == 4
    report = context.report.read()
    assert "Total sequences frame selected: 3" in report
    assert "Total sequences removed (no frame): 1" in report


def test_frame_selection_skips_removed_sequences(context):
    """Only expression-kept sequences are submitted and flagged."""
    context.store.flag("seq4", "expression_kept", False)
    stage = FrameSelectionStage(context)
    stage.stage_dir.mkdir(parents=True)
    write_genemark_output(stage.stage_dir)
    save_checkpoint(context)

    with patch("transcriptome_pipeline.stages.frame_selection.run.run_process") as mock_run:
        assert run_stage(stage) is True

    mock_run.assert_not_called()
    assert context.store.get("seq4").frame_selected_kept
    assert context.pipeline_store.load_dataframe(FRAME_TABLE_NAME).height == 3


def test_unknown_sequence_in_lst(context):
    stage = FrameSelectionStage(context)
    stage.stage_dir.mkdir(parents=True)
    write_genemark_output(
        stage.stage_dir,
        lst_text="FASTA definition line: ghost\n 1 + 1 12 12 1\n",
        proteins=">ghost\nMKPG\n",
    )
    save_checkpoint(context)

    with pytest.raises(UnknownSequenceReference):
        run_stage(stage)

    assert not stage.lst_path.exists()
