"""Integration tests for the CLI using CliRunner.

Tests:
- --help for the group and the run command
- stats on nucleotide and protein FASTA files
- info with a valid and an invalid config
- run failing on a missing database
- run with --set config overrides
"""

from pathlib import Path
from unittest.mock import patch

import polars as pl
import pytest
from click.testing import CliRunner

from transcriptome_pipeline.cli.main import cli
from transcriptome_pipeline.config import load_config
from transcriptome_pipeline.execution import ProcessResult
from transcriptome_pipeline.persistence import PipelineStore


@pytest.fixture
def transcriptome(tmp_path):
    path = tmp_path / "transcripts.fasta"
    path.write_text(">seq1 len=100\n" + "ATGC" * 25 + "\n>seq2\n" + "ATGC" * 10 + "\n")
    return path


@pytest.fixture
def test_config(tmp_path, transcriptome):
    """Create minimal config YAML for testing."""
    database = tmp_path / "nr.dmnd"
    database.write_text("")
    config_path = tmp_path / "test_config.yaml"
    config_path.write_text(f"""
transcriptome: {transcriptome}
output_dir: {tmp_path}/results
duckdb_path: {tmp_path}/results/pipeline.duckdb
threads: 2

similarity_search:
  databases:
    - {database}
  evalue: 1.0e-10

ontology:
  enabled: false
""")
    return config_path


def test_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])

    assert result.exit_code == 0
    assert 'run' in result.output
    assert 'info' in result.output
    assert 'stats' in result.output


def test_run_help_lists_stages():
    runner = CliRunner()
    result = runner.invoke(cli, ['run', '--help'])

    assert result.exit_code == 0
    assert '--skip-stage' in result.output
    assert '--overwrite' in result.output


def test_stats_nucleotide(transcriptome):
    runner = CliRunner()
    result = runner.invoke(cli, ['stats', str(transcriptome)])

    assert result.exit_code == 0
    assert 'Input type: Nucleotide' in result.output
    assert 'Total length of transcriptome(bp): 140' in result.output
    assert 'n50: 100' in result.output


def test_stats_protein(tmp_path):
    proteins = tmp_path / "proteins.faa"
    proteins.write_text(">p1\nMKVLHEEPRSWQ\n")

    runner = CliRunner()
    result = runner.invoke(cli, ['stats', str(proteins)])

    assert result.exit_code == 0
    assert 'Input type: Protein' in result.output


def test_stats_empty_file(tmp_path):
    empty = tmp_path / "empty.fasta"
    empty.write_text("")

    runner = CliRunner()
    result = runner.invoke(cli, ['stats', str(empty)])

    assert result.exit_code == 1


def test_info(test_config):
    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'info'])

    assert result.exit_code == 0
    assert 'Config Hash:' in result.output
    assert 'Similarity search: on (1 database(s), E-value 1e-10)' in result.output
    assert 'Functional annotation: off' in result.output
    assert 'diamond: diamond' in result.output


def test_info_invalid_config(tmp_path):
    config_path = tmp_path / "bad.yaml"
    config_path.write_text(f"transcriptome: {tmp_path}/missing.fasta\noutput_dir: {tmp_path}\n")

    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(config_path), 'info'])

    assert result.exit_code == 1
    assert 'Error loading config' in result.output


def test_run_missing_database(test_config, tmp_path):
    (tmp_path / "nr.dmnd").unlink()

    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'run'])

    assert result.exit_code == 1
    assert 'Pipeline failed' in result.output
    assert 'nr.dmnd' in result.output


def test_run_rejects_unknown_stage(test_config):
    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'run', '--skip-stage', 'blast'])

    assert result.exit_code == 2


def test_info_lists_checkpoints(test_config):
    config = load_config(test_config)
    with PipelineStore(config.duckdb_path) as store:
        store.save_dataframe(pl.DataFrame({"sequence_id": ["seq1", "seq2"]}), "expression_fpkm", config.config_hash())
        store.save_dataframe(pl.DataFrame({"sequence_id": ["seq1"]}), "frame_selection", "old-hash")

    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'info'])

    assert result.exit_code == 0
    assert 'Checkpoints:' in result.output
    assert 'expression_fpkm: 2 rows (current)' in result.output
    assert 'frame_selection: 1 rows (stale)' in result.output


def test_run_with_overrides(test_config):
    commands = []

    def fake_diamond(command, working_dir, log_prefix):
        commands.append(command)
        Path(command[command.index("-o") + 1]).write_text("")
        return ProcessResult(0, Path(f"{log_prefix}_std.out"), Path(f"{log_prefix}_std.err"))

    runner = CliRunner()
    with patch("transcriptome_pipeline.stages.similarity_search.run.run_process", side_effect=fake_diamond):
        result = runner.invoke(cli, [
            '--config', str(test_config), 'run',
            '--set', 'frame_selection.enabled=false',
            '--set', 'similarity_search.evalue=0.001',
        ])

    assert result.exit_code == 0, result.output
    assert len(commands) == 1
    assert commands[0][1] == "blastx"
    assert commands[0][commands[0].index("--evalue") + 1] == "0.001"
    assert 'Override: similarity_search.evalue = 0.001' in result.output
    assert 'Stages not run: expression, frame_selection, eggnog, interpro' in result.output


def test_run_rejects_malformed_override(test_config):
    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'run', '--set', 'threads'])

    assert result.exit_code == 2
    assert 'KEY=VALUE' in result.output


def test_run_rejects_unknown_override_key(test_config):
    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'run', '--set', 'similarity_search.evalu=1'])

    assert result.exit_code == 1
    assert 'Unknown configuration key: similarity_search.evalu' in result.output
