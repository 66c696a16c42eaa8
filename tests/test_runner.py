"""Tests for external process execution."""

import pytest

from transcriptome_pipeline.errors import ExternalToolFailure
from transcriptome_pipeline.execution import ProcessResult, run_process


def test_run_process_captures_streams(tmp_path):
    result = run_process(
        ["sh", "-c", "echo annotated; echo warning >&2"],
        working_dir=tmp_path,
        log_prefix=tmp_path / "logs" / "diamond",
    )

    assert result.succeeded
    assert result.stdout_path == tmp_path / "logs" / "diamond_std.out"
    assert result.stdout_path.read_text() == "annotated\n"
    assert result.stderr_path.read_text() == "warning\n"
    assert result.check("diamond") is result


def test_run_process_uses_working_dir(tmp_path):
    work = tmp_path / "work"
    work.mkdir()

    run_process("sh -c 'echo x > marker.txt'", working_dir=work, log_prefix=tmp_path / "sh")

    assert (work / "marker.txt").read_text() == "x\n"


def test_check_raises_on_nonzero_exit(tmp_path):
    result = run_process(
        ["sh", "-c", "echo 'database not found' >&2; exit 3"],
        working_dir=tmp_path,
        log_prefix=tmp_path / "rsem",
    )

    assert result.exit_code == 3
    assert not result.succeeded
    with pytest.raises(ExternalToolFailure) as excinfo:
        result.check("rsem")

    assert excinfo.value.tool == "rsem"
    assert excinfo.value.exit_code == 3
    assert excinfo.value.stderr_excerpt == "database not found"
    assert "rsem failed with exit code 3" in str(excinfo.value)


def test_missing_executable(tmp_path):
    with pytest.raises(ExternalToolFailure, match="unable to start executable"):
        run_process(
            ["definitely-not-an-installed-tool-7f3a"],
            working_dir=tmp_path,
            log_prefix=tmp_path / "missing",
        )


def test_stderr_excerpt_keeps_tail(tmp_path):
    stderr = tmp_path / "x_std.err"
    stderr.write_text("a" * 50 + "tail of the log\n")
    result = ProcessResult(1, tmp_path / "x_std.out", stderr)

    assert result.stderr_excerpt(limit=16) == "tail of the log"
    assert ProcessResult(1, tmp_path / "o", tmp_path / "missing").stderr_excerpt() == ""
