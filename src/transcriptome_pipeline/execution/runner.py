"""Blocking execution of external tools with captured output streams."""

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import structlog

from transcriptome_pipeline.errors import ExternalToolFailure

logger = structlog.get_logger()

# Characters of stderr carried in ExternalToolFailure messages
STDERR_EXCERPT_CHARS = 2000


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and captured stream files of one external tool run."""

    exit_code: int
    stdout_path: Path
    stderr_path: Path

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def stderr_excerpt(self, limit: int = STDERR_EXCERPT_CHARS) -> str:
        """Last `limit` characters of the captured stderr."""
        if not self.stderr_path.exists():
            return ""
        text = self.stderr_path.read_text(errors="replace")
        return text[-limit:].strip()

    def check(self, tool: str) -> "ProcessResult":
        """
        Return self if the tool exited 0.

        Raises:
            ExternalToolFailure: Non-zero exit code
        """
        if not self.succeeded:
            raise ExternalToolFailure(tool, self.stderr_excerpt(), self.exit_code)
        return self


def run_process(
    command: Sequence[str] | str,
    working_dir: Path,
    log_prefix: Path,
) -> ProcessResult:
    """
    Run a command to completion.

    stdout and stderr are written to <log_prefix>_std.out and
    <log_prefix>_std.err. The call blocks until the process exits; no
    timeout is applied.

    Args:
        command: Argument list, or a command string split with shlex
        working_dir: Directory the process runs in
        log_prefix: Path prefix for the captured stream files

    Raises:
        ExternalToolFailure: The executable could not be started
    """
    args = shlex.split(command) if isinstance(command, str) else [str(arg) for arg in command]
    log_prefix = Path(log_prefix)
    log_prefix.parent.mkdir(parents=True, exist_ok=True)
    stdout_path = log_prefix.parent / f"{log_prefix.name}_std.out"
    stderr_path = log_prefix.parent / f"{log_prefix.name}_std.err"

    logger.info("process_start", command=shlex.join(args), working_dir=str(working_dir))
    with open(stdout_path, "w") as stdout_file, open(stderr_path, "w") as stderr_file:
        try:
            completed = subprocess.run(
                args,
                cwd=working_dir,
                stdout=stdout_file,
                stderr=stderr_file,
                check=False,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ExternalToolFailure(args[0], f"unable to start executable: {e}") from e

    logger.info(
        "process_complete",
        executable=args[0],
        exit_code=completed.returncode,
        stderr=str(stderr_path),
    )
    return ProcessResult(completed.returncode, stdout_path, stderr_path)
