"""Stage protocol: verify previous output, execute the tool, parse results."""

import shutil
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from transcriptome_pipeline.config.schema import PipelineConfig
from transcriptome_pipeline.errors import PipelineError, RowParseError
from transcriptome_pipeline.output.report import StatisticsReport
from transcriptome_pipeline.persistence import PipelineStore, ProvenanceTracker
from transcriptome_pipeline.sequences.models import Stage
from transcriptome_pipeline.sequences.selection import SelectionPolicy
from transcriptome_pipeline.sequences.store import SequenceStore

logger = structlog.get_logger()


@dataclass
class PipelineContext:
    """
    Everything a stage needs, passed explicitly.

    Attributes:
        config: Immutable run configuration
        store: Query sequences of the run
        pipeline_store: DuckDB store for result tables and lookup views
        provenance: Provenance tracker for the run
        report: Run-level statistics log
        policy: Best hit ordering
    """

    config: PipelineConfig
    store: SequenceStore
    pipeline_store: PipelineStore
    provenance: ProvenanceTracker
    report: StatisticsReport
    policy: SelectionPolicy


@dataclass(frozen=True)
class VerifyResult:
    """Outcome of checking for reusable output of a previous run."""

    already_done: bool
    output_paths: list[Path] = field(default_factory=list)


def file_is_valid(path: Path) -> bool:
    """Exists and is non-empty."""
    path = Path(path)
    return path.is_file() and path.stat().st_size > 0


def tsv_is_complete(path: Path) -> bool:
    """Non-empty and ends with a newline (a killed writer leaves a partial last line)."""
    if not file_is_valid(path):
        return False
    with open(path, "rb") as f:
        f.seek(-1, 2)
        return f.read(1) == b"\n"


def xml_is_well_formed(path: Path) -> bool:
    if not file_is_valid(path):
        return False
    try:
        ET.parse(path)
    except ET.ParseError:
        return False
    return True


def lst_has_record(path: Path) -> bool:
    """GeneMarkS-T .lst file holds at least one "FASTA definition line" record."""
    if not file_is_valid(path):
        return False
    with open(path, errors="replace") as f:
        return any(line.lstrip().startswith("FASTA") for line in f)


def log_row_error(error: RowParseError) -> None:
    """Log a skipped malformed row."""
    logger.warning(
        "row_parse_error",
        source=error.source,
        line=error.line_number,
        reason=error.reason,
    )


class StageModule(ABC):
    """
    One pipeline stage backed by one external tool.

    Subclasses lay their files out under <output_dir>/<directory>: tool
    output at the top level, processed/ for derived FASTA/tables and
    figures/ for graph data files. parse() saves the stage's results as
    the DuckDB table <table_name>, checkpointed with the run's config hash.
    """

    stage: Stage
    software: str
    directory: str
    table_name: str

    def __init__(self, context: PipelineContext):
        self.context = context
        self.config = context.config
        self.store = context.store

    @property
    def name(self) -> str:
        return f"{self.stage.value}/{self.software}"

    @property
    def stage_dir(self) -> Path:
        return self.config.output_dir / self.directory

    @property
    def processed_dir(self) -> Path:
        return self.stage_dir / "processed"

    @property
    def figures_dir(self) -> Path:
        return self.stage_dir / "figures"

    def checkpoint_is_current(self) -> bool:
        """The stage table was saved by a run with this run's configuration."""
        return self.context.pipeline_store.has_checkpoint(self.table_name, self.context.provenance.config_hash)

    def checkpoint_is_stale(self) -> bool:
        """The stage table was saved by a run with a different configuration."""
        return self.context.pipeline_store.has_checkpoint(self.table_name) and not self.checkpoint_is_current()

    @abstractmethod
    def verify_previous_output(self) -> VerifyResult:
        """Check whether valid tool output from an earlier run exists.

        Only consulted by run_stage() when checkpoint_is_current().
        """

    @abstractmethod
    def execute(self) -> None:
        """Run the external tool; raise ExternalToolFailure on failure."""

    @abstractmethod
    def parse(self) -> None:
        """Read tool output into the SequenceStore and write stage outputs."""

    @abstractmethod
    def output_paths(self) -> list[Path]:
        """Files and directories this stage produces."""

    def clean_outputs(self) -> None:
        """Remove everything output_paths() names and the stage table."""
        self.context.pipeline_store.delete_checkpoint(self.table_name)
        for path in self.output_paths():
            path = Path(path)
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()

    def reset_derived_outputs(self) -> None:
        """Recreate empty processed/ and figures/ directories."""
        for directory in (self.processed_dir, self.figures_dir):
            if directory.exists():
                shutil.rmtree(directory)
            directory.mkdir(parents=True)


def run_stage(module: StageModule, overwrite: bool = False) -> bool:
    """
    Run one stage: verify, execute unless already done, then parse.

    Tool output is reused only when the stage table was checkpointed with
    the current config hash and verify_previous_output() accepts the files.
    Output of a run with a different configuration is removed first.

    Args:
        module: Stage to run
        overwrite: Delete previous output and always execute

    Returns:
        True if execute() was skipped because valid output already existed

    Raises:
        PipelineError: From execute() or parse(); the stage's outputs are
            removed before the error propagates
    """
    module.stage_dir.mkdir(parents=True, exist_ok=True)

    if overwrite:
        module.clean_outputs()
        already_done = False
    elif module.checkpoint_is_stale():
        logger.info("stage_config_changed", stage=module.name, table=module.table_name)
        module.clean_outputs()
        already_done = False
    else:
        already_done = module.checkpoint_is_current() and module.verify_previous_output().already_done

    logger.info("stage_start", stage=module.name, reuse_previous_output=already_done)
    try:
        if not already_done:
            module.execute()
        module.parse()
    except PipelineError as e:
        logger.error("stage_failed", stage=module.name, error=str(e))
        module.clean_outputs()
        raise

    module.context.provenance.record_step(module.name, skipped=already_done)
    logger.info("stage_complete", stage=module.name)
    return already_done
