"""Exception taxonomy for pipeline failures.

Every error a stage cannot recover from locally derives from PipelineError so
the run controller can catch one type, log it, and exit non-zero. Benign
outcomes (e.g. "stage output already exists") are plain return values and
never appear here.
"""


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class ConfigurationError(PipelineError):
    """Invalid or missing run parameters. Raised before any stage executes."""


class ExternalToolFailure(PipelineError):
    """An external tool exited non-zero or produced unusable critical output.

    Attributes:
        tool: Name of the failing tool (e.g. "diamond", "genemark")
        stderr_excerpt: Tail of the captured stderr stream
        exit_code: Process exit code (None when the failure is about output)
    """

    def __init__(self, tool: str, stderr_excerpt: str = "", exit_code: int | None = None):
        self.tool = tool
        self.stderr_excerpt = stderr_excerpt
        self.exit_code = exit_code
        message = f"{tool} failed"
        if exit_code is not None:
            message += f" with exit code {exit_code}"
        if stderr_excerpt:
            message += f":\n{stderr_excerpt}"
        super().__init__(message)


class RowParseError(PipelineError):
    """A single malformed row/entry in a tool's output.

    Parsers log and skip these; they are raised internally so the row parser
    and the skip policy stay separate.
    """

    def __init__(self, source: str, line_number: int, reason: str):
        self.source = source
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"{source}:{line_number}: {reason}")


class UnknownSequenceReference(PipelineError):
    """A parsed result references an identifier absent from the SequenceStore."""

    def __init__(self, identifier: str, source: str = ""):
        self.identifier = identifier
        self.source = source
        where = f" (referenced in {source})" if source else ""
        super().__init__(f"Unable to find sequence {identifier!r} in input transcriptome{where}")


class DuplicateIdentifier(PipelineError):
    """The same sequence identifier appears twice in the input."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Duplicate sequence identifier in input: {identifier!r}")


class IncompatibleVariant(PipelineError):
    """Two alignment results of different variants were compared."""


class NoAlignmentFound(PipelineError):
    """Best hit requested for an evidence key that holds no results."""
