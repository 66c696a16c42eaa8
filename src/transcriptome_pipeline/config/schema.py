"""Pydantic models for pipeline configuration."""

import hashlib
import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from transcriptome_pipeline.errors import ConfigurationError

# Keywords marking a similarity search hit title as uninformative
DEFAULT_UNINFORMATIVE = [
    "conserved",
    "predicted",
    "unnamed",
    "hypothetical",
    "putative",
    "unidentified",
    "uncharacterized",
    "unknown",
    "uncultured",
    "uninformative",
]


class ExecutablePaths(BaseModel):
    """Locations of the external tools the stages invoke."""

    model_config = ConfigDict(frozen=True)

    diamond: str = Field(
        default="diamond",
        description="DIAMOND executable (similarity search and EggNOG seed search)",
    )
    genemark: str = Field(
        default="gmst.pl",
        description="GeneMarkS-T perl script",
    )
    rsem_prepare: str = Field(
        default="rsem-prepare-reference",
        description="RSEM reference preparation executable",
    )
    rsem_calculate: str = Field(
        default="rsem-calculate-expression",
        description="RSEM expression calculation executable",
    )
    interproscan: str = Field(
        default="interproscan.sh",
        description="InterProScan launcher script",
    )


class ExpressionSettings(BaseModel):
    """Expression filtering (RSEM) settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(
        default=False,
        description="Run expression filtering (requires alignment_path)",
    )
    alignment_path: Path | None = Field(
        default=None,
        description="BAM/SAM alignment of reads against the transcriptome",
    )
    fpkm_threshold: float = Field(
        default=0.5,
        ge=0.0,
        description="Sequences with FPKM below this value are removed",
    )
    single_end: bool = Field(
        default=False,
        description="Reads are single-end (paired-end otherwise)",
    )

    @model_validator(mode="after")
    def require_alignment(self) -> "ExpressionSettings":
        """Expression filtering cannot run without an alignment file."""
        if self.enabled and self.alignment_path is None:
            raise ValueError("expression.alignment_path is required when expression.enabled is true")
        return self


class FrameSelectionSettings(BaseModel):
    """Frame selection (GeneMarkS-T) settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(
        default=True,
        description="Run frame selection on nucleotide input (ignored for protein input)",
    )


class SimilaritySearchSettings(BaseModel):
    """DIAMOND similarity search settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Run similarity search")
    databases: list[Path] = Field(
        default_factory=list,
        description="DIAMOND (.dmnd) databases searched in order",
    )
    evalue: float = Field(
        default=1e-5,
        gt=0.0,
        description="Maximum E-value for a hit to be kept",
    )
    query_coverage: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Minimum query coverage (percent) for a hit to be kept",
    )
    target_coverage: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Minimum target coverage (percent) passed to DIAMOND",
    )
    contaminants: list[str] = Field(
        default_factory=list,
        description="Taxa flagged as contaminants when found in a hit lineage",
    )
    target_species: str | None = Field(
        default=None,
        description="Species/taxon analysed; hits closer to it win ties",
    )
    uninformative: list[str] = Field(
        default_factory=lambda: list(DEFAULT_UNINFORMATIVE),
        description="Keywords marking a hit description as uninformative",
    )

    @field_validator("contaminants", "uninformative")
    @classmethod
    def normalize_terms(cls, v: list[str]) -> list[str]:
        """Lowercase terms and replace underscores (multi-word taxa) with spaces."""
        return [term.strip().lower().replace("_", " ") for term in v if term.strip()]

    @field_validator("target_species")
    @classmethod
    def normalize_species(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().lower().replace("_", " ")
        return v or None


class SelectionPolicySettings(BaseModel):
    """Tolerance bands used by best hit selection."""

    model_config = ConfigDict(frozen=True)

    evalue_band: float = Field(
        default=8.0,
        gt=0.0,
        description="Width of an E-value band in orders of magnitude",
    )
    coverage_band: float = Field(
        default=5.0,
        gt=0.0,
        description="Width of a coverage band in percent",
    )


class OntologySettings(BaseModel):
    """Functional annotation settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Run functional annotation")
    software: list[Literal["eggnog", "interpro"]] = Field(
        default_factory=lambda: ["eggnog"],
        description="Functional annotation sources, run in order",
    )
    eggnog_database: Path | None = Field(
        default=None,
        description="EggNOG DIAMOND protein database (.dmnd)",
    )
    interpro_databases: list[str] = Field(
        default_factory=list,
        description="InterProScan member databases (-appl); empty runs all",
    )
    go_levels: list[int] = Field(
        default_factory=lambda: [0, 1],
        description="Gene Ontology levels summarised in statistics (0 = all)",
    )

    @field_validator("go_levels")
    @classmethod
    def check_levels(cls, v: list[int]) -> list[int]:
        if any(level < 0 for level in v):
            raise ValueError("go_levels must be >= 0")
        return sorted(set(v))


class LookupPaths(BaseModel):
    """Tab-delimited lookup tables served through DuckDB."""

    model_config = ConfigDict(frozen=True)

    taxonomy: Path | None = Field(
        default=None,
        description="TSV: species, tax_id, lineage",
    )
    gene_ontology: Path | None = Field(
        default=None,
        description="TSV: go_id, term, category, level",
    )
    eggnog: Path | None = Field(
        default=None,
        description="TSV: seed_ortholog and EggNOG annotation columns",
    )


class OutputSettings(BaseModel):
    """Output file options."""

    model_config = ConfigDict(frozen=True)

    formats: list[Literal["tsv", "csv", "faa", "fnn"]] = Field(
        default_factory=lambda: ["tsv", "faa", "fnn"],
        description="Alignment table/FASTA formats written per result set",
    )
    trim_headers: bool = Field(
        default=True,
        description="Trim FASTA headers to the first whitespace-delimited token",
    )


class PipelineConfig(BaseModel):
    """Main pipeline configuration."""

    model_config = ConfigDict(frozen=True)

    transcriptome: Path = Field(
        ...,
        description="Input transcriptome FASTA (nucleotide or protein)",
    )
    output_dir: Path = Field(
        ...,
        description="Directory receiving every stage's output",
    )
    duckdb_path: Path = Field(
        ...,
        description="Path to DuckDB database file",
    )
    overwrite: bool = Field(
        default=False,
        description="Re-run every stage even when valid output exists",
    )
    threads: int = Field(
        default=1,
        ge=1,
        description="Threads passed to external tools",
    )
    executables: ExecutablePaths = Field(default_factory=ExecutablePaths)
    expression: ExpressionSettings = Field(default_factory=ExpressionSettings)
    frame_selection: FrameSelectionSettings = Field(default_factory=FrameSelectionSettings)
    similarity_search: SimilaritySearchSettings = Field(default_factory=SimilaritySearchSettings)
    selection: SelectionPolicySettings = Field(default_factory=SelectionPolicySettings)
    ontology: OntologySettings = Field(default_factory=OntologySettings)
    lookups: LookupPaths = Field(default_factory=LookupPaths)
    output: OutputSettings = Field(default_factory=OutputSettings)

    @field_validator("transcriptome")
    @classmethod
    def transcriptome_exists(cls, v: Path) -> Path:
        if not v.is_file():
            raise ValueError(f"transcriptome not found: {v}")
        return v

    @field_validator("output_dir")
    @classmethod
    def create_directory(cls, v: Path) -> Path:
        """Create directory if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def require_databases(self) -> "PipelineConfig":
        if self.similarity_search.enabled and not self.similarity_search.databases:
            raise ValueError("similarity_search.databases must list at least one database")
        if (
            self.ontology.enabled
            and "eggnog" in self.ontology.software
            and self.ontology.eggnog_database is None
        ):
            raise ValueError("ontology.eggnog_database is required when eggnog is enabled")
        return self

    def check_paths(self) -> None:
        """
        Verify that every configured input file exists.

        Called by the run controller before any stage executes, so a typo
        in a database path aborts the run instead of failing mid-pipeline.

        Raises:
            ConfigurationError: Listing every missing path
        """
        required: list[Path] = []
        if self.expression.enabled and self.expression.alignment_path is not None:
            required.append(self.expression.alignment_path)
        if self.similarity_search.enabled:
            required.extend(self.similarity_search.databases)
        if self.ontology.enabled and "eggnog" in self.ontology.software:
            required.append(self.ontology.eggnog_database)
        for lookup_path in (self.lookups.taxonomy, self.lookups.gene_ontology, self.lookups.eggnog):
            if lookup_path is not None:
                required.append(lookup_path)

        missing = [str(path) for path in required if not Path(path).exists()]
        if missing:
            raise ConfigurationError(
                "Configured input files not found: " + ", ".join(missing)
            )

    def config_hash(self) -> str:
        """
        Compute SHA-256 hash of the configuration.

        Returns a deterministic hash based on all config values, used to tie
        DuckDB checkpoints and provenance records to the run parameters.
        """
        config_dict = self.model_dump(mode="python")
        config_json = json.dumps(
            config_dict,
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(config_json.encode()).hexdigest()
