"""Column registry for alignment tables.

Each Header has a display title and an extractor that renders one field of a
SequenceRecord. Extractors read evidence through a HeaderContext naming the
stage/software/database the table is about; other stages fall back to their
best overall hit. A field the record has no evidence for renders as "".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from transcriptome_pipeline.sequences.models import (
    AlignmentResult,
    DomainScanHit,
    GoCategory,
    GoTerm,
    OrthologHit,
    SequenceRecord,
    SimilaritySearchHit,
    Stage,
)
from transcriptome_pipeline.sequences.selection import DEFAULT_POLICY, SelectionPolicy

SIMILARITY_SOFTWARE = "diamond"
EGGNOG_SOFTWARE = "eggnog"
INTERPRO_SOFTWARE = "interpro"


@dataclass(frozen=True)
class HeaderContext:
    """
    Where header extractors read evidence from.

    Attributes:
        stage: Stage the table describes
        software: Software of that stage
        database: Database to read for that stage/software; None reads the
            best hit across all of its databases
        go_level: Only GO terms of this level are rendered (0 = all)
        policy: Best hit ordering
    """

    stage: Stage = Stage.SIMILARITY_SEARCH
    software: str = SIMILARITY_SOFTWARE
    database: Optional[str] = None
    go_level: int = 0
    policy: SelectionPolicy = DEFAULT_POLICY

    def best_hit(self, record: SequenceRecord, stage: Stage, software: str) -> Optional[AlignmentResult]:
        """Best hit of record for stage/software, or None without evidence."""
        if stage == self.stage and software == self.software and self.database is not None:
            if not record.hit_database(stage, software, self.database):
                return None
            return record.get_best_hit(stage, software, self.database, self.policy)
        if not record.hit_stage(stage, software):
            return None
        return record.get_best_overall(stage, software, self.policy)


def _fmt(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _go_labels(terms: tuple[GoTerm, ...], category: GoCategory, level: int) -> str:
    suffix = f"(L={level})"
    labels = [
        term.label()
        for term in terms
        if term.category == category.value and (level == 0 or term.label().endswith(suffix))
    ]
    return ",".join(labels)


def _similarity(field: str) -> Callable[[SequenceRecord, HeaderContext], str]:
    def extract(record: SequenceRecord, context: HeaderContext) -> str:
        hit = context.best_hit(record, Stage.SIMILARITY_SEARCH, SIMILARITY_SOFTWARE)
        if not isinstance(hit, SimilaritySearchHit):
            return ""
        if field == "evalue":
            return hit.evalue_display
        return _fmt(getattr(hit, field))

    return extract


def _ortholog(field: str) -> Callable[[SequenceRecord, HeaderContext], str]:
    def extract(record: SequenceRecord, context: HeaderContext) -> str:
        hit = context.best_hit(record, Stage.FUNCTIONAL_ANNOTATION, EGGNOG_SOFTWARE)
        if not isinstance(hit, OrthologHit):
            return ""
        value = getattr(hit, field)
        if field == "evalue":
            return hit.evalue_display
        if isinstance(value, tuple):
            return ",".join(value)
        return _fmt(value)

    return extract


def _ortholog_go(category: GoCategory) -> Callable[[SequenceRecord, HeaderContext], str]:
    def extract(record: SequenceRecord, context: HeaderContext) -> str:
        hit = context.best_hit(record, Stage.FUNCTIONAL_ANNOTATION, EGGNOG_SOFTWARE)
        if not isinstance(hit, OrthologHit):
            return ""
        return _go_labels(hit.go_terms, category, context.go_level)

    return extract


def _domain(field: str) -> Callable[[SequenceRecord, HeaderContext], str]:
    def extract(record: SequenceRecord, context: HeaderContext) -> str:
        hit = context.best_hit(record, Stage.FUNCTIONAL_ANNOTATION, INTERPRO_SOFTWARE)
        if not isinstance(hit, DomainScanHit):
            return ""
        value = getattr(hit, field)
        if field == "evalue":
            return hit.evalue_display
        if isinstance(value, tuple):
            return ",".join(value)
        return _fmt(value)

    return extract


def _domain_go(category: GoCategory) -> Callable[[SequenceRecord, HeaderContext], str]:
    def extract(record: SequenceRecord, context: HeaderContext) -> str:
        hit = context.best_hit(record, Stage.FUNCTIONAL_ANNOTATION, INTERPRO_SOFTWARE)
        if not isinstance(hit, DomainScanHit):
            return ""
        return _go_labels(hit.go_terms, category, context.go_level)

    return extract


class Header(Enum):
    """Output columns, in table order."""

    QUERY = "Query Sequence"
    SUBJECT = "Subject Sequence"
    PERCENT_IDENTITY = "Percentage of Identical Matches"
    ALIGNMENT_LENGTH = "Alignment Length"
    MISMATCHES = "Mismatches"
    GAP_OPENINGS = "Gap Openings"
    QUERY_START = "Query Start"
    QUERY_END = "Query End"
    SUBJECT_START = "Subject Start"
    SUBJECT_END = "Subject End"
    EVALUE = "E Value"
    COVERAGE = "Coverage"
    DESCRIPTION = "Description"
    SPECIES = "Species"
    LINEAGE = "Taxonomic Lineage"
    DATABASE = "Origin Database"
    CONTAMINANT = "Contaminant"
    INFORMATIVE = "Informative"
    FRAME = "Frame"
    FPKM = "FPKM"
    SEED_ORTHOLOG = "Seed Ortholog"
    SEED_EVALUE = "Seed E-Value"
    SEED_SCORE = "Seed Score"
    PREDICTED_GENE = "Predicted Gene"
    TAX_SCOPE = "Tax Scope"
    MEMBER_OGS = "Member OGs"
    KEGG = "KEGG Terms"
    BIGG = "BIGG Reaction"
    EGG_GO_BIOLOGICAL = "GO Biological"
    EGG_GO_CELLULAR = "GO Cellular"
    EGG_GO_MOLECULAR = "GO Molecular"
    INTERPRO_DATABASE = "IPScan Protein Database"
    INTERPRO_DOMAIN = "IPScan Protein Description"
    INTERPRO_ID = "IPScan InterPro ID"
    INTERPRO_DESCRIPTION = "IPScan InterPro Description"
    INTERPRO_GO_BIOLOGICAL = "IPScan GO Biological"
    INTERPRO_GO_CELLULAR = "IPScan GO Cellular"
    INTERPRO_GO_MOLECULAR = "IPScan GO Molecular"
    INTERPRO_PATHWAYS = "IPScan Pathways"

    @property
    def title(self) -> str:
        return self.value

    def extract(self, record: SequenceRecord, context: HeaderContext) -> str:
        return _EXTRACTORS[self](record, context)


_EXTRACTORS: dict[Header, Callable[[SequenceRecord, HeaderContext], str]] = {
    Header.QUERY: lambda record, context: record.identifier,
    Header.SUBJECT: _similarity("target_id"),
    Header.PERCENT_IDENTITY: _similarity("percent_identity"),
    Header.ALIGNMENT_LENGTH: _similarity("alignment_length"),
    Header.MISMATCHES: _similarity("mismatches"),
    Header.GAP_OPENINGS: _similarity("gap_openings"),
    Header.QUERY_START: _similarity("query_start"),
    Header.QUERY_END: _similarity("query_end"),
    Header.SUBJECT_START: _similarity("subject_start"),
    Header.SUBJECT_END: _similarity("subject_end"),
    Header.EVALUE: _similarity("evalue"),
    Header.COVERAGE: _similarity("coverage"),
    Header.DESCRIPTION: _similarity("description"),
    Header.SPECIES: _similarity("species"),
    Header.LINEAGE: _similarity("lineage"),
    Header.DATABASE: _similarity("database"),
    Header.CONTAMINANT: _similarity("is_contaminant"),
    Header.INFORMATIVE: _similarity("is_informative"),
    Header.FRAME: lambda record, context: record.frame_type.value if record.frame_type else "",
    Header.FPKM: lambda record, context: _fmt(record.expression_fpkm),
    Header.SEED_ORTHOLOG: _ortholog("seed_ortholog"),
    Header.SEED_EVALUE: _ortholog("evalue"),
    Header.SEED_SCORE: _ortholog("seed_score"),
    Header.PREDICTED_GENE: _ortholog("predicted_gene"),
    Header.TAX_SCOPE: _ortholog("tax_scope_readable"),
    Header.MEMBER_OGS: _ortholog("member_ogs"),
    Header.KEGG: _ortholog("kegg_terms"),
    Header.BIGG: _ortholog("bigg_reactions"),
    Header.EGG_GO_BIOLOGICAL: _ortholog_go(GoCategory.BIOLOGICAL),
    Header.EGG_GO_CELLULAR: _ortholog_go(GoCategory.CELLULAR),
    Header.EGG_GO_MOLECULAR: _ortholog_go(GoCategory.MOLECULAR),
    Header.INTERPRO_DATABASE: _domain("source_database"),
    Header.INTERPRO_DOMAIN: _domain("domain_description"),
    Header.INTERPRO_ID: _domain("interpro_id"),
    Header.INTERPRO_DESCRIPTION: _domain("interpro_description"),
    Header.INTERPRO_GO_BIOLOGICAL: _domain_go(GoCategory.BIOLOGICAL),
    Header.INTERPRO_GO_CELLULAR: _domain_go(GoCategory.CELLULAR),
    Header.INTERPRO_GO_MOLECULAR: _domain_go(GoCategory.MOLECULAR),
    Header.INTERPRO_PATHWAYS: _domain("pathways"),
}

SIMILARITY_HEADERS = [
    Header.QUERY,
    Header.SUBJECT,
    Header.PERCENT_IDENTITY,
    Header.ALIGNMENT_LENGTH,
    Header.MISMATCHES,
    Header.GAP_OPENINGS,
    Header.QUERY_START,
    Header.QUERY_END,
    Header.SUBJECT_START,
    Header.SUBJECT_END,
    Header.EVALUE,
    Header.COVERAGE,
    Header.DESCRIPTION,
    Header.SPECIES,
    Header.LINEAGE,
    Header.DATABASE,
    Header.CONTAMINANT,
    Header.INFORMATIVE,
]

EGGNOG_HEADERS = [
    Header.SEED_ORTHOLOG,
    Header.SEED_EVALUE,
    Header.SEED_SCORE,
    Header.PREDICTED_GENE,
    Header.TAX_SCOPE,
    Header.MEMBER_OGS,
    Header.KEGG,
    Header.BIGG,
    Header.EGG_GO_BIOLOGICAL,
    Header.EGG_GO_CELLULAR,
    Header.EGG_GO_MOLECULAR,
]

INTERPRO_HEADERS = [
    Header.INTERPRO_DATABASE,
    Header.INTERPRO_DOMAIN,
    Header.INTERPRO_ID,
    Header.INTERPRO_DESCRIPTION,
    Header.INTERPRO_GO_BIOLOGICAL,
    Header.INTERPRO_GO_CELLULAR,
    Header.INTERPRO_GO_MOLECULAR,
    Header.INTERPRO_PATHWAYS,
]

# Every column, in Header definition order
ALL_HEADERS = list(Header)


def ordered(headers) -> list[Header]:
    """Deduplicate headers and sort them into table order."""
    wanted = set(headers)
    return [header for header in Header if header in wanted]
