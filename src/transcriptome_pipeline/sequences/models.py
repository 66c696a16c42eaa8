"""Data models for query sequences and the alignment evidence attached to them.

AlignmentResult is a tagged union of three frozen dataclasses. Each variant is
created from one row of external tool output and replaced (never mutated) by
an enriched copy once database lookups have been applied.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Union

from transcriptome_pipeline.errors import NoAlignmentFound


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    EXPRESSION = "expression_filtering"
    FRAME_SELECTION = "frame_selection"
    SIMILARITY_SEARCH = "similarity_search"
    FUNCTIONAL_ANNOTATION = "gene_ontology"


class FrameType(str, Enum):
    """GeneMarkS-T open reading frame classification."""

    COMPLETE = "Complete"
    PARTIAL_5 = "Partial 5 Prime"
    PARTIAL_3 = "Partial 3 Prime"
    INTERNAL = "Internal"


class GoCategory(str, Enum):
    BIOLOGICAL = "biological_process"
    CELLULAR = "cellular_component"
    MOLECULAR = "molecular_function"


class EvidenceKey(NamedTuple):
    """Identifies one evidence set: (stage, software, database)."""

    stage: Stage
    software: str
    database: str


@dataclass(frozen=True)
class GoTerm:
    """A Gene Ontology term attached to an alignment.

    Attributes:
        go_id: GO accession (e.g. GO:0005515)
        term: Term name ("" until resolved through the GO lookup)
        category: GoCategory value ("" when unknown)
        level: Depth in the ontology (None when unknown)
    """

    go_id: str
    term: str = ""
    category: str = ""
    level: int | None = None

    def label(self) -> str:
        """Render as "GO:0005515-protein binding(L=3)"."""
        text = self.go_id
        if self.term:
            text += f"-{self.term}"
        if self.level is not None:
            text += f"(L={self.level})"
        return text


@dataclass(frozen=True)
class _AlignmentFields:
    """Fields shared by every alignment variant.

    Attributes:
        database: Database identifier the hit came from
        target_id: Identifier of the matched target (subject/ortholog/signature)
        evalue: Raw E-value
        percent_identity: Percent identity, when the tool reports it
        coverage: Query coverage in percent, when the tool reports it
        description: Target title/description
    """

    database: str
    target_id: str
    evalue: float
    percent_identity: float | None = None
    coverage: float | None = None
    description: str = ""

    @property
    def evalue_display(self) -> str:
        return f"{self.evalue:.2e}"


@dataclass(frozen=True)
class SimilaritySearchHit(_AlignmentFields):
    """One DIAMOND hit of a query against a similarity search database.

    Taxonomic fields (species, lineage, is_contaminant, tax_score) are empty
    until the hit is enriched; is_informative is decided at parse time from
    the description.
    """

    kind: str = field(default="similarity_search", init=False)
    alignment_length: int = 0
    mismatches: int = 0
    gap_openings: int = 0
    query_start: int = 0
    query_end: int = 0
    subject_start: int = 0
    subject_end: int = 0
    bit_score: float = 0.0
    species: str = ""
    lineage: str = ""
    tax_id: str = ""
    is_contaminant: bool = False
    contaminant_tax: str = ""
    is_informative: bool = True
    tax_score: int = 0


@dataclass(frozen=True)
class OrthologHit(_AlignmentFields):
    """One EggNOG seed ortholog hit, enriched with orthogroup annotations."""

    kind: str = field(default="ortholog", init=False)
    seed_ortholog: str = ""
    seed_score: float = 0.0
    tax_scope: str = ""
    tax_scope_readable: str = ""
    predicted_gene: str = ""
    member_ogs: str = ""
    kegg_terms: tuple[str, ...] = ()
    bigg_reactions: tuple[str, ...] = ()
    go_terms: tuple[GoTerm, ...] = ()


@dataclass(frozen=True)
class DomainScanHit(_AlignmentFields):
    """One InterProScan signature match."""

    kind: str = field(default="domain_scan", init=False)
    domain_id: str = ""
    domain_description: str = ""
    source_database: str = ""
    interpro_id: str = ""
    interpro_description: str = ""
    go_terms: tuple[GoTerm, ...] = ()
    pathways: tuple[str, ...] = ()


AlignmentResult = Union[SimilaritySearchHit, OrthologHit, DomainScanHit]

# Boolean flags that SequenceStore.flag may set
RECORD_FLAGS = ("expression_kept", "frame_selected_kept", "is_protein", "is_contaminant")
# Flags that only ever transition True -> False
KEPT_FLAGS = ("expression_kept", "frame_selected_kept")


@dataclass(eq=False)
class SequenceRecord:
    """One input transcript/protein and its accumulated evidence.

    Records are created once from the input transcriptome and live for the
    whole run; stages flag them as excluded instead of deleting them.

    Attributes:
        identifier: Query identifier, stable across all stages
        sequence_nucleotide: Nucleotide sequence (None for protein input)
        sequence_protein: Protein sequence (input, or translated by frame selection)
        length: Nucleotide length for nucleotide input, protein length otherwise
        frame_type: GeneMarkS-T frame classification once frame selected
        expression_fpkm: FPKM reported by expression filtering
    """

    identifier: str
    sequence_nucleotide: str | None = None
    sequence_protein: str | None = None
    length: int = 0
    is_protein: bool = False
    frame_type: FrameType | None = None
    expression_fpkm: float | None = None
    expression_kept: bool = True
    frame_selected_kept: bool = True
    is_contaminant: bool = False
    contaminant_tax: str = ""
    species: str = ""
    lineage: str = ""
    _evidence: dict[EvidenceKey, list[AlignmentResult]] = field(default_factory=dict, repr=False)
    _best_cache: dict = field(default_factory=dict, repr=False)
    _enriched: set[EvidenceKey] = field(default_factory=set, repr=False)

    @property
    def gc_percent(self) -> float | None:
        """GC content of the nucleotide sequence in percent."""
        if not self.sequence_nucleotide:
            return None
        seq = self.sequence_nucleotide.upper()
        gc = seq.count("G") + seq.count("C")
        return round(gc / len(seq) * 100, 2)

    def set_flag(self, flag_name: str, value: bool) -> None:
        """Set one boolean flag; kept-flags never go from False back to True."""
        if flag_name not in RECORD_FLAGS:
            raise ValueError(f"Unknown sequence flag: {flag_name}")
        if flag_name in KEPT_FLAGS and value and not getattr(self, flag_name):
            raise ValueError(
                f"{flag_name} of {self.identifier} was already cleared and cannot be reset"
            )
        setattr(self, flag_name, bool(value))

    @property
    def is_kept(self) -> bool:
        """Survived expression filtering and frame selection."""
        return self.expression_kept and self.frame_selected_kept

    # ------------------------------------------------------------------
    # Evidence
    # ------------------------------------------------------------------

    def add_alignment(
        self,
        stage: Stage,
        software: str,
        database: str,
        result: AlignmentResult,
    ) -> None:
        """Append a result to the evidence set for (stage, software, database)."""
        key = EvidenceKey(stage, software, database)
        self._evidence.setdefault(key, []).append(result)
        self._invalidate(key)

    def hit_database(self, stage: Stage, software: str, database: str) -> bool:
        return bool(self._evidence.get(EvidenceKey(stage, software, database)))

    def hit_stage(self, stage: Stage, software: str | None = None) -> bool:
        """True if any database of the stage (optionally one software) has a result."""
        return any(self._keys_for(stage, software))

    def alignments(self, stage: Stage, software: str, database: str) -> list[AlignmentResult]:
        """Results for one key, in insertion order (a copy)."""
        return list(self._evidence.get(EvidenceKey(stage, software, database), []))

    def evidence_keys(self) -> list[EvidenceKey]:
        return list(self._evidence)

    def get_best_hit(
        self,
        stage: Stage,
        software: str,
        database: str,
        policy=None,
    ) -> AlignmentResult:
        """
        Best result for one (stage, software, database) key.

        Computed on first request and cached; any later add_alignment or
        enrich_best_hit on the same key drops the cached value, so a call made
        before parsing finished is simply recomputed next time.

        Raises:
            NoAlignmentFound: The key holds no results
        """
        from transcriptome_pipeline.sequences.selection import DEFAULT_POLICY, select_best

        policy = policy or DEFAULT_POLICY
        key = EvidenceKey(stage, software, database)
        cache_key = (key, policy)
        if cache_key not in self._best_cache:
            results = self._evidence.get(key)
            if not results:
                raise NoAlignmentFound(
                    f"{self.identifier} has no alignments for {stage.value}/{software}/{database}"
                )
            self._best_cache[cache_key] = select_best(results, policy)
        return self._best_cache[cache_key]

    def get_best_overall(
        self,
        stage: Stage,
        software: str | None = None,
        policy=None,
    ) -> AlignmentResult:
        """
        Best result across every database of a stage.

        Derived from the per-database best hits and cached the same way.

        Raises:
            NoAlignmentFound: No database of the stage holds results
        """
        from transcriptome_pipeline.sequences.selection import DEFAULT_POLICY, select_best

        policy = policy or DEFAULT_POLICY
        cache_key = ((stage, software), policy)
        if cache_key not in self._best_cache:
            keys = list(self._keys_for(stage, software))
            if not keys:
                raise NoAlignmentFound(f"{self.identifier} has no alignments for {stage.value}")
            per_database = [
                self.get_best_hit(key.stage, key.software, key.database, policy) for key in keys
            ]
            self._best_cache[cache_key] = select_best(per_database, policy)
        return self._best_cache[cache_key]

    def enrich_best_hit(
        self,
        stage: Stage,
        software: str,
        database: str,
        enriched: AlignmentResult,
        policy=None,
    ) -> None:
        """
        Replace the best hit of a key with its enriched copy.

        Enrichment happens exactly once per key; results are immutable after.

        Raises:
            ValueError: The key was already enriched
            NoAlignmentFound: The key holds no results
        """
        key = EvidenceKey(stage, software, database)
        if key in self._enriched:
            raise ValueError(f"Best hit for {key} of {self.identifier} is already enriched")
        current = self.get_best_hit(stage, software, database, policy)
        results = self._evidence[key]
        for index, result in enumerate(results):
            if result is current:
                results[index] = enriched
                break
        self._enriched.add(key)
        self._invalidate(key)

    def is_enriched(self, stage: Stage, software: str, database: str) -> bool:
        return EvidenceKey(stage, software, database) in self._enriched

    def _keys_for(self, stage: Stage, software: str | None):
        for key, results in self._evidence.items():
            if key.stage == stage and results and (software is None or key.software == software):
                yield key

    def _invalidate(self, key: EvidenceKey) -> None:
        stale = [
            cache_key
            for cache_key in self._best_cache
            if cache_key[0] == key or cache_key[0] in ((key.stage, key.software), (key.stage, None))
        ]
        for cache_key in stale:
            del self._best_cache[cache_key]
