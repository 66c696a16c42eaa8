"""Best hit enrichment from the EggNOG and Gene Ontology lookups."""

import dataclasses
from typing import Callable, Optional

import structlog

from transcriptome_pipeline.lookup import LookupService
from transcriptome_pipeline.sequences.models import AlignmentResult, DomainScanHit, GoTerm, OrthologHit, Stage
from transcriptome_pipeline.sequences.selection import SelectionPolicy
from transcriptome_pipeline.sequences.store import SequenceStore

logger = structlog.get_logger()


def split_terms(value) -> tuple[str, ...]:
    """Comma separated lookup field -> tuple of non-empty stripped terms."""
    if value is None:
        return ()
    return tuple(term.strip() for term in str(value).split(",") if term.strip())


def _level(value) -> int | None:
    if value is None or str(value).strip() == "":
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


class GeneOntologyResolver:
    """Fills in term name, category and level of GO ids from the GO lookup."""

    def __init__(self, service: Optional[LookupService]):
        self.service = service

    def resolve(self, term: GoTerm) -> GoTerm:
        if self.service is None:
            return term
        found = self.service.lookup(term.go_id)
        if found is None:
            return term
        return GoTerm(
            go_id=term.go_id,
            term=found.get("term") or term.term,
            category=found.get("category") or term.category,
            level=_level(found.get("level")),
        )

    def resolve_ids(self, go_ids) -> tuple[GoTerm, ...]:
        return tuple(self.resolve(GoTerm(go_id)) for go_id in go_ids)


def enrich_ortholog(
    hit: OrthologHit,
    eggnog: Optional[LookupService],
    go: GeneOntologyResolver,
) -> OrthologHit:
    """
    Copy of hit with orthogroup annotations from the EggNOG lookup.

    A seed ortholog missing from the lookup keeps only its seed data.
    """
    found = eggnog.lookup(hit.seed_ortholog) if eggnog is not None else None
    if found is None:
        return hit
    tax_scope = found.get("tax_scope") or ""
    return dataclasses.replace(
        hit,
        tax_scope=tax_scope,
        tax_scope_readable=found.get("tax_scope_readable") or tax_scope,
        predicted_gene=found.get("predicted_gene") or "",
        member_ogs=found.get("member_ogs") or "",
        kegg_terms=split_terms(found.get("kegg")),
        bigg_reactions=split_terms(found.get("bigg")),
        go_terms=go.resolve_ids(split_terms(found.get("go"))),
    )


def enrich_domain(hit: DomainScanHit, go: GeneOntologyResolver) -> DomainScanHit:
    """Copy of hit with GO levels resolved."""
    if not hit.go_terms:
        return hit
    return dataclasses.replace(hit, go_terms=tuple(go.resolve(term) for term in hit.go_terms))


def enrich_best_hits(
    store: SequenceStore,
    software: str,
    database: str,
    enrich: Callable[[AlignmentResult], AlignmentResult],
    policy: SelectionPolicy,
) -> int:
    """
    Replace the best hit of every sequence annotated by software/database with its enriched copy.

    Returns:
        Number of hits enriched
    """
    stage = Stage.FUNCTIONAL_ANNOTATION
    enriched = 0
    for record in store:
        if not record.hit_database(stage, software, database) or record.is_enriched(stage, software, database):
            continue
        best = record.get_best_hit(stage, software, database, policy)
        record.enrich_best_hit(stage, software, database, enrich(best), policy)
        enriched += 1

    logger.info("annotation_enrichment_complete", software=software, enriched=enriched)
    return enriched
