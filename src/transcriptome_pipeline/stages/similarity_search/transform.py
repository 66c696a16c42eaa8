"""Species, informativeness, contaminant and taxonomic enrichment of hits."""

import dataclasses
import re
from typing import Optional

import structlog

from transcriptome_pipeline.lookup import TaxonomyLookup
from transcriptome_pipeline.sequences.models import SimilaritySearchHit, Stage
from transcriptome_pipeline.sequences.selection import SelectionPolicy
from transcriptome_pipeline.sequences.store import SequenceStore
from transcriptome_pipeline.stages.similarity_search.models import SOFTWARE

logger = structlog.get_logger()

# NCBI titles end in "[Genus species]"; take the last bracketed group
NCBI_SPECIES = re.compile(r"\[([^]]+)\](?!.+\[.+\])")
# UniProt titles carry "OS=Genus species OX=..."
UNIPROT_SPECIES = re.compile(r"OS=(.+?)\s\S\S=")


def parse_species(title: str) -> str:
    """Species named in a target title, or "" if none is recognised."""
    match = NCBI_SPECIES.search(title)
    if match is None:
        match = UNIPROT_SPECIES.search(title)
    if match is None:
        return ""
    return match.group(1).strip()


def is_informative(title: str, uninformative: list[str]) -> bool:
    """A title is informative unless empty or containing an uninformative keyword."""
    text = title.lower()
    if not text.strip():
        return False
    return not any(keyword in text for keyword in uninformative)


def split_lineage(lineage: str) -> list[str]:
    """Lowercase ranks of a ";"-separated lineage string."""
    return [rank.strip().lower() for rank in lineage.split(";") if rank.strip()]


def find_contaminant(lineage: str, species: str, contaminants: list[str]) -> str:
    """First configured contaminant found in the lineage or species; "" if none."""
    haystack = f"{lineage};{species}".lower()
    for contaminant in contaminants:
        if contaminant in haystack:
            return contaminant
    return ""


class TaxonomicScorer:
    """
    Closeness of a hit's species to the configured target species.

    The score is the number of target lineage ranks also present in the
    hit lineage. Lineages come from the taxonomy lookup and are memoised per
    species.
    """

    def __init__(self, taxonomy: TaxonomyLookup, target_species: str):
        self.taxonomy = taxonomy
        self.target_species = target_species
        found = taxonomy.resolve(target_species)
        ranks = split_lineage(found.get("lineage") or "") if found else []
        if target_species not in ranks:
            ranks.append(target_species)
        self.target_ranks = set(ranks)
        self._scores: dict[str, int] = {}

    def __call__(self, species: str) -> int:
        key = species.lower()
        if key not in self._scores:
            found = self.taxonomy.resolve(species)
            ranks = split_lineage(found.get("lineage") or "") if found else []
            ranks.append(key)
            self._scores[key] = len(self.target_ranks.intersection(ranks))
        return self._scores[key]


def enrich_hit(
    hit: SimilaritySearchHit,
    taxonomy: Optional[TaxonomyLookup],
    contaminants: list[str],
) -> SimilaritySearchHit:
    """Copy of hit with lineage, tax id and contaminant status resolved."""
    lineage = ""
    tax_id = ""
    if taxonomy is not None and hit.species:
        found = taxonomy.resolve(hit.species)
        if found:
            lineage = found.get("lineage") or ""
            tax_id = str(found.get("tax_id") or "")
    contaminant = find_contaminant(lineage, hit.species, contaminants)
    return dataclasses.replace(
        hit,
        lineage=lineage,
        tax_id=tax_id,
        is_contaminant=bool(contaminant),
        contaminant_tax=contaminant,
    )


def enrich_best_hits(
    store: SequenceStore,
    database: str,
    taxonomy: Optional[TaxonomyLookup],
    contaminants: list[str],
    policy: SelectionPolicy,
) -> int:
    """
    Enrich the best hit of every sequence with a hit in database.

    Lookups run once per best hit; other hits stay unenriched.

    Returns:
        Number of hits enriched
    """
    enriched = 0
    for record in store:
        if not record.hit_database(Stage.SIMILARITY_SEARCH, SOFTWARE, database):
            continue
        if record.is_enriched(Stage.SIMILARITY_SEARCH, SOFTWARE, database):
            continue
        best = record.get_best_hit(Stage.SIMILARITY_SEARCH, SOFTWARE, database, policy)
        record.enrich_best_hit(
            Stage.SIMILARITY_SEARCH,
            SOFTWARE,
            database,
            enrich_hit(best, taxonomy, contaminants),
            policy,
        )
        enriched += 1

    logger.info("similarity_enrichment_complete", database=database, enriched=enriched)
    return enriched


def apply_overall_best(store: SequenceStore, policy: SelectionPolicy) -> None:
    """Copy species, lineage and contaminant status of the overall best hit to each record."""
    for record in store:
        if not record.hit_stage(Stage.SIMILARITY_SEARCH, SOFTWARE):
            continue
        best = record.get_best_overall(Stage.SIMILARITY_SEARCH, SOFTWARE, policy)
        record.species = best.species
        record.lineage = best.lineage
        record.contaminant_tax = best.contaminant_tax
        store.flag(record.identifier, "is_contaminant", best.is_contaminant)
