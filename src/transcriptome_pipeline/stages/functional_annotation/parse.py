"""Parse EggNOG seed ortholog hits and InterProScan XML matches."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace
from pathlib import Path

import structlog

from transcriptome_pipeline.errors import ExternalToolFailure, RowParseError
from transcriptome_pipeline.sequences.models import DomainScanHit, GoTerm, OrthologHit, Stage
from transcriptome_pipeline.sequences.store import SequenceStore
from transcriptome_pipeline.stages.base import log_row_error
from transcriptome_pipeline.stages.functional_annotation.models import (
    EGGNOG_SOFTWARE,
    INTERPRO_DATABASE,
    INTERPRO_GO_CATEGORIES,
    INTERPRO_SOFTWARE,
    UNSCORED_EVALUE,
)
from transcriptome_pipeline.stages.similarity_search.parse import read_diamond_rows

logger = structlog.get_logger()


@dataclass
class AnnotationParseOutcome:
    """Counts from parsing one annotation output file."""

    attached: int = 0
    skipped: int = 0


def parse_eggnog_output(path: Path, database: str, store: SequenceStore) -> AnnotationParseOutcome:
    """
    Attach EggNOG seed ortholog hits to the store.

    Only seed data (ortholog id, E-value, score, coverage) comes from the
    DIAMOND output; orthogroup annotations are looked up later for best
    hits only.

    Raises:
        UnknownSequenceReference: A row names a query absent from the store
    """
    source = Path(path).name
    rows, skipped = read_diamond_rows(path)
    outcome = AnnotationParseOutcome(skipped=skipped)
    for row in rows:
        record = store.get(row.query_id, source=source)
        hit = OrthologHit(
            database=database,
            target_id=row.target_id,
            evalue=row.evalue,
            percent_identity=row.pident,
            coverage=row.coverage,
            description=row.title,
            seed_ortholog=row.target_id,
            seed_score=row.bitscore,
        )
        record.add_alignment(Stage.FUNCTIONAL_ANNOTATION, EGGNOG_SOFTWARE, database, hit)
        outcome.attached += 1

    logger.info("eggnog_parse_complete", rows=len(rows), attached=outcome.attached, skipped=skipped)
    return outcome


def _local(tag: str) -> str:
    """Tag name without its {namespace} prefix."""
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _match_evalue(match: ET.Element, source: str, line: int) -> float:
    """E-value of a match, falling back to its first location."""
    value = match.get("evalue")
    if value is None:
        locations = _child(match, "locations")
        if locations is not None:
            for location in locations:
                if location.get("evalue") is not None:
                    value = location.get("evalue")
                    break
    if value is None:
        return UNSCORED_EVALUE
    try:
        return float(value)
    except ValueError:
        raise RowParseError(source, line, f"evalue is not a number: {value!r}") from None


def _domain_hit(match: ET.Element, source: str, line: int) -> DomainScanHit:
    """DomainScanHit from one *-match element."""
    signature = _child(match, "signature")
    if signature is None or not signature.get("ac"):
        raise RowParseError(source, line, f"{_local(match.tag)} without signature accession")

    library = _child(signature, "signature-library-release")
    entry = _child(signature, "entry")
    go_terms: list[GoTerm] = []
    pathways: list[str] = []
    if entry is not None:
        for xref in _children(entry, "go-xref"):
            go_terms.append(GoTerm(
                go_id=xref.get("id", ""),
                term=xref.get("name", ""),
                category=INTERPRO_GO_CATEGORIES.get(xref.get("category", ""), ""),
            ))
        for xref in _children(entry, "pathway-xref"):
            pathways.append(f"{xref.get('db', '')}: {xref.get('id', '')}")

    description = signature.get("desc") or signature.get("name") or ""
    return DomainScanHit(
        database=INTERPRO_DATABASE,
        target_id=signature.get("ac"),
        evalue=_match_evalue(match, source, line),
        description=description,
        domain_id=signature.get("ac"),
        domain_description=description,
        source_database=library.get("library", "") if library is not None else "",
        interpro_id=entry.get("ac", "") if entry is not None else "",
        interpro_description=entry.get("desc", "") if entry is not None else "",
        go_terms=tuple(term for term in go_terms if term.go_id),
        pathways=tuple(pathways),
    )


def parse_interpro_xml(path: Path, store: SequenceStore) -> AnnotationParseOutcome:
    """
    Attach InterProScan signature matches to the store.

    Each protein element may carry several xref ids (identical sequences are
    merged by InterProScan); each of them gets its own copy of every match.
    Malformed matches are logged and skipped; they are reported by their
    1-based position among all match elements of the file.

    Raises:
        ExternalToolFailure: The XML cannot be parsed
        UnknownSequenceReference: A protein names a query absent from the store
    """
    source = Path(path).name
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as e:
        raise ExternalToolFailure("interproscan", f"Malformed XML in {source}: {e}") from e

    if _local(root.tag) != "protein-matches":
        raise ExternalToolFailure("interproscan", f"{source} is not InterProScan XML (root {_local(root.tag)})")

    outcome = AnnotationParseOutcome()
    position = 0
    for protein in _children(root, "protein"):
        identifiers = [xref.get("id") for xref in _children(protein, "xref") if xref.get("id")]
        records = [store.get(identifier, source=source) for identifier in identifiers]
        matches = _child(protein, "matches")
        if matches is None:
            continue
        for match in matches:
            position += 1
            if not _local(match.tag).endswith("-match"):
                continue
            try:
                hit = _domain_hit(match, source, position)
            except RowParseError as e:
                log_row_error(e)
                outcome.skipped += 1
                continue
            for record in records:
                record.add_alignment(Stage.FUNCTIONAL_ANNOTATION, INTERPRO_SOFTWARE, INTERPRO_DATABASE, replace(hit))
                outcome.attached += 1

    logger.info("interpro_parse_complete", attached=outcome.attached, skipped=outcome.skipped)
    return outcome
