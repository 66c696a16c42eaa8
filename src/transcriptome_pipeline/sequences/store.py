"""SequenceStore: the ordered collection of query sequences for one run."""

from pathlib import Path
from typing import Callable, Iterable, Iterator

import structlog

from transcriptome_pipeline.errors import DuplicateIdentifier, UnknownSequenceReference
from transcriptome_pipeline.sequences.fasta import FastaEntry, is_protein_input, read_fasta
from transcriptome_pipeline.sequences.models import SequenceRecord, Stage

logger = structlog.get_logger()

Predicate = Callable[[SequenceRecord], bool]


def is_expression_kept(record: SequenceRecord) -> bool:
    return record.expression_kept


def is_frame_kept(record: SequenceRecord) -> bool:
    """Kept by both expression filtering and frame selection."""
    return record.expression_kept and record.frame_selected_kept


def hit_in(stage: Stage, software: str | None = None, database: str | None = None) -> Predicate:
    """Predicate: record has a result for the database (or any database of the stage)."""

    def predicate(record: SequenceRecord) -> bool:
        if database is None:
            return record.hit_stage(stage, software)
        return record.hit_database(stage, software, database)

    return predicate


def no_hit_in(stage: Stage, software: str | None = None, database: str | None = None) -> Predicate:
    has_hit = hit_in(stage, software, database)

    def predicate(record: SequenceRecord) -> bool:
        return not has_hit(record)

    return predicate


def all_of(*predicates: Predicate) -> Predicate:
    def predicate(record: SequenceRecord) -> bool:
        return all(check(record) for check in predicates)

    return predicate


class FilteredView:
    """
    Lazy, restartable view over the records of a store matching a predicate.

    Every iteration walks the store again in insertion order; no records are
    copied. len() iterates as well, so it reflects the flags at call time.
    """

    def __init__(self, records: dict[str, SequenceRecord], predicate: Predicate):
        self._records = records
        self._predicate = predicate

    def __iter__(self) -> Iterator[SequenceRecord]:
        return (record for record in self._records.values() if self._predicate(record))

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return any(True for _ in self)

    def identifiers(self) -> list[str]:
        return [record.identifier for record in self]

    def filter(self, predicate: Predicate) -> "FilteredView":
        """Narrow the view with an additional predicate."""
        return FilteredView(self._records, all_of(self._predicate, predicate))


class SequenceStore:
    """
    Mapping identifier -> SequenceRecord in input order.

    Created once per run; records are never removed or re-keyed. Stages mark
    records as excluded through flag() and read their input through
    filtered_view().
    """

    def __init__(self, is_protein: bool = False):
        self._records: dict[str, SequenceRecord] = {}
        self.is_protein = is_protein

    @classmethod
    def load(cls, records: Iterable[SequenceRecord], is_protein: bool = False) -> "SequenceStore":
        """
        Build a store from records.

        Raises:
            DuplicateIdentifier: The same identifier appears twice
        """
        store = cls(is_protein=is_protein)
        for record in records:
            if record.identifier in store._records:
                raise DuplicateIdentifier(record.identifier)
            store._records[record.identifier] = record
        return store

    @classmethod
    def from_fasta(cls, path: Path, trim_headers: bool = True) -> "SequenceStore":
        """
        Load the input transcriptome.

        The input type (protein or nucleotide) is detected from the first
        sequences and applied to every record.

        Raises:
            DuplicateIdentifier: The same identifier appears twice
        """
        entries: list[FastaEntry] = list(read_fasta(path, trim_headers=trim_headers))
        protein = is_protein_input(entry.sequence for entry in entries)

        def build(entry: FastaEntry) -> SequenceRecord:
            if protein:
                return SequenceRecord(
                    identifier=entry.identifier,
                    sequence_protein=entry.sequence,
                    length=len(entry.sequence),
                    is_protein=True,
                )
            return SequenceRecord(
                identifier=entry.identifier,
                sequence_nucleotide=entry.sequence,
                length=len(entry.sequence),
            )

        store = cls.load((build(entry) for entry in entries), is_protein=protein)
        logger.info(
            "transcriptome_loaded",
            path=str(path),
            sequences=len(store),
            input_type="protein" if protein else "nucleotide",
        )
        return store

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SequenceRecord]:
        return iter(self._records.values())

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._records

    def get(self, identifier: str, source: str = "") -> SequenceRecord:
        """
        Record for an identifier.

        Raises:
            UnknownSequenceReference: No such identifier
        """
        try:
            return self._records[identifier]
        except KeyError:
            raise UnknownSequenceReference(identifier, source) from None

    def flag(self, identifier: str, flag_name: str, value: bool) -> None:
        """
        Set one boolean flag of one record.

        Raises:
            UnknownSequenceReference: No such identifier
            ValueError: Unknown flag, or an attempt to reset a cleared kept-flag
        """
        self.get(identifier).set_flag(flag_name, value)

    def filtered_view(self, predicate: Predicate | None = None) -> FilteredView:
        return FilteredView(self._records, predicate or (lambda record: True))

    def lengths(self, predicate: Predicate | None = None) -> list[int]:
        return [record.length for record in self.filtered_view(predicate)]
