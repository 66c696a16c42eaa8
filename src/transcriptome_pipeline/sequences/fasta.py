"""FASTA reading/writing and input type detection."""

from pathlib import Path
from typing import Iterable, Iterator, NamedTuple

from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

# Number of sequences inspected when deciding protein vs nucleotide input
DETECTION_SEQUENCE_COUNT = 20
NUCLEOTIDE_CHARS = frozenset("ACGTUN")
# Minimum nucleotide character fraction for input to count as nucleotide
NUCLEOTIDE_FRACTION = 0.9


class FastaEntry(NamedTuple):
    identifier: str
    sequence: str


def read_fasta(path: Path, trim_headers: bool = True) -> Iterator[FastaEntry]:
    """
    Iterate the entries of a FASTA file.

    Args:
        path: FASTA file
        trim_headers: Use the header up to the first whitespace as identifier;
            otherwise the full header line is kept

    Yields:
        FastaEntry with the sequence uppercased and "*" stop codons removed
    """
    for record in SeqIO.parse(str(path), "fasta"):
        identifier = record.id if trim_headers else record.description
        sequence = str(record.seq).upper().replace("*", "")
        yield FastaEntry(identifier, sequence)


def is_protein_input(sequences: Iterable[str]) -> bool:
    """
    Decide whether the input holds protein sequences.

    Only the first DETECTION_SEQUENCE_COUNT sequences are inspected; the input
    is nucleotide when at least NUCLEOTIDE_FRACTION of their characters are
    nucleotide codes.
    """
    total = 0
    nucleotide = 0
    for index, sequence in enumerate(sequences):
        if index >= DETECTION_SEQUENCE_COUNT:
            break
        sequence = sequence.upper()
        total += len(sequence)
        nucleotide += sum(1 for char in sequence if char in NUCLEOTIDE_CHARS)

    if total == 0:
        return False
    return nucleotide / total < NUCLEOTIDE_FRACTION


def write_fasta(path: Path, entries: Iterable[FastaEntry]) -> int:
    """
    Write entries to a FASTA file.

    Returns:
        Number of entries written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    records = (
        SeqRecord(Seq(entry.sequence), id=entry.identifier, description="")
        for entry in entries
    )
    with open(path, "w") as handle:
        return SeqIO.write(records, handle, "fasta")


def record_entries(records: Iterable, protein: bool) -> Iterator[FastaEntry]:
    """FastaEntry for each SequenceRecord holding the requested sequence type."""
    for record in records:
        sequence = record.sequence_protein if protein else record.sequence_nucleotide
        if sequence:
            yield FastaEntry(record.identifier, sequence)
