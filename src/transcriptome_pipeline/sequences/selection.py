"""Best hit selection over same-variant alignment results.

The ordering is built from a per-variant rank key compared lexicographically,
so it is a strict weak ordering by construction. E-value and coverage
tolerances are applied as fixed-width bands: two hits in the same band are
tied on that criterion and fall through to the next one.
"""

import functools
import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable

from transcriptome_pipeline.errors import IncompatibleVariant
from transcriptome_pipeline.sequences.models import (
    AlignmentResult,
    DomainScanHit,
    OrthologHit,
    SimilaritySearchHit,
)

# E-values of 0 are reported by DIAMOND for perfect matches
MIN_EVALUE = 1e-180


class Ordering(IntEnum):
    """Result of compare(a, b): a is worse, tied with, or better than b."""

    LESS = -1
    EQUAL = 0
    GREATER = 1


@dataclass(frozen=True)
class SelectionPolicy:
    """
    Parameters of the best hit ordering.

    Attributes:
        evalue_band: Band width in orders of magnitude of E-value
        coverage_band: Band width in percent of query coverage
        use_tax_score: Rank similarity search hits by taxonomic closeness
            (only meaningful when a target species is configured)
    """

    evalue_band: float = 8.0
    coverage_band: float = 5.0
    use_tax_score: bool = False

    @classmethod
    def from_config(cls, config) -> "SelectionPolicy":
        """Build from a PipelineConfig."""
        return cls(
            evalue_band=config.selection.evalue_band,
            coverage_band=config.selection.coverage_band,
            use_tax_score=config.similarity_search.target_species is not None,
        )


DEFAULT_POLICY = SelectionPolicy()


def evalue_band(evalue: float, width: float) -> int:
    """Band index of an E-value; smaller E-values give higher bands."""
    return math.floor(-math.log10(max(evalue, MIN_EVALUE)) / width)


def coverage_band(coverage: float | None, width: float) -> int:
    return math.floor((coverage or 0.0) / width)


def _rank_key(hit: AlignmentResult, policy: SelectionPolicy) -> tuple:
    """Tuple where a larger value means a better hit."""
    bands = (
        evalue_band(hit.evalue, policy.evalue_band),
        coverage_band(hit.coverage, policy.coverage_band),
    )
    residual = (-max(hit.evalue, 0.0), hit.coverage or 0.0)

    match hit:
        case SimilaritySearchHit():
            tax = hit.tax_score if policy.use_tax_score else 0
            return (hit.is_informative, *bands, tax, *residual, hit.bit_score)
        case OrthologHit():
            return (*bands, *residual, hit.seed_score)
        case DomainScanHit():
            return (*bands, *residual)
        case _:
            raise TypeError(f"Not an alignment result: {type(hit).__name__}")


def compare(
    a: AlignmentResult,
    b: AlignmentResult,
    policy: SelectionPolicy = DEFAULT_POLICY,
) -> Ordering:
    """
    Compare two alignment results of the same variant.

    Criteria, in order: informativeness (similarity search only), E-value
    band, coverage band, taxonomic score (similarity search with a target
    taxon), raw E-value, raw coverage. Remaining ties are broken by target_id
    ascending so the result never depends on input order.

    Raises:
        IncompatibleVariant: a and b are different variants
    """
    if type(a) is not type(b):
        raise IncompatibleVariant(
            f"Cannot compare {type(a).__name__} with {type(b).__name__}"
        )

    key_a = _rank_key(a, policy)
    key_b = _rank_key(b, policy)
    if key_a > key_b:
        return Ordering.GREATER
    if key_a < key_b:
        return Ordering.LESS

    if a.target_id < b.target_id:
        return Ordering.GREATER
    if a.target_id > b.target_id:
        return Ordering.LESS
    return Ordering.EQUAL


def select_best(
    results: Iterable[AlignmentResult],
    policy: SelectionPolicy = DEFAULT_POLICY,
) -> AlignmentResult:
    """
    Maximum of results under compare().

    Raises:
        ValueError: results is empty
        IncompatibleVariant: results mix variants
    """
    results = list(results)
    if not results:
        raise ValueError("select_best() requires at least one result")
    return max(results, key=functools.cmp_to_key(lambda a, b: compare(a, b, policy)))
