"""Tests for best hit ordering."""

import itertools
import random

import pytest

from transcriptome_pipeline.errors import IncompatibleVariant
from transcriptome_pipeline.sequences.models import DomainScanHit, OrthologHit, SimilaritySearchHit
from transcriptome_pipeline.sequences.selection import (
    DEFAULT_POLICY,
    Ordering,
    SelectionPolicy,
    compare,
    coverage_band,
    evalue_band,
    select_best,
)


def sim(target_id, evalue, coverage, informative=True, tax_score=0, bit_score=0.0):
    return SimilaritySearchHit(
        database="nr",
        target_id=target_id,
        evalue=evalue,
        coverage=coverage,
        is_informative=informative,
        tax_score=tax_score,
        bit_score=bit_score,
    )


@pytest.fixture
def hits():
    """Mixed pool with ties in both bands."""
    return [
        sim("A", 1e-10, 90.0, informative=False),
        sim("B", 1e-5, 50.0),
        sim("C", 1e-50, 92.0),
        sim("D", 1e-52, 93.0),
        sim("E", 0.0, 100.0),
        sim("F", 1e-50, 92.0),
        sim("G", 1e-3, 10.0, informative=False),
        sim("H", 1e-120, 40.0, tax_score=3),
    ]


def test_informative_beats_better_uninformative():
    """An informative hit wins even with a worse E-value and coverage."""
    a = sim("A", 1e-10, 90.0, informative=False)
    b = sim("B", 1e-5, 50.0, informative=True)

    assert compare(b, a) == Ordering.GREATER
    assert compare(a, b) == Ordering.LESS
    assert select_best([a, b]) is b


def test_evalue_band_ties_fall_through_to_coverage():
    """E-values in the same band are tied; coverage decides."""
    assert evalue_band(1e-10, 8.0) == evalue_band(1e-12, 8.0)
    close_evalue_more_coverage = sim("A", 1e-10, 95.0)
    better_evalue_less_coverage = sim("B", 1e-12, 60.0)

    assert select_best([better_evalue_less_coverage, close_evalue_more_coverage]) is close_evalue_more_coverage


def test_evalue_band_dominates_coverage():
    far_better_evalue = sim("A", 1e-60, 60.0)
    better_coverage = sim("B", 1e-10, 99.0)

    assert select_best([better_coverage, far_better_evalue]) is far_better_evalue


def test_zero_evalue_is_best_band():
    assert evalue_band(0.0, 8.0) == evalue_band(1e-180, 8.0)
    assert select_best([sim("A", 1e-150, 90.0), sim("B", 0.0, 90.0)]).target_id == "B"


def test_coverage_band():
    assert coverage_band(92.0, 5.0) == coverage_band(94.9, 5.0)
    assert coverage_band(None, 5.0) == 0


def test_tax_score_only_with_policy():
    """Taxonomic closeness breaks band ties only when the policy enables it."""
    close = sim("B", 1e-20, 90.0, tax_score=5)
    distant = sim("A", 1e-21, 91.0, tax_score=1)
    policy = SelectionPolicy(use_tax_score=True)

    assert select_best([distant, close], policy) is close
    assert select_best([distant, close], DEFAULT_POLICY) is distant


def test_target_id_breaks_full_ties():
    a = sim("A", 1e-50, 92.0)
    b = sim("B", 1e-50, 92.0)

    assert compare(a, b) == Ordering.GREATER
    assert compare(b, a) == Ordering.LESS
    assert compare(a, a) == Ordering.EQUAL


def test_strict_weak_order(hits):
    """Irreflexive, antisymmetric and transitive over the whole pool."""
    for a in hits:
        assert compare(a, a) == Ordering.EQUAL
    for a, b in itertools.permutations(hits, 2):
        assert compare(a, b) == -compare(b, a)
    for a, b, c in itertools.permutations(hits, 3):
        if compare(a, b) == Ordering.GREATER and compare(b, c) == Ordering.GREATER:
            assert compare(a, c) == Ordering.GREATER


def test_selection_ignores_input_order(hits):
    expected = select_best(hits)
    rng = random.Random(7)
    for _ in range(25):
        shuffled = hits[:]
        rng.shuffle(shuffled)
        assert select_best(shuffled) is expected


def test_ortholog_seed_score_breaks_ties():
    low = OrthologHit(database="eggnog", target_id="A", evalue=1e-30, coverage=90.0, seed_score=100.0)
    high = OrthologHit(database="eggnog", target_id="B", evalue=1e-30, coverage=90.0, seed_score=300.0)

    assert select_best([low, high]) is high


def test_domain_hits_compare():
    weak = DomainScanHit(database="interpro", target_id="PF2", evalue=1e-3)
    strong = DomainScanHit(database="interpro", target_id="PF1", evalue=1e-40)

    assert select_best([weak, strong]) is strong


def test_incompatible_variants():
    ortholog = OrthologHit(database="eggnog", target_id="A", evalue=1e-30)
    with pytest.raises(IncompatibleVariant):
        compare(sim("A", 1e-30, 90.0), ortholog)
    with pytest.raises(IncompatibleVariant):
        select_best([sim("A", 1e-30, 90.0), ortholog])


def test_select_best_empty():
    with pytest.raises(ValueError):
        select_best([])
