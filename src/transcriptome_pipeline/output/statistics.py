"""Sequence length and category count statistics."""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Mapping

# Number of entries listed in "top N" statistics blocks
TOP_COUNT = 10


@dataclass(frozen=True)
class LengthStatistics:
    """Summary of a multiset of sequence lengths."""

    n50: int
    n90: int
    min: int
    max: int
    mean: float
    total: int
    count: int


@dataclass(frozen=True)
class CategoryCount:
    category: str
    count: int
    percent: float


def compute_length_statistics(lengths: Iterable[int]) -> LengthStatistics:
    """
    Compute N50/N90 and basic statistics over sequence lengths.

    N50 (N90) is the length at which the running total over the
    descending-sorted lengths first reaches at least 50% (90%) of the sum.

    Raises:
        ValueError: lengths is empty
    """
    ordered = sorted(lengths, reverse=True)
    if not ordered:
        raise ValueError("Cannot compute length statistics of an empty set")

    total = sum(ordered)
    n50 = n90 = None
    running = 0
    for length in ordered:
        running += length
        if n50 is None and running * 2 >= total:
            n50 = length
        if n90 is None and running * 10 >= total * 9:
            n90 = length
            break

    return LengthStatistics(
        n50=n50,
        n90=n90,
        min=ordered[-1],
        max=ordered[0],
        mean=total / len(ordered),
        total=total,
        count=len(ordered),
    )


def top_n_categories(counter: Mapping[str, int], n: int = TOP_COUNT) -> list[CategoryCount]:
    """
    Most frequent categories.

    Sorted by count descending, ties broken by category name ascending.
    Percentages are relative to the total number of observations, not to
    the number of categories.
    """
    total = sum(counter.values())
    ordered = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [
        CategoryCount(category, count, round(count / total * 100, 2) if total else 0.0)
        for category, count in ordered[:n]
    ]


def format_length_block(title: str, stats: LengthStatistics, unit: str = "bp") -> str:
    """Human-readable length statistics block for the statistics log."""
    return (
        f"{title}:"
        f"\n\tTotal sequences: {stats.count}"
        f"\n\tTotal length of transcriptome({unit}): {stats.total}"
        f"\n\tAverage length({unit}): {stats.mean:.2f}"
        f"\n\tn50: {stats.n50}"
        f"\n\tn90: {stats.n90}"
        f"\n\tLongest sequence({unit}): {stats.max}"
        f"\n\tShortest sequence({unit}): {stats.min}"
    )


def format_top_block(title: str, counts: list[CategoryCount]) -> str:
    """Numbered "top N" listing: "\\t1)name: count(percent%)"."""
    lines = [title]
    for rank, entry in enumerate(counts, start=1):
        lines.append(f"\t{rank}){entry.category}: {entry.count}({entry.percent:.2f}%)")
    return "\n".join(lines)


def go_level_counter(counter: Counter, level: int) -> Counter:
    """Restrict GO label counts to one level; level 0 keeps every term."""
    if level == 0:
        return Counter(counter)
    suffix = f"(L={level})"
    return Counter({label: count for label, count in counter.items() if label.endswith(suffix)})
