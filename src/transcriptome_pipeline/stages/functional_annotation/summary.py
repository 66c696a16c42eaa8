"""Gene Ontology statistics shared by the functional annotation sources."""

from collections import Counter
from pathlib import Path
from typing import Iterable, Sequence

from transcriptome_pipeline.output.graphs import GO_BAR_HEADER, go_graph_name, write_graph_data
from transcriptome_pipeline.output.statistics import TOP_COUNT, format_top_block, go_level_counter, top_n_categories
from transcriptome_pipeline.sequences.models import GoTerm
from transcriptome_pipeline.stages.functional_annotation.models import GO_CATEGORIES, GO_OVERALL


def go_counters(term_sets: Iterable[Sequence[GoTerm]]) -> dict[str, Counter]:
    """
    Count GO labels per category, plus GO_OVERALL across categories.

    Terms without a known category only count towards GO_OVERALL.
    """
    counters = {category: Counter() for category in (*GO_CATEGORIES, GO_OVERALL)}
    for terms in term_sets:
        for term in terms:
            label = term.label()
            counters[GO_OVERALL][label] += 1
            if term.category in counters:
                counters[term.category][label] += 1
    return counters


def go_statistics(
    term_sets: list[Sequence[GoTerm]],
    total_sequences: int,
    levels: Sequence[int],
    figures_dir: Path,
) -> list[str]:
    """
    GO statistics lines and per-level bar graph data files.

    Args:
        term_sets: GO terms of each annotated sequence's best hit
        total_sequences: Sequences that were annotated at all
        levels: GO levels to summarise (0 = every level)
        figures_dir: Directory receiving <category><level>_go_bar_graph.txt

    Returns:
        Lines for the statistics log (empty when no GO terms were assigned)
    """
    with_go = sum(1 for terms in term_sets if terms)
    if with_go == 0:
        return []

    counters = go_counters(term_sets)
    lines = [
        f"Total unique sequences with at least one GO term: {with_go}",
        f"Total unique sequences without GO terms: {total_sequences - with_go}",
        f"Total GO terms assigned: {sum(counters[GO_OVERALL].values())}",
    ]
    for level in levels:
        for category, counter in counters.items():
            top = top_n_categories(go_level_counter(counter, level), TOP_COUNT)
            if not top:
                continue
            lines.append(format_top_block(f"Top {TOP_COUNT} {category} terms assigned (lvl={level}):", top))
            write_graph_data(
                figures_dir / go_graph_name(category, level),
                GO_BAR_HEADER,
                [(entry.category, entry.count) for entry in top],
            )
    return lines
