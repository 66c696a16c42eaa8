"""Two-column graph data files read by the external plotting script."""

from pathlib import Path
from typing import Iterable

import polars as pl

FRAME_PIE_HEADER = ("flag", "count")
FRAME_BOX_HEADER = ("flag", "sequence length")
SPECIES_BAR_HEADER = ("species", "count")
CONTAMINANT_BAR_HEADER = ("contaminant species", "count")
TAX_SCOPE_BAR_HEADER = ("Taxonomic Scope", "Count")
GO_BAR_HEADER = ("Gene Ontology Term", "Count")
DOMAIN_BAR_HEADER = ("Domain", "Count")
FPKM_HEADER = ("sequence", "fpkm")


def write_graph_data(path: Path, header: tuple[str, str], rows: Iterable[tuple]) -> Path:
    """
    Write tab-separated (category, value) rows under a header line.

    The header text must match what the plotting script expects; it is
    written verbatim.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = list(rows)
    df = pl.DataFrame(
        {
            header[0]: [str(row[0]) for row in rows],
            header[1]: [str(row[1]) for row in rows],
        },
        schema={header[0]: pl.Utf8, header[1]: pl.Utf8},
    )
    df.write_csv(path, separator="\t", include_header=True, quote_style="never")
    return path


def go_graph_name(category: str, level: int) -> str:
    """File name of a GO bar graph: <category><level>_go_bar_graph.txt."""
    return f"{category}{level}_go_bar_graph.txt"
