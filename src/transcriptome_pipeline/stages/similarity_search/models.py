"""Constants for the DIAMOND similarity search stage."""

SOFTWARE = "diamond"
DIRECTORY = "similarity_search/diamond"

BEST_HITS_TABLE_NAME = "best_hits_similarity_search_diamond"

# DIAMOND --outfmt 6 columns, in order
DIAMOND_COLUMNS = [
    "qseqid",
    "sseqid",
    "pident",
    "length",
    "mismatch",
    "gapopen",
    "qstart",
    "qend",
    "sstart",
    "send",
    "evalue",
    "bitscore",
    "qcovhsp",
    "stitle",
]

# Hits reported per query
DIAMOND_TOP_PERCENT = 3

OVERALL = "overall"

BEST_HITS_SUFFIX = "_best_hits"
NO_CONTAM_SUFFIX = "_best_hits_no_contam"
CONTAM_SUFFIX = "_best_hits_contam"
NO_HITS_SUFFIX = "_no_hits"
UNSELECTED_SUFFIX = "_unselected.tsv"

SPECIES_GRAPH_SUFFIX = "_species_bar.txt"
CONTAM_GRAPH_SUFFIX = "_contam_bar.txt"


def database_name(path) -> str:
    """Identifier of a database: its file name without the .dmnd suffix."""
    name = str(path).replace("\\", "/").rsplit("/", 1)[-1]
    return name[: -len(".dmnd")] if name.endswith(".dmnd") else name
