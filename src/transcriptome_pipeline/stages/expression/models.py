"""File and table names for expression filtering."""

SOFTWARE = "rsem"
# Tool named in ExternalToolFailure
RSEM_TOOL = "rsem-calculate-expression"
DIRECTORY = "expression/rsem"

# DuckDB table of per-sequence FPKM values
EXPRESSION_TABLE_NAME = "expression_fpkm"

# Columns of <name>.genes.results used by the parser
RSEM_ID_COLUMN = "gene_id"
RSEM_FPKM_COLUMN = "FPKM"


def results_filename(name: str) -> str:
    return f"{name}.genes.results"


def kept_filename(name: str) -> str:
    return f"{name}_kept.fasta"


def removed_filename(name: str) -> str:
    return f"{name}_removed.fasta"


def fpkm_graph_filename(name: str) -> str:
    return f"{name}_rsem_fpkm.txt"
