"""Constants for the functional annotation stage (EggNOG and InterProScan)."""

from transcriptome_pipeline.sequences.models import GoCategory

EGGNOG_SOFTWARE = "eggnog"
INTERPRO_SOFTWARE = "interpro"

EGGNOG_DIRECTORY = "functional_annotation/eggnog"
INTERPRO_DIRECTORY = "functional_annotation/interpro"

EGGNOG_TABLE_NAME = "functional_annotation_eggnog"
INTERPRO_TABLE_NAME = "functional_annotation_interpro"

# Evidence key database of InterProScan matches (member databases are per hit)
INTERPRO_DATABASE = "interpro"
INTERPRO_OUTPUT = "interpro_results.xml"
INTERPRO_NAMESPACE = "http://www.ebi.ac.uk/interpro/resources/schemas/interproscan5"

# Seed ortholog hits kept per query
EGGNOG_TOP = 1
# DIAMOND default E-value cutoff, passed explicitly
EGGNOG_EVALUE = 0.001

ANNOTATED_BASENAME = "annotated_sequences"
UNANNOTATED_BASENAME = "unannotated_sequences"

TAX_SCOPE_GRAPH_FILENAME = "eggnog_tax_scope_bar.txt"
DOMAIN_GRAPH_FILENAME = "interpro_domain_bar.txt"

# Key of the category-independent GO counter
GO_OVERALL = "overall"
GO_CATEGORIES = (GoCategory.BIOLOGICAL.value, GoCategory.CELLULAR.value, GoCategory.MOLECULAR.value)

# InterProScan go-xref category attribute -> GoCategory value
INTERPRO_GO_CATEGORIES = {
    "BIOLOGICAL_PROCESS": GoCategory.BIOLOGICAL.value,
    "CELLULAR_COMPONENT": GoCategory.CELLULAR.value,
    "MOLECULAR_FUNCTION": GoCategory.MOLECULAR.value,
}

# E-value recorded for signature matches that report none (e.g. ProSite patterns)
UNSCORED_EVALUE = 1.0

# Columns of the EggNOG lookup table besides the seed_ortholog key
EGGNOG_LOOKUP_COLUMNS = (
    "tax_scope",
    "tax_scope_readable",
    "predicted_gene",
    "member_ogs",
    "kegg",
    "bigg",
    "go",
)
