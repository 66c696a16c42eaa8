"""Functional annotation stage (EggNOG, InterProScan)."""

from transcriptome_pipeline.stages.functional_annotation.module import EggnogStage, InterproStage
from transcriptome_pipeline.stages.functional_annotation.parse import parse_eggnog_output, parse_interpro_xml
from transcriptome_pipeline.stages.functional_annotation.transform import GeneOntologyResolver

__all__ = [
    "EggnogStage",
    "InterproStage",
    "parse_eggnog_output",
    "parse_interpro_xml",
    "GeneOntologyResolver",
]
