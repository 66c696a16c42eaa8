"""Functional annotation stages (EggNOG seed orthologs, InterProScan domains)."""

from collections import Counter
from pathlib import Path
from typing import Optional

import structlog

from transcriptome_pipeline.errors import ConfigurationError
from transcriptome_pipeline.lookup import LookupService
from transcriptome_pipeline.output.graphs import DOMAIN_BAR_HEADER, TAX_SCOPE_BAR_HEADER, write_graph_data
from transcriptome_pipeline.output.headers import EGGNOG_HEADERS, INTERPRO_HEADERS, Header, HeaderContext
from transcriptome_pipeline.output.statistics import TOP_COUNT, format_top_block, top_n_categories
from transcriptome_pipeline.output.writers import emit_alignment_tables
from transcriptome_pipeline.sequences.fasta import record_entries, write_fasta
from transcriptome_pipeline.sequences.models import Stage
from transcriptome_pipeline.sequences.store import FilteredView, is_frame_kept
from transcriptome_pipeline.stages.base import StageModule, VerifyResult, tsv_is_complete, xml_is_well_formed
from transcriptome_pipeline.stages.functional_annotation.load import eggnog_frame, interpro_frame, load_to_duckdb
from transcriptome_pipeline.stages.functional_annotation.models import (
    ANNOTATED_BASENAME,
    DOMAIN_GRAPH_FILENAME,
    EGGNOG_DIRECTORY,
    EGGNOG_SOFTWARE,
    EGGNOG_TABLE_NAME,
    INTERPRO_DATABASE,
    INTERPRO_DIRECTORY,
    INTERPRO_OUTPUT,
    INTERPRO_SOFTWARE,
    INTERPRO_TABLE_NAME,
    TAX_SCOPE_GRAPH_FILENAME,
    UNANNOTATED_BASENAME,
)
from transcriptome_pipeline.stages.functional_annotation.parse import parse_eggnog_output, parse_interpro_xml
from transcriptome_pipeline.stages.functional_annotation.run import (
    build_interproscan_command,
    run_eggnog_search,
    run_interproscan,
)
from transcriptome_pipeline.stages.functional_annotation.summary import go_statistics
from transcriptome_pipeline.stages.functional_annotation.transform import (
    GeneOntologyResolver,
    enrich_best_hits,
    enrich_domain,
    enrich_ortholog,
)
from transcriptome_pipeline.stages.similarity_search.models import database_name
from transcriptome_pipeline.stages.similarity_search.run import search_mode

logger = structlog.get_logger()


class AnnotationStage(StageModule):
    """
    Shared layout of the functional annotation sources.

    Every frame-kept sequence is submitted, whether or not similarity
    search found a hit for it.
    """

    stage = Stage.FUNCTIONAL_ANNOTATION
    headers: list[Header] = []

    def __init__(self, context, go: Optional[GeneOntologyResolver] = None):
        super().__init__(context)
        self.go = go or GeneOntologyResolver(None)
        self.basename = self.config.transcriptome.stem

    @property
    def protein_query(self) -> bool:
        kept = list(self.store.filtered_view(is_frame_kept))
        return bool(kept) and all(record.sequence_protein for record in kept)

    @property
    def query_path(self) -> Path:
        suffix = "faa" if self.protein_query else "fnn"
        return self.stage_dir / f"{self.basename}_query.{suffix}"

    def write_query(self) -> None:
        count = write_fasta(
            self.query_path,
            record_entries(self.store.filtered_view(is_frame_kept), self.protein_query),
        )
        logger.info("annotation_query_written", software=self.software, sequences=count)

    def annotated(self) -> FilteredView:
        return self.store.filtered_view(is_frame_kept).filter(
            lambda r: r.hit_stage(self.stage, self.software)
        )

    def unannotated(self) -> FilteredView:
        return self.store.filtered_view(is_frame_kept).filter(
            lambda r: not r.hit_stage(self.stage, self.software)
        )

    def best_hits(self) -> list:
        policy = self.context.policy
        return [r.get_best_overall(self.stage, self.software, policy) for r in self.annotated()]

    def write_sequences(self, context: HeaderContext) -> dict[str, Path]:
        """annotated_sequences.* and unannotated_sequences.* in processed/."""
        headers = [Header.QUERY, *self.headers]
        formats = self.config.output.formats
        paths = emit_alignment_tables(
            self.annotated(), headers, formats, self.processed_dir / ANNOTATED_BASENAME, context
        )
        emit_alignment_tables(
            self.unannotated(), headers, formats, self.processed_dir / UNANNOTATED_BASENAME, context
        )
        return paths

    def output_paths(self) -> list[Path]:
        paths = [self.processed_dir, self.figures_dir]
        if self.stage_dir.exists():
            paths += sorted(self.stage_dir.glob(f"{self.basename}_query.*"))
            paths += sorted(self.stage_dir.glob("*_std.*"))
        return paths


class EggnogStage(AnnotationStage):
    """Gene family, GO and pathway assignment through EggNOG seed orthologs."""

    software = EGGNOG_SOFTWARE
    directory = EGGNOG_DIRECTORY
    table_name = EGGNOG_TABLE_NAME
    headers = EGGNOG_HEADERS

    def __init__(
        self,
        context,
        eggnog: Optional[LookupService] = None,
        go: Optional[GeneOntologyResolver] = None,
    ):
        super().__init__(context, go)
        self.eggnog = eggnog
        self.database_path = Path(self.config.ontology.eggnog_database)
        self.database = database_name(self.database_path)

    @property
    def output_file(self) -> Path:
        return self.stage_dir / f"{search_mode(self.protein_query)}_{self.basename}_{self.database}.out"

    def verify_previous_output(self) -> VerifyResult:
        if tsv_is_complete(self.output_file):
            logger.info("eggnog_output_found", path=str(self.output_file))
            return VerifyResult(True, [self.output_file])
        return VerifyResult(False)

    def execute(self) -> None:
        self.write_query()
        run_eggnog_search(
            self.config.executables.diamond,
            search_mode(self.protein_query),
            self.database_path.resolve(),
            self.query_path.resolve(),
            self.output_file.resolve(),
            self.stage_dir,
            self.config.threads,
        )

    def parse(self) -> None:
        self.reset_derived_outputs()
        report = self.context.report
        outcome = parse_eggnog_output(self.output_file, self.database, self.store)
        report.record_skipped_rows(self.output_file.name, outcome.skipped)
        enrich_best_hits(
            self.store,
            self.software,
            self.database,
            lambda hit: enrich_ortholog(hit, self.eggnog, self.go),
            self.context.policy,
        )

        context = HeaderContext(self.stage, self.software, self.database, policy=self.context.policy)
        paths = self.write_sequences(context)

        kept_count = len(self.store.filtered_view(is_frame_kept))
        hits = self.best_hits()
        families = [hit for hit in hits if hit.tax_scope or hit.member_ogs]
        lines = [
            "Statistics for overall EggNOG results:",
            f"Total unique sequences with family assignment: {len(families)}",
            f"Total unique sequences without family assignment: {kept_count - len(families)}",
        ]
        if "tsv" in paths:
            lines.append(f"\tAnnotated sequences (TSV): {paths['tsv']}")

        tax_scopes = top_n_categories(
            Counter(hit.tax_scope_readable for hit in families if hit.tax_scope_readable), TOP_COUNT
        )
        if tax_scopes:
            lines.append(format_top_block(f"Top {TOP_COUNT} Taxonomic Scopes Assigned:", tax_scopes))
            write_graph_data(
                self.figures_dir / TAX_SCOPE_GRAPH_FILENAME,
                TAX_SCOPE_BAR_HEADER,
                [(entry.category, entry.count) for entry in tax_scopes],
            )

        lines += go_statistics(
            [hit.go_terms for hit in hits], len(hits), self.config.ontology.go_levels, self.figures_dir
        )

        kegg_hits = [hit for hit in hits if hit.kegg_terms]
        if kegg_hits:
            lines += [
                f"Total unique sequences with at least one pathway (KEGG) assignment: {len(kegg_hits)}",
                f"Total unique sequences without pathways (KEGG): {len(hits) - len(kegg_hits)}",
                f"Total pathways (KEGG) assigned: {sum(len(hit.kegg_terms) for hit in kegg_hits)}",
            ]
        if not hits:
            lines.append("Warning: No alignments against EggNOG database")

        report.write_section("Gene Family - Gene Ontology and Pathway - EggNOG", "\n".join(lines))
        load_to_duckdb(
            eggnog_frame(self.store, self.context.policy),
            self.software,
            self.context.pipeline_store,
            self.context.provenance,
        )
        logger.info("eggnog_complete", annotated=len(hits), families=len(families))

    def output_paths(self) -> list[Path]:
        paths = super().output_paths()
        if self.stage_dir.exists():
            paths += sorted(self.stage_dir.glob(f"blast[px]_{self.basename}_{self.database}.out"))
        return paths


class InterproStage(AnnotationStage):
    """Protein domain, GO and pathway assignment with InterProScan."""

    software = INTERPRO_SOFTWARE
    directory = INTERPRO_DIRECTORY
    table_name = INTERPRO_TABLE_NAME
    headers = INTERPRO_HEADERS

    @property
    def output_file(self) -> Path:
        return self.stage_dir / INTERPRO_OUTPUT

    def verify_previous_output(self) -> VerifyResult:
        if xml_is_well_formed(self.output_file):
            logger.info("interpro_output_found", path=str(self.output_file))
            return VerifyResult(True, [self.output_file])
        return VerifyResult(False)

    def execute(self) -> None:
        if not self.protein_query:
            raise ConfigurationError(
                "InterProScan needs protein sequences: use protein input or enable frame selection"
            )
        self.write_query()
        command = build_interproscan_command(
            self.config.executables.interproscan,
            self.query_path.resolve(),
            self.output_file.resolve(),
            self.config.threads,
            databases=self.config.ontology.interpro_databases,
        )
        run_interproscan(command, self.stage_dir)

    def parse(self) -> None:
        self.reset_derived_outputs()
        report = self.context.report
        outcome = parse_interpro_xml(self.output_file, self.store)
        report.record_skipped_rows(self.output_file.name, outcome.skipped)
        enrich_best_hits(
            self.store,
            self.software,
            INTERPRO_DATABASE,
            lambda hit: enrich_domain(hit, self.go),
            self.context.policy,
        )

        context = HeaderContext(self.stage, self.software, INTERPRO_DATABASE, policy=self.context.policy)
        paths = self.write_sequences(context)

        kept_count = len(self.store.filtered_view(is_frame_kept))
        hits = self.best_hits()
        lines = [
            "Statistics for overall InterProScan results:",
            f"Total unique sequences with a domain assignment: {len(hits)}",
            f"Total unique sequences without a domain assignment: {kept_count - len(hits)}",
        ]
        if "tsv" in paths:
            lines.append(f"\tAnnotated sequences (TSV): {paths['tsv']}")

        domains = top_n_categories(
            Counter(hit.interpro_description or hit.domain_description or hit.domain_id for hit in hits),
            TOP_COUNT,
        )
        if domains:
            lines.append(format_top_block(f"Top {TOP_COUNT} domain families assigned:", domains))
            write_graph_data(
                self.figures_dir / DOMAIN_GRAPH_FILENAME,
                DOMAIN_BAR_HEADER,
                [(entry.category, entry.count) for entry in domains],
            )

        lines += go_statistics(
            [hit.go_terms for hit in hits], len(hits), self.config.ontology.go_levels, self.figures_dir
        )
        pathway_hits = [hit for hit in hits if hit.pathways]
        if pathway_hits:
            lines.append(f"Total unique sequences with at least one pathway assignment: {len(pathway_hits)}")

        report.write_section("Protein Domains - InterProScan", "\n".join(lines))
        load_to_duckdb(
            interpro_frame(self.store, self.context.policy),
            self.software,
            self.context.pipeline_store,
            self.context.provenance,
        )
        logger.info("interpro_complete", annotated=len(hits))

    def output_paths(self) -> list[Path]:
        return super().output_paths() + [self.output_file]
