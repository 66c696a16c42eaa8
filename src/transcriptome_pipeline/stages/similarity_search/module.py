"""Similarity search stage (DIAMOND against each configured database)."""

from collections import Counter
from pathlib import Path
from typing import Optional

import structlog

from transcriptome_pipeline.lookup import TaxonomyLookup
from transcriptome_pipeline.output.graphs import CONTAMINANT_BAR_HEADER, SPECIES_BAR_HEADER, write_graph_data
from transcriptome_pipeline.output.headers import SIMILARITY_HEADERS, HeaderContext
from transcriptome_pipeline.output.statistics import TOP_COUNT, format_top_block, top_n_categories
from transcriptome_pipeline.output.writers import emit_alignment_tables
from transcriptome_pipeline.sequences.fasta import record_entries, write_fasta
from transcriptome_pipeline.sequences.models import SequenceRecord, Stage
from transcriptome_pipeline.sequences.store import is_frame_kept
from transcriptome_pipeline.stages.base import StageModule, VerifyResult, tsv_is_complete
from transcriptome_pipeline.stages.similarity_search.load import best_hits_frame, load_to_duckdb
from transcriptome_pipeline.stages.similarity_search.models import (
    BEST_HITS_SUFFIX,
    BEST_HITS_TABLE_NAME,
    CONTAM_GRAPH_SUFFIX,
    CONTAM_SUFFIX,
    DIRECTORY,
    NO_CONTAM_SUFFIX,
    NO_HITS_SUFFIX,
    OVERALL,
    SOFTWARE,
    SPECIES_GRAPH_SUFFIX,
    UNSELECTED_SUFFIX,
    database_name,
)
from transcriptome_pipeline.stages.similarity_search.parse import (
    ParseOutcome,
    parse_similarity_output,
    unselected_frame,
)
from transcriptome_pipeline.stages.similarity_search.run import build_diamond_command, run_diamond, search_mode
from transcriptome_pipeline.stages.similarity_search.transform import (
    TaxonomicScorer,
    apply_overall_best,
    enrich_best_hits,
)

logger = structlog.get_logger()


class SimilaritySearchStage(StageModule):
    """
    Align frame-selected sequences against every configured database.

    Protein queries are searched with blastp, nucleotide queries with
    blastx. Each database gets its own evidence key, best hit tables and
    statistics; the overall best hit across databases decides species and
    contaminant status of the sequence.
    """

    stage = Stage.SIMILARITY_SEARCH
    software = SOFTWARE
    directory = DIRECTORY
    table_name = BEST_HITS_TABLE_NAME

    def __init__(self, context, taxonomy: Optional[TaxonomyLookup] = None):
        super().__init__(context)
        self.settings = self.config.similarity_search
        self.taxonomy = taxonomy
        self.databases = {database_name(path): Path(path) for path in self.settings.databases}
        self.basename = self.config.transcriptome.stem

    @property
    def protein_query(self) -> bool:
        kept = list(self.store.filtered_view(is_frame_kept))
        return bool(kept) and all(record.sequence_protein for record in kept)

    @property
    def query_path(self) -> Path:
        suffix = "faa" if self.protein_query else "fnn"
        return self.stage_dir / f"{self.basename}_query.{suffix}"

    def output_file(self, database: str) -> Path:
        return self.stage_dir / f"{search_mode(self.protein_query)}_{self.basename}_{database}.out"

    def verify_previous_output(self) -> VerifyResult:
        outputs = [self.output_file(name) for name in self.databases]
        if outputs and all(tsv_is_complete(path) for path in outputs):
            logger.info("diamond_output_found", files=[str(p) for p in outputs])
            return VerifyResult(True, outputs)
        return VerifyResult(False)

    def execute(self) -> None:
        protein = self.protein_query
        count = write_fasta(self.query_path, record_entries(self.store.filtered_view(is_frame_kept), protein))
        logger.info("diamond_query_written", path=str(self.query_path), sequences=count)

        for name, path in self.databases.items():
            output = self.output_file(name)
            if tsv_is_complete(output):
                logger.info("diamond_database_skipped", database=name, output=str(output))
                continue
            command = build_diamond_command(
                self.config.executables.diamond,
                search_mode(protein),
                path.resolve(),
                self.query_path.resolve(),
                output.resolve(),
                self.config.threads,
                self.settings.evalue,
                self.settings.query_coverage,
                self.settings.target_coverage,
            )
            run_diamond(command, self.stage_dir, self.stage_dir / f"diamond_{name}")

    def parse(self) -> None:
        self.reset_derived_outputs()
        policy = self.context.policy
        report = self.context.report

        scorer = None
        if self.settings.target_species and self.taxonomy is not None:
            scorer = TaxonomicScorer(self.taxonomy, self.settings.target_species)

        for name in self.databases:
            output = self.output_file(name)
            outcome = parse_similarity_output(
                output,
                name,
                self.store,
                self.settings.evalue,
                self.settings.query_coverage,
                self.settings.uninformative,
                scorer,
            )
            report.record_skipped_rows(output.name, outcome.skipped)
            unselected_path = self.processed_dir / name / f"{name}{UNSELECTED_SUFFIX}"
            unselected_path.parent.mkdir(parents=True, exist_ok=True)
            unselected_frame(outcome.unselected).write_csv(
                unselected_path, separator="\t", include_header=True, quote_style="never"
            )
            enrich_best_hits(self.store, name, self.taxonomy, self.settings.contaminants, policy)
            self._summarize(name, outcome, unselected_path)

        apply_overall_best(self.store, policy)
        self._summarize(OVERALL, None, None)

        load_to_duckdb(
            best_hits_frame(self.store, list(self.databases), policy),
            self.context.pipeline_store,
            self.context.provenance,
        )

    def _best(self, record: SequenceRecord, database: Optional[str]):
        policy = self.context.policy
        if database is None:
            return record.get_best_overall(self.stage, self.software, policy)
        return record.get_best_hit(self.stage, self.software, database, policy)

    def _summarize(self, name: str, outcome: Optional[ParseOutcome], unselected_path: Optional[Path]) -> None:
        """Write tables, FASTA, graph data and statistics for one database (or overall)."""
        database = None if name == OVERALL else name
        context = HeaderContext(self.stage, self.software, database, policy=self.context.policy)
        kept = self.store.filtered_view(is_frame_kept)
        if database is None:
            hits = kept.filter(lambda r: r.hit_stage(self.stage, self.software))
        else:
            hits = kept.filter(lambda r: r.hit_database(self.stage, self.software, database))
        hit_ids = set(hits.identifiers())
        no_hits = kept.filter(lambda r: r.identifier not in hit_ids)
        contam = hits.filter(lambda r: self._best(r, database).is_contaminant)
        no_contam = hits.filter(lambda r: not self._best(r, database).is_contaminant)

        out_dir = self.processed_dir / name
        formats = self.config.output.formats
        paths = emit_alignment_tables(hits, SIMILARITY_HEADERS, formats, out_dir / f"{name}{BEST_HITS_SUFFIX}", context)
        emit_alignment_tables(no_contam, SIMILARITY_HEADERS, formats, out_dir / f"{name}{NO_CONTAM_SUFFIX}", context)
        emit_alignment_tables(contam, SIMILARITY_HEADERS, formats, out_dir / f"{name}{CONTAM_SUFFIX}", context)
        emit_alignment_tables(no_hits, SIMILARITY_HEADERS, ["faa", "fnn"], out_dir / f"{name}{NO_HITS_SUFFIX}", context)

        best_hits = [self._best(r, database) for r in hits]
        species = Counter(hit.species for hit in best_hits if hit.species)
        contaminant_species = Counter(hit.species or hit.contaminant_tax for hit in best_hits if hit.is_contaminant)
        informative = sum(1 for hit in best_hits if hit.is_informative)
        top_species = top_n_categories(species, TOP_COUNT)
        top_contaminants = top_n_categories(contaminant_species, TOP_COUNT)

        write_graph_data(
            self.figures_dir / f"{name}{SPECIES_GRAPH_SUFFIX}",
            SPECIES_BAR_HEADER,
            [(entry.category, entry.count) for entry in top_species],
        )
        write_graph_data(
            self.figures_dir / f"{name}{CONTAM_GRAPH_SUFFIX}",
            CONTAMINANT_BAR_HEADER,
            [(entry.category, entry.count) for entry in top_contaminants],
        )

        total_hits = len(best_hits)
        contam_percent = len(contam) / total_hits * 100 if total_hits else 0.0
        lines = []
        if outcome is not None:
            lines += [
                f"Total alignments: {outcome.attached + len(outcome.unselected)}",
                f"Total unselected results: {len(outcome.unselected)}",
                f"\tWritten to: {unselected_path}",
            ]
        lines += [
            f"Total unique transcripts with an alignment: {total_hits}",
            f"\tReference transcriptome sequences with an alignment (FASTA): {paths.get('faa', paths.get('fnn', ''))}",
            f"\tSearch results (TSV): {paths.get('tsv', '')}",
            f"Total unique transcripts without an alignment: {len(no_hits)}",
            f"Total unique informative alignments: {informative}",
            f"Total unique uninformative alignments: {total_hits - informative}",
            f"Total unique contaminants: {len(contam)}({contam_percent:.2f}%)",
        ]
        if top_contaminants:
            lines.append(format_top_block(f"Top {TOP_COUNT} contaminants by species:", top_contaminants))
        if top_species:
            lines.append(format_top_block(f"Top {TOP_COUNT} alignments by species:", top_species))

        title = "Overall similarity search results" if database is None else f"Search results: {name}"
        self.context.report.write_section(title, "\n".join(lines))
        logger.info("similarity_summary", database=name, hits=total_hits, contaminants=len(contam))

    def output_paths(self) -> list[Path]:
        paths = [self.processed_dir, self.figures_dir]
        if self.stage_dir.exists():
            paths += sorted(self.stage_dir.glob(f"blast[px]_{self.basename}_*.out"))
            paths += sorted(self.stage_dir.glob(f"{self.basename}_query.*"))
            paths += sorted(self.stage_dir.glob("diamond_*_std.*"))
        return paths
