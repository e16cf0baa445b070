from dataclasses import dataclass
import logging
import os
from os import path
import random
from typing import Sequence, Union

from alignstats.engine.analysis.aligners import AlignmentFileParser, get_alignment_parser
from alignstats.engine.analysis.merging import merge_alignments
from alignstats.engine.analysis.references import References
from alignstats.engine.analysis.selection import pick_top_alignment, sort_alignments
from alignstats.engine.analysis.statistics import ReadSetStats
from alignstats.engine.exceptions.analysis import AlignmentFileReadException, MalformedSequenceFileException, NoAlignmentsFoundException, NoReadsFoundException, UnknownReferenceException
from alignstats.engine.options import AnalysisOptions
from alignstats.engine.reading import SequenceIndexer, is_valid_read_extension, validate_read_identifiers
from alignstats.engine.structures.alignment import AlignmentFragment, MergedAlignmentProfile, NonAlignedRead
from alignstats.engine.structures.reads import ReadProvenance, ReadType, SequenceRecord
from alignstats.engine.writing import NonAlignedTableWriter, ReadLengthsTableWriter, write_metrics_table, write_rows_as_table

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 100

@dataclass(frozen=True)
class AlignmentCounts:
    reads: int
    reads_with_alignments: int
    reads_without_alignments: int

class ReadSet:
    """The Template, Complement or 2D reads of one sample."""

    def __init__(self, read_type: ReadType, options: AnalysisOptions, references: References, parser: AlignmentFileParser, stats: ReadSetStats, random_source: Union[random.Random, None] = None):
        self.read_type = read_type
        self._options = options
        self._references = references
        self._parser = parser
        self._stats = stats
        self._random_source = random_source
        self.files_indexed = 0

    @property
    def stats(self) -> ReadSetStats:
        return self._stats

    def input_directories(self, base_dir: str) -> list[tuple[str, ReadProvenance]]:
        if not self._options.is_new_style_dir(base_dir):
            return [(path.join(base_dir, self.read_type.value), ReadProvenance.COMBINED)]
        directories = []
        if self._options.process_pass:
            directories.append((path.join(base_dir, "pass", self.read_type.value), ReadProvenance.PASS))
        if self._options.process_fail:
            directories.append((path.join(base_dir, "fail", self.read_type.value), ReadProvenance.FAIL))
        return directories

    def _list_files(self, input_dir: str) -> list[str]:
        if not path.isdir(input_dir):
            logger.warning("Directory %s doesn't exist", input_dir)
            return []
        # listing order carries no meaning, sorting only keeps logs stable
        file_names = sorted(entry for entry in os.listdir(input_dir) if path.isfile(path.join(input_dir, entry)))
        if len(file_names) == 0:
            logger.warning("Directory %s empty", input_dir)
        return file_names

    def _reached_max_reads(self, processed: int) -> bool:
        return self._options.max_reads > 0 and processed >= self._options.max_reads

    def process_reads(self) -> int:
        """Indexes every read file and records read lengths.

        Returns the number of read files indexed.
        """
        self.files_indexed = 0
        read_format = self._parser.read_format
        with ReadLengthsTableWriter(self._options.lengths_filename(self.read_type)) as lengths_table:
            for input_dir, provenance in self.input_directories(self._options.read_dir(read_format)):
                logger.info("Gathering stats from %s", input_dir)
                for file_name in self._list_files(input_dir):
                    if not is_valid_read_extension(file_name, read_format):
                        continue
                    if self._reached_max_reads(self.files_indexed):
                        break
                    records = self._read_query_file(path.join(input_dir, file_name), provenance)
                    if records is None:
                        continue
                    lengths_table.write_read_file(file_name, records, provenance)
                    self._stats.add_read_file(provenance)
                    self.files_indexed += 1
                    if self.files_indexed % PROGRESS_INTERVAL == 0:
                        logger.info("%d read files indexed", self.files_indexed)
        logger.info("%d %s read files indexed", self.files_indexed, self.read_type.value)
        return self.files_indexed

    def _read_query_file(self, file_path: str, provenance: ReadProvenance) -> Union[Sequence[SequenceRecord], None]:
        indexer = SequenceIndexer(file_path, self._parser.read_format)
        try:
            records = indexer.index()
        except (OSError, MalformedSequenceFileException) as e:
            logger.warning("Skipping read file: %s", e)
            return None
        validate_read_identifiers(records, file_path)
        if len(records) > 1:
            logger.warning("File %s has more than 1 read.", file_path)
        for record in records:
            self._stats.add_length(record.length, provenance)
        return records

    def process_alignments(self) -> AlignmentCounts:
        """Parses every alignment file, merging each read's fragments into one profile."""
        files_parsed = 0
        reads_with_alignments = 0
        reads_without_alignments = 0
        with NonAlignedTableWriter(self._options.non_aligned_filename(self.read_type)) as non_aligned_table:
            for input_dir, _ in self.input_directories(self._options.aligner_dir):
                logger.info("Parsing from %s", input_dir)
                for file_name in self._list_files(input_dir):
                    if not file_name.endswith(self._parser.alignment_file_extension):
                        continue
                    if self._reached_max_reads(files_parsed):
                        break
                    try:
                        parsed = self._parser.parse_file(path.join(input_dir, file_name))
                    except AlignmentFileReadException as e:
                        logger.warning("Skipping alignment file: %s", e)
                        continue
                    files_parsed += 1
                    for non_aligned_read in parsed.non_aligned:
                        non_aligned_table.write_non_aligned(non_aligned_read)
                    for read_name, read_fragments in parsed.fragments.items():
                        try:
                            self.merge_read_alignments(parsed.file_name, read_fragments)
                        except UnknownReferenceException as e:
                            logger.warning("Skipping alignments of %s in %s: %s", read_name, file_name, e)
                            non_aligned_table.write_non_aligned(NonAlignedRead(file_name, read_name, "unknown reference"))
                            reads_without_alignments += 1
                            self._stats.add_unaligned()
                        else:
                            reads_with_alignments += 1
                    for _ in parsed.unaligned_read_names():
                        reads_without_alignments += 1
                        self._stats.add_unaligned()
                    if files_parsed % PROGRESS_INTERVAL == 0:
                        logger.info("%d/%d alignment files parsed", files_parsed, self.files_indexed)
        reads = reads_with_alignments + reads_without_alignments
        write_metrics_table(self._stats.alignment_summary(), self._options.alignment_summary_filename(self.read_type))
        logger.info("%d %s reads parsed from %d files, %d with alignments", reads, self.read_type.value, files_parsed, reads_with_alignments)
        return AlignmentCounts(reads, reads_with_alignments, reads_without_alignments)

    def merge_read_alignments(self, file_name: str, read_fragments: Sequence[AlignmentFragment]) -> MergedAlignmentProfile:
        """Sorts one read's fragments, picks the anchor and merges from it."""
        sorted_fragments = sort_alignments(read_fragments)
        top_alignment = pick_top_alignment(sorted_fragments, self._random_source)
        anchor = sorted_fragments[top_alignment]
        logger.debug("%s: query size = %d, hit size = %d", file_name, anchor.query_size, anchor.hit_size)
        reference = self._references.get_reference_by_id(anchor.hit_name)
        profile = merge_alignments(sorted_fragments, top_alignment)
        reference_stats = reference.get_stats_by_type(self.read_type)
        reference_stats.add_profile(profile)
        reference_stats.alignments_table.write_merged_alignment(file_name, profile)
        self._stats.add_alignment(profile)
        return profile

def analyse(options: AnalysisOptions, random_source: Union[random.Random, None] = None) -> dict[ReadType, AlignmentCounts]:
    """Runs every read type of a sample through indexing, parsing and merging,
    then writes the per-type and per-reference output files."""
    logger.info("Finding references")
    references = References(options.reference_fasta, options.analysis_dir)
    parser = get_alignment_parser(options.aligner, references)
    counts: dict[ReadType, AlignmentCounts] = {}
    length_summary_rows = []
    try:
        for read_type in options.read_types:
            stats = ReadSetStats(read_type)
            read_set = ReadSet(read_type, options, references, parser, stats, random_source)
            if read_set.process_reads() < 1:
                raise NoReadsFoundException(read_type.value)
            alignment_counts = read_set.process_alignments()
            if alignment_counts.reads_with_alignments < 1:
                raise NoAlignmentsFoundException(read_type.value)
            if alignment_counts.reads_with_alignments < options.low_alignment_threshold:
                logger.warning("Few alignments (%d) found to process.", alignment_counts.reads_with_alignments)
            length_summary_rows.append(stats.length_summary_row())
            counts[read_type] = alignment_counts
        write_rows_as_table(length_summary_rows, options.length_summary_filename)

        logger.info("Writing analysis files")
        for read_type in options.read_types:
            references.write_reference_stat_files(read_type, options.coverage_bin_size)
            references.write_reference_summary(read_type)
    finally:
        references.close_alignment_files()
    return counts
