from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from io import StringIO
import logging
from os import PathLike, path
from typing import Iterable, Iterator, Mapping, Sequence, Union

from Bio import Align
import pysam

from alignstats.engine.analysis.references import References
from alignstats.engine.exceptions.analysis import AlignmentFileReadException, UnknownAlignerException
from alignstats.engine.structures.alignment import AlignmentFragment, AlignmentStats, EditOperation, EditOperationType, NonAlignedRead, compress_operations, tally_operations
from alignstats.engine.structures.reads import SequenceFormat

logger = logging.getLogger(__name__)

MAF_HEADER = "##maf version=1\n\n"

@dataclass
class ParsedAlignmentFile:
    file_name: str
    fragments: dict[str, list[AlignmentFragment]] = field(default_factory=dict)
    non_aligned: list[NonAlignedRead] = field(default_factory=list)
    malformed_records: int = 0

    def add_fragment(self, fragment: AlignmentFragment):
        self.fragments.setdefault(fragment.query_name, []).append(fragment)

    def add_non_aligned(self, non_aligned_read: NonAlignedRead):
        self.non_aligned.append(non_aligned_read)

    @property
    def alignment_count(self) -> int:
        return sum(len(read_fragments) for read_fragments in self.fragments.values())

    def unaligned_read_names(self) -> set[Union[str, None]]:
        """Reads with a non-aligned entry and no fragment. ``None`` stands for
        a file that yielded nothing at all."""
        return {entry.read_name for entry in self.non_aligned if entry.read_name not in self.fragments}

def forward_interval(start: int, end: int, size: int, strand: str) -> tuple[int, int]:
    if strand == "-":
        return size - end, size - start
    return start, end

def operations_from_gapped_strings(hit_aligned: str, query_aligned: str) -> tuple[EditOperation, ...]:
    if len(hit_aligned) != len(query_aligned):
        raise ValueError(f"aligned strings differ in length ({len(hit_aligned)} and {len(query_aligned)})")

    def column_operations():
        for hit_base, query_base in zip(hit_aligned.upper(), query_aligned.upper()):
            if hit_base == "-":
                if query_base != "-":
                    yield EditOperationType.INSERTION
            elif query_base == "-":
                yield EditOperationType.DELETION
            elif hit_base == query_base:
                yield EditOperationType.MATCH
            else:
                yield EditOperationType.MISMATCH

    return compress_operations(column_operations())

def derived_score(stats: AlignmentStats) -> int:
    return stats.matches - stats.mismatches - stats.insertions - stats.deletions

class AlignmentFileParser(ABC):
    name: str
    alignment_file_extension: str
    read_format: SequenceFormat

    def __init__(self, references: Union[References, None] = None):
        self._references = references

    def parse_file(self, file_path: Union[str, PathLike[str]]) -> ParsedAlignmentFile:
        parsed = ParsedAlignmentFile(path.basename(str(file_path)))
        try:
            self.read_alignments(str(file_path), parsed)
        except (OSError, UnicodeDecodeError) as e:
            raise AlignmentFileReadException(str(file_path), str(e)) from e
        if parsed.alignment_count == 0 and len(parsed.non_aligned) == 0:
            parsed.add_non_aligned(NonAlignedRead(parsed.file_name, None, "no alignments"))
        logger.debug("Parsed %d alignments from %s", parsed.alignment_count, parsed.file_name)
        return parsed

    @abstractmethod
    def read_alignments(self, file_path: str, parsed: ParsedAlignmentFile):
        pass

    def _skip_malformed(self, parsed: ParsedAlignmentFile, position: int, reason: str):
        parsed.malformed_records += 1
        logger.warning("Skipping malformed record at %s:%d (%s)", parsed.file_name, position, reason)

    def _reference_sequence(self, reference_name: str) -> Union[str, None]:
        if self._references is None or reference_name not in self._references:
            return None
        return self._references.get_reference_by_id(reference_name).sequence

class LastParser(AlignmentFileParser):
    """Reads LAST output in MAF.

    Each block is read with :mod:`Bio.Align`; its first row is the reference
    and its second the read. Blocks are handed over one at a time so that a
    malformed block is skipped without losing the rest of the file.
    """
    name = "last"
    alignment_file_extension = ".maf"
    read_format = SequenceFormat.FASTA

    def read_alignments(self, file_path: str, parsed: ParsedAlignmentFile):
        with open(file_path) as handle:
            for line_number, block in self._blocks(handle):
                try:
                    parsed.add_fragment(self._fragment_from_block(block))
                except ValueError as e:
                    self._skip_malformed(parsed, line_number, str(e))

    def _blocks(self, lines: Iterable[str]) -> Iterator[tuple[int, list[str]]]:
        block: list[str] = []
        block_start = 0
        for line_number, line in enumerate(lines, start=1):
            if line.startswith("a"):
                if block:
                    yield block_start, block
                block = [self._score_line(line)]
                block_start = line_number
            elif line.startswith("s") and block:
                block.append(line if line.endswith("\n") else line + "\n")
            elif not line.strip() and block:
                yield block_start, block
                block = []
        if block:
            yield block_start, block

    def _score_line(self, line: str) -> str:
        # LAST appends EG2= and E= to the "a" line, only the score is passed on
        return " ".join(["a"] + [word for word in line.split()[1:] if word.startswith("score=")]) + "\n"

    def _fragment_from_block(self, block: Sequence[str]) -> AlignmentFragment:
        alignment = Align.read(StringIO(MAF_HEADER + "".join(block) + "\n"), "maf")
        score = getattr(alignment, "score", None)
        if score is None:
            raise ValueError("alignment block has no score")
        if len(alignment.sequences) < 2:
            raise ValueError(f"expected 2 sequence lines, found {len(alignment.sequences)}")
        hit_record, query_record = alignment.sequences[0], alignment.sequences[1]
        hit_start, hit_end, hit_strand = self._row_interval(alignment.coordinates[0])
        query_start, query_end, query_strand = self._row_interval(alignment.coordinates[1])
        return AlignmentFragment(
            query_name=query_record.id,
            hit_name=hit_record.id,
            query_size=len(query_record.seq),
            hit_size=len(hit_record.seq),
            query_start=query_start,
            query_end=query_end,
            hit_start=hit_start,
            hit_end=hit_end,
            strand="+" if hit_strand == query_strand else "-",
            score=int(score),
            operations=operations_from_gapped_strings(alignment[0], alignment[1])
        )

    def _row_interval(self, row_coordinates) -> tuple[int, int, str]:
        # minus strand rows run backwards over forward-strand positions
        first, last = int(row_coordinates[0]), int(row_coordinates[-1])
        if first > last:
            return last, first, "-"
        return first, last, "+"

class BlasrParser(AlignmentFileParser):
    """Reads BLASR ``-m 5`` output, one alignment per line.

    BLASR scores are lower-is-better, so they are negated to rank the same
    way as every other format.
    """
    name = "blasr"
    alignment_file_extension = ".m5"
    read_format = SequenceFormat.FASTA

    FIELD_COUNT = 19

    def read_alignments(self, file_path: str, parsed: ParsedAlignmentFile):
        with open(file_path) as handle:
            for line_number, line in enumerate(handle, start=1):
                fields = line.split()
                if len(fields) == 0:
                    continue
                try:
                    parsed.add_fragment(self._fragment_from_fields(fields))
                except (ValueError, IndexError) as e:
                    self._skip_malformed(parsed, line_number, str(e))

    def _fragment_from_fields(self, fields: list[str]) -> AlignmentFragment:
        if len(fields) != BlasrParser.FIELD_COUNT:
            raise ValueError(f"expected {BlasrParser.FIELD_COUNT} fields, found {len(fields)}")
        query_size, hit_size = int(fields[1]), int(fields[6])
        query_strand, hit_strand = fields[4], fields[9]
        query_start, query_end = forward_interval(int(fields[2]), int(fields[3]), query_size, query_strand)
        hit_start, hit_end = forward_interval(int(fields[7]), int(fields[8]), hit_size, hit_strand)
        return AlignmentFragment(
            query_name=fields[0],
            hit_name=fields[5],
            query_size=query_size,
            hit_size=hit_size,
            query_start=query_start,
            query_end=query_end,
            hit_start=hit_start,
            hit_end=hit_end,
            strand="+" if hit_strand == query_strand else "-",
            score=-int(fields[10]),
            operations=operations_from_gapped_strings(fields[18], fields[16])
        )

def _append_operation(operations: list[EditOperation], operation_type: EditOperationType, length: int):
    if length == 0:
        return
    if operations and operations[-1].operation is operation_type:
        operations[-1] = EditOperation(operation_type, operations[-1].length + length)
    else:
        operations.append(EditOperation(operation_type, length))

class SamParser(AlignmentFileParser):
    """SAM output read through :mod:`pysam`. Reference lengths come from the
    ``@SQ`` header lines, so a file without them cannot be read."""
    alignment_file_extension = ".sam"

    def read_alignments(self, file_path: str, parsed: ParsedAlignmentFile):
        try:
            alignment_file = pysam.AlignmentFile(file_path, "r")
        except ValueError as e:
            raise AlignmentFileReadException(file_path, str(e)) from e
        with alignment_file:
            record_number = 0
            try:
                for record_number, segment in enumerate(alignment_file, start=1):
                    self._add_segment(segment, alignment_file.header, parsed, record_number)
            except OSError as e:
                # htslib does not resume after a record it cannot parse
                self._skip_malformed(parsed, record_number + 1, str(e))

    def _add_segment(self, segment: pysam.AlignedSegment, header: pysam.AlignmentHeader, parsed: ParsedAlignmentFile, record_number: int):
        if segment.is_unmapped or segment.reference_id < 0 or not segment.cigartuples:
            parsed.add_non_aligned(NonAlignedRead(parsed.file_name, segment.query_name, "unmapped"))
            return
        try:
            parsed.add_fragment(self._fragment_from_segment(segment, header))
        except ValueError as e:
            self._skip_malformed(parsed, record_number, str(e))

    def _fragment_from_segment(self, segment: pysam.AlignedSegment, header: pysam.AlignmentHeader) -> AlignmentFragment:
        first_operation, first_length = segment.cigartuples[0]
        leading_hard_clip = first_length if first_operation == pysam.CHARD_CLIP else 0
        query_size = segment.infer_read_length()
        strand = "-" if segment.is_reverse else "+"
        query_start, query_end = forward_interval(
            leading_hard_clip + segment.query_alignment_start,
            leading_hard_clip + segment.query_alignment_end,
            query_size, strand)
        operations = self._edit_operations(segment)
        return AlignmentFragment(
            query_name=segment.query_name,
            hit_name=segment.reference_name,
            query_size=query_size,
            hit_size=header.get_reference_length(segment.reference_name),
            query_start=query_start,
            query_end=query_end,
            hit_start=segment.reference_start,
            hit_end=segment.reference_end,
            strand=strand,
            score=self.score(segment, tally_operations(operations)),
            operations=tuple(operations)
        )

    def _edit_operations(self, segment: pysam.AlignedSegment) -> list[EditOperation]:
        reference_sequence = self._reference_sequence(segment.reference_name)
        read_sequence = segment.query_sequence.upper() if segment.query_sequence else None
        operations: list[EditOperation] = []
        read_position = 0
        hit_position = segment.reference_start
        for operation, length in segment.cigartuples:
            if operation == pysam.CSOFT_CLIP:
                read_position += length
            elif operation == pysam.CMATCH:
                if reference_sequence is None or read_sequence is None:
                    _append_operation(operations, EditOperationType.MATCH, length)
                else:
                    if hit_position + length > len(reference_sequence) or read_position + length > len(read_sequence):
                        raise ValueError("alignment runs past the end of its sequence")
                    for offset in range(length):
                        same_base = reference_sequence[hit_position + offset] == read_sequence[read_position + offset]
                        _append_operation(operations, EditOperationType.MATCH if same_base else EditOperationType.MISMATCH, 1)
                read_position += length
                hit_position += length
            elif operation in (pysam.CEQUAL, pysam.CDIFF):
                _append_operation(operations, EditOperationType.MATCH if operation == pysam.CEQUAL else EditOperationType.MISMATCH, length)
                read_position += length
                hit_position += length
            elif operation == pysam.CINS:
                _append_operation(operations, EditOperationType.INSERTION, length)
                read_position += length
            elif operation in (pysam.CDEL, pysam.CREF_SKIP):
                _append_operation(operations, EditOperationType.DELETION, length)
                hit_position += length
        return operations

    @abstractmethod
    def score(self, segment: pysam.AlignedSegment, stats: AlignmentStats) -> int:
        pass

class BwaParser(SamParser):
    name = "bwa"
    read_format = SequenceFormat.FASTA

    def score(self, segment: pysam.AlignedSegment, stats: AlignmentStats) -> int:
        if segment.has_tag("AS"):
            return int(segment.get_tag("AS"))
        return derived_score(stats)

class MarginAlignParser(SamParser):
    """marginAlign SAM output. It carries no alignment score tag, so the score
    is derived from the edit operations."""
    name = "marginalign"
    read_format = SequenceFormat.FASTQ

    def score(self, segment: pysam.AlignedSegment, stats: AlignmentStats) -> int:
        return derived_score(stats)

ALIGNMENT_PARSERS: Mapping[str, type[AlignmentFileParser]] = {
    LastParser.name: LastParser,
    BwaParser.name: BwaParser,
    BlasrParser.name: BlasrParser,
    MarginAlignParser.name: MarginAlignParser
}

def get_alignment_parser(aligner: str, references: Union[References, None] = None) -> AlignmentFileParser:
    if aligner.lower() not in ALIGNMENT_PARSERS:
        raise UnknownAlignerException(aligner, ALIGNMENT_PARSERS.keys())
    return ALIGNMENT_PARSERS[aligner.lower()](references)
