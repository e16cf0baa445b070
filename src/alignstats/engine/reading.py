import logging
from io import TextIOWrapper
from os import PathLike, path
from typing import Any, Generator, Iterable, Union

from Bio import SeqIO

from alignstats.engine.exceptions.analysis import MalformedSequenceFileException, PlaceholderReadIdentifierException, SequenceRangeException
from alignstats.engine.structures.reads import NamedString, SequenceFormat, SequenceRecord

logger = logging.getLogger(__name__)

PLACEHOLDER_READ_IDENTIFIER = "00000000-0000-0000-0000-000000000000"

def read_fasta(handle: Union[str, PathLike[str], TextIOWrapper]) -> Generator[NamedString, Any, None]:
    for fasta_sequence in SeqIO.parse(handle, format="fasta"):
        yield NamedString(fasta_sequence.id, str(fasta_sequence.seq))

def guess_sequence_format(file_path: Union[str, PathLike[str]]) -> SequenceFormat:
    extension = path.splitext(str(file_path))[1].lower()
    for sequence_format in SequenceFormat:
        if extension in sequence_format.extensions:
            return sequence_format
    raise ValueError(f"Cannot determine the sequence format of \"{file_path}\" from its extension.")

def is_valid_read_extension(file_name: str, sequence_format: SequenceFormat) -> bool:
    return file_name.lower().endswith(sequence_format.extensions)

def validate_read_identifiers(records: Iterable[SequenceRecord], file_path: str):
    for record in records:
        if record.identifier.startswith(PLACEHOLDER_READ_IDENTIFIER):
            raise PlaceholderReadIdentifierException(file_path, record.identifier)

def _header_identifier(header: bytes) -> str:
    fields = header.decode("ascii", errors="replace").split(maxsplit=1)
    if len(fields) == 0:
        return ""
    return fields[0]

class _RecordBuilder:
    def __init__(self, identifier: str, offset: int):
        self.identifier = identifier
        self.offset = offset
        self.length = 0
        self.line_bases = 0
        self.line_width = 0
        self._short_line_seen = False

    def add_sequence_line(self, line_width: int, bases: int):
        if bases == 0:
            if self.line_bases > 0:
                self._short_line_seen = True
            return
        if self._short_line_seen:
            raise ValueError(f"record \"{self.identifier}\" has lines of differing length")
        if self.line_bases == 0:
            self.line_bases = bases
            self.line_width = line_width
        elif bases > self.line_bases:
            raise ValueError(f"record \"{self.identifier}\" has lines of differing length")
        elif bases < self.line_bases or line_width != self.line_width:
            # only the final line of a record may be short
            self._short_line_seen = True
        self.length += bases

    def build(self) -> SequenceRecord:
        return SequenceRecord(self.identifier, self.length, self.offset, self.line_bases, self.line_width)

class SequenceIndexer:
    """Index of the records in a FASTA or FASTQ file.

    Each record keeps the byte offset of its first base and its line geometry
    so that any sub-range can be read with a single seek, the same way a
    samtools ``.fai`` index works.
    """

    def __init__(self, file_path: Union[str, PathLike[str]], sequence_format: Union[SequenceFormat, None] = None):
        self._path = str(file_path)
        self._format = sequence_format if sequence_format is not None else guess_sequence_format(file_path)
        self._records: list[SequenceRecord] = []
        self._records_by_id: dict[str, SequenceRecord] = {}

    @property
    def file_path(self) -> str:
        return self._path

    @property
    def sequence_format(self) -> SequenceFormat:
        return self._format

    @property
    def records(self) -> tuple[SequenceRecord, ...]:
        return tuple(self._records)

    def index(self) -> tuple[SequenceRecord, ...]:
        self._records.clear()
        self._records_by_id.clear()
        with open(self._path, "rb") as handle:
            try:
                if self._format is SequenceFormat.FASTQ:
                    records = self._index_fastq(handle)
                else:
                    records = self._index_fasta(handle)
            except ValueError as e:
                raise MalformedSequenceFileException(self._path, str(e)) from e
        for record in records:
            if record.identifier in self._records_by_id:
                raise MalformedSequenceFileException(self._path, f"identifier \"{record.identifier}\" occurs more than once")
            self._records.append(record)
            self._records_by_id[record.identifier] = record
        logger.debug("Indexed %d records from %s", len(self._records), self._path)
        return self.records

    def _index_fasta(self, handle) -> list[SequenceRecord]:
        records = []
        builder: Union[_RecordBuilder, None] = None
        offset = 0
        for line in handle:
            line_width = len(line)
            if line.startswith(b">"):
                if builder is not None:
                    records.append(builder.build())
                builder = _RecordBuilder(_header_identifier(line[1:]), offset + line_width)
                if builder.identifier == "":
                    raise ValueError(f"empty header at byte {offset}")
            elif builder is not None:
                builder.add_sequence_line(line_width, len(line.rstrip(b"\r\n")))
            elif line.strip():
                raise ValueError("sequence data found before the first header")
            offset += line_width
        if builder is not None:
            records.append(builder.build())
        return records

    def _index_fastq(self, handle) -> list[SequenceRecord]:
        records = []
        builder: Union[_RecordBuilder, None] = None
        state = "header"
        quality_length = 0
        offset = 0
        for line in handle:
            line_width = len(line)
            stripped = line.rstrip(b"\r\n")
            if state == "header":
                if stripped:
                    if not stripped.startswith(b"@"):
                        raise ValueError(f"expected a \"@\" header at byte {offset}")
                    builder = _RecordBuilder(_header_identifier(stripped[1:]), offset + line_width)
                    if builder.identifier == "":
                        raise ValueError(f"empty header at byte {offset}")
                    state = "sequence"
            elif state == "sequence":
                if stripped.startswith(b"+"):
                    state = "quality"
                    quality_length = 0
                else:
                    builder.add_sequence_line(line_width, len(stripped)) # type: ignore since a header always precedes
            else:
                quality_length += len(stripped)
                if quality_length >= builder.length: # type: ignore
                    records.append(builder.build()) # type: ignore
                    state = "header"
            offset += line_width
        if state != "header":
            raise ValueError("file ends part way through a record")
        return records

    def __len__(self):
        return len(self._records)

    @property
    def sequence_count(self) -> int:
        return len(self._records)

    def get_record(self, key: Union[int, str]) -> SequenceRecord:
        if isinstance(key, int):
            return self._records[key]
        return self._records_by_id[key]

    def get_id(self, index: int) -> str:
        return self._records[index].identifier

    def get_length(self, key: Union[int, str]) -> int:
        return self.get_record(key).length

    def get_sub_sequence(self, identifier: str, start: int, end: int) -> str:
        """Returns bases ``start`` to ``end`` inclusive (0-based) of a record.

        An ``end`` past the final base is clamped to the final base. A
        ``start`` outside of the record, or after ``end``, raises
        :class:`SequenceRangeException`.
        """
        record = self.get_record(identifier)
        if start < 0 or start > end or start >= record.length:
            raise SequenceRangeException(identifier, start, end, record.length)
        end = min(end, record.length - 1)
        first_byte = record.byte_position(start)
        last_byte = record.byte_position(end)
        with open(self._path, "rb") as handle:
            handle.seek(first_byte)
            raw = handle.read(last_byte - first_byte + 1)
        return raw.replace(b"\n", b"").replace(b"\r", b"").decode("ascii")

    def get_sequence(self, identifier: str) -> str:
        record = self.get_record(identifier)
        if record.length == 0:
            return ""
        return self.get_sub_sequence(identifier, 0, record.length - 1)
