from dataclasses import dataclass
from enum import Enum

class ReadType(Enum):
    TEMPLATE = "Template"
    COMPLEMENT = "Complement"
    TWO_D = "2D"

class ReadProvenance(Enum):
    PASS = "pass"
    FAIL = "fail"
    COMBINED = "combined"

class SequenceFormat(Enum):
    FASTA = "fasta"
    FASTQ = "fastq"

    @property
    def extensions(self) -> tuple[str, ...]:
        if self is SequenceFormat.FASTQ:
            return (".fastq", ".fq")
        return (".fasta", ".fa", ".fna")

@dataclass(frozen=True)
class SequenceRecord:
    identifier: str
    length: int
    offset: int
    line_bases: int
    line_width: int

    def byte_position(self, position: int) -> int:
        if self.line_bases == 0:
            return self.offset
        return self.offset + (position // self.line_bases) * self.line_width + position % self.line_bases

@dataclass(frozen=True)
class NamedString:
    name: str
    sequence: str
