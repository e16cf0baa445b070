from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence, Union

class EditOperationType(Enum):
    MATCH = "="
    MISMATCH = "X"
    INSERTION = "I"
    DELETION = "D"

    @property
    def consumes_query(self) -> bool:
        return self is not EditOperationType.DELETION

    @property
    def consumes_reference(self) -> bool:
        return self is not EditOperationType.INSERTION

@dataclass(frozen=True)
class EditOperation:
    operation: EditOperationType
    length: int

@dataclass(frozen=True)
class AlignmentStats:
    matches: int = 0
    mismatches: int = 0
    insertions: int = 0
    deletions: int = 0
    longest_perfect_match: int = 0

    @property
    def aligned_query_bases(self) -> int:
        return self.matches + self.mismatches + self.insertions

    @property
    def aligned_reference_bases(self) -> int:
        return self.matches + self.mismatches + self.deletions

    @property
    def total_bases(self) -> int:
        return self.matches + self.mismatches + self.insertions + self.deletions

    @property
    def identity(self) -> float:
        if self.total_bases == 0:
            return 0.0
        return self.matches / self.total_bases

    def __add__(self, other: "AlignmentStats") -> "AlignmentStats":
        return AlignmentStats(
            matches=self.matches + other.matches,
            mismatches=self.mismatches + other.mismatches,
            insertions=self.insertions + other.insertions,
            deletions=self.deletions + other.deletions,
            longest_perfect_match=max(self.longest_perfect_match, other.longest_perfect_match)
        )

def tally_operations(operations: Iterable[EditOperation]) -> AlignmentStats:
    counts = {operation_type: 0 for operation_type in EditOperationType}
    longest_perfect_match = 0
    for operation in operations:
        counts[operation.operation] += operation.length
        if operation.operation is EditOperationType.MATCH:
            longest_perfect_match = max(longest_perfect_match, operation.length)
    return AlignmentStats(
        matches=counts[EditOperationType.MATCH],
        mismatches=counts[EditOperationType.MISMATCH],
        insertions=counts[EditOperationType.INSERTION],
        deletions=counts[EditOperationType.DELETION],
        longest_perfect_match=longest_perfect_match
    )

def compress_operations(operation_types: Iterable[EditOperationType]) -> tuple[EditOperation, ...]:
    """Run-length encodes a column-by-column sequence of operation types.

    Adjacent operations of the same type are joined, so "==X=" becomes
    ``(=2, X1, =1)``.
    """
    operations: list[EditOperation] = []
    current_type = None
    current_length = 0
    for operation_type in operation_types:
        if operation_type is current_type:
            current_length += 1
            continue
        if current_type is not None:
            operations.append(EditOperation(current_type, current_length))
        current_type = operation_type
        current_length = 1
    if current_type is not None:
        operations.append(EditOperation(current_type, current_length))
    return tuple(operations)

@dataclass(frozen=True)
class AlignmentFragment:
    """One aligned span between a read (query) and a reference (hit).

    Coordinates are 0-based, half-open and on the forward strand of their
    sequence regardless of the strand the aligner reported them on.
    """
    query_name: str
    hit_name: str
    query_size: int
    hit_size: int
    query_start: int
    query_end: int
    hit_start: int
    hit_end: int
    strand: str
    score: int
    operations: Sequence[EditOperation] = field(default_factory=tuple)

    def __post_init__(self):
        if not 0 <= self.query_start <= self.query_end <= self.query_size:
            raise ValueError(f"Query coordinates {self.query_start}-{self.query_end} are outside of \"{self.query_name}\" (length {self.query_size}).")
        if not 0 <= self.hit_start <= self.hit_end <= self.hit_size:
            raise ValueError(f"Hit coordinates {self.hit_start}-{self.hit_end} are outside of \"{self.hit_name}\" (length {self.hit_size}).")
        if self.strand not in ("+", "-"):
            raise ValueError(f"Unknown strand \"{self.strand}\".")
        if len(self.operations) > 0:
            query_consumed = sum(operation.length for operation in self.operations if operation.operation.consumes_query)
            hit_consumed = sum(operation.length for operation in self.operations if operation.operation.consumes_reference)
            if query_consumed != self.query_end - self.query_start:
                raise ValueError(f"Edit operations consume {query_consumed} query bases but the query span is {self.query_end - self.query_start}.")
            if hit_consumed != self.hit_end - self.hit_start:
                raise ValueError(f"Edit operations consume {hit_consumed} hit bases but the hit span is {self.hit_end - self.hit_start}.")

    @property
    def stats(self) -> AlignmentStats:
        return tally_operations(self.operations)

    def overlaps_query(self, start: int, end: int) -> bool:
        return self.query_start < end and start < self.query_end

@dataclass(frozen=True)
class MergedAlignmentProfile:
    reference_name: str
    reference_size: int
    query_name: str
    query_size: int
    stats: AlignmentStats
    reference_start: int
    reference_end: int
    query_start: int
    query_end: int
    fragments_merged: int
    fragments_rejected: int
    fragments_excluded: int
    reference_intervals: tuple[tuple[int, int], ...]

    @property
    def query_coverage(self) -> float:
        """Fraction of the read covered by folded fragments."""
        if self.query_size == 0:
            return 0.0
        return self.stats.aligned_query_bases / self.query_size

    @property
    def identity(self) -> float:
        return self.stats.identity

@dataclass(frozen=True)
class NonAlignedRead:
    file_name: str
    read_name: Union[str, None]
    reason: str
