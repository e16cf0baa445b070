from dataclasses import asdict, dataclass
from typing import Any, Sequence, Union

import numpy as np

from alignstats.engine.structures.alignment import AlignmentStats, MergedAlignmentProfile
from alignstats.engine.structures.reads import ReadProvenance, ReadType

@dataclass(frozen=True)
class ReadLengthSummary:
    read_count: int
    total_bases: int
    min_length: int
    max_length: int
    mean_length: float
    median_length: float
    n50: int

def summarise_lengths(lengths: Sequence[int]) -> ReadLengthSummary:
    if len(lengths) == 0:
        return ReadLengthSummary(0, 0, 0, 0, 0.0, 0.0, 0)
    lengths_array = np.asarray(lengths, dtype=np.int64)
    descending = np.sort(lengths_array)[::-1]
    cumulative = np.cumsum(descending)
    total_bases = int(cumulative[-1])
    n50_index = int(np.searchsorted(cumulative, total_bases / 2, side="left"))
    return ReadLengthSummary(
        read_count=len(lengths_array),
        total_bases=total_bases,
        min_length=int(descending[-1]),
        max_length=int(descending[0]),
        mean_length=float(lengths_array.mean()),
        median_length=float(np.median(lengths_array)),
        n50=int(descending[n50_index])
    )

class ReadSetStats:
    """Running statistics for the reads of one read type.

    Lengths are kept per pass/fail provenance. A new instance, or a call to
    :meth:`reset`, starts counting from zero.
    """

    def __init__(self, read_type: ReadType):
        self.read_type = read_type
        self.reset()

    def reset(self):
        self._lengths: dict[ReadProvenance, list[int]] = {provenance: [] for provenance in ReadProvenance}
        self._read_files: dict[ReadProvenance, int] = {provenance: 0 for provenance in ReadProvenance}
        self.reads_with_alignments = 0
        self.reads_without_alignments = 0
        self.alignment_stats = AlignmentStats()
        self.fragments_merged = 0
        self.fragments_rejected = 0
        self._identities: list[float] = []
        self._query_coverages: list[float] = []
        self._aligned_lengths: list[int] = []

    def add_length(self, length: int, provenance: ReadProvenance):
        self._lengths[provenance].append(length)

    def add_read_file(self, provenance: ReadProvenance):
        self._read_files[provenance] += 1

    def add_alignment(self, profile: MergedAlignmentProfile):
        self.reads_with_alignments += 1
        self.alignment_stats = self.alignment_stats + profile.stats
        self.fragments_merged += profile.fragments_merged
        self.fragments_rejected += profile.fragments_rejected
        self._identities.append(profile.identity)
        self._query_coverages.append(profile.query_coverage)
        self._aligned_lengths.append(profile.stats.aligned_query_bases)

    def add_unaligned(self):
        self.reads_without_alignments += 1

    def read_file_count(self, provenance: Union[ReadProvenance, None] = None) -> int:
        if provenance is None:
            return sum(self._read_files.values())
        return self._read_files[provenance]

    def lengths(self, provenance: Union[ReadProvenance, None] = None) -> list[int]:
        if provenance is None:
            return [length for provenance_lengths in self._lengths.values() for length in provenance_lengths]
        return list(self._lengths[provenance])

    @property
    def read_count(self) -> int:
        return sum(len(provenance_lengths) for provenance_lengths in self._lengths.values())

    @property
    def aligned_read_count(self) -> int:
        return self.reads_with_alignments + self.reads_without_alignments

    def calculate_stats(self, provenance: Union[ReadProvenance, None] = None) -> ReadLengthSummary:
        return summarise_lengths(self.lengths(provenance))

    def length_summary_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {"type": self.read_type.value, "files": self.read_file_count()}
        row.update(asdict(self.calculate_stats()))
        for provenance in ReadProvenance:
            row[f"{provenance.value}_reads"] = len(self._lengths[provenance])
        return row

    def alignment_summary(self) -> dict[str, Any]:
        if self.aligned_read_count == 0:
            percent_aligned = 0.0
        else:
            percent_aligned = 100.0 * self.reads_with_alignments / self.aligned_read_count
        aligned_lengths = summarise_lengths(self._aligned_lengths)
        return {
            "type": self.read_type.value,
            "reads": self.aligned_read_count,
            "reads_with_alignments": self.reads_with_alignments,
            "reads_without_alignments": self.reads_without_alignments,
            "percent_reads_aligned": percent_aligned,
            "fragments_merged": self.fragments_merged,
            "fragments_rejected": self.fragments_rejected,
            "matches": self.alignment_stats.matches,
            "mismatches": self.alignment_stats.mismatches,
            "insertions": self.alignment_stats.insertions,
            "deletions": self.alignment_stats.deletions,
            "identity": self.alignment_stats.identity,
            "mean_read_identity": float(np.mean(self._identities)) if self._identities else 0.0,
            "mean_query_coverage": float(np.mean(self._query_coverages)) if self._query_coverages else 0.0,
            "longest_perfect_match": self.alignment_stats.longest_perfect_match,
            "mean_aligned_length": aligned_lengths.mean_length,
            "aligned_n50": aligned_lengths.n50
        }
