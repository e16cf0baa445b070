import logging
from os import PathLike, path
import re
from typing import Any, Union

import numpy as np

from alignstats.engine.exceptions.analysis import ReferenceFileReadException, UnknownReferenceException
from alignstats.engine.reading import read_fasta
from alignstats.engine.structures.alignment import AlignmentStats, MergedAlignmentProfile
from alignstats.engine.structures.reads import ReadType
from alignstats.engine.writing import MergedAlignmentsTableWriter, write_metrics_table, write_rows_as_table

logger = logging.getLogger(__name__)

def safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "_", name)

class ReferenceTypeStats:
    """Everything merged against one reference for one read type."""

    def __init__(self, reference_length: int, alignments_table_path: str):
        self.reads_aligned = 0
        self.fragments_merged = 0
        self.stats = AlignmentStats()
        self.identities: list[float] = []
        self.coverage = np.zeros(reference_length, dtype=np.int32)
        self.alignments_table = MergedAlignmentsTableWriter(alignments_table_path)

    def add_profile(self, profile: MergedAlignmentProfile):
        self.reads_aligned += 1
        self.fragments_merged += profile.fragments_merged
        self.stats = self.stats + profile.stats
        self.identities.append(profile.identity)
        for start, end in profile.reference_intervals:
            self.coverage[start:end] += 1

    @property
    def bases_covered(self) -> int:
        return int(np.count_nonzero(self.coverage))

    @property
    def percent_covered(self) -> float:
        if len(self.coverage) == 0:
            return 0.0
        return 100.0 * self.bases_covered / len(self.coverage)

    @property
    def mean_coverage(self) -> float:
        if len(self.coverage) == 0:
            return 0.0
        return float(self.coverage.mean())

    @property
    def mean_identity(self) -> float:
        if len(self.identities) == 0:
            return 0.0
        return float(np.mean(self.identities))

    def binned_coverage(self, bin_size: int) -> list[dict[str, Any]]:
        rows = []
        for bin_start in range(0, len(self.coverage), bin_size):
            coverage_bin = self.coverage[bin_start:bin_start + bin_size]
            rows.append({
                "start": bin_start,
                "end": bin_start + len(coverage_bin),
                "mean_coverage": float(coverage_bin.mean())
            })
        return rows

    def metrics(self) -> dict[str, Any]:
        return {
            "reads_aligned": self.reads_aligned,
            "fragments_merged": self.fragments_merged,
            "matches": self.stats.matches,
            "mismatches": self.stats.mismatches,
            "insertions": self.stats.insertions,
            "deletions": self.stats.deletions,
            "identity": self.stats.identity,
            "mean_read_identity": self.mean_identity,
            "longest_perfect_match": self.stats.longest_perfect_match,
            "bases_covered": self.bases_covered,
            "percent_covered": self.percent_covered,
            "mean_coverage": self.mean_coverage,
            "max_coverage": int(self.coverage.max()) if len(self.coverage) else 0
        }

class ReferenceSequence:
    def __init__(self, name: str, sequence: str, analysis_dir: str):
        self.name = name
        self.sequence = sequence.upper()
        self.length = len(sequence)
        self.safe_name = safe_name(name)
        self._analysis_dir = analysis_dir
        self._type_stats: dict[ReadType, ReferenceTypeStats] = {}

    @property
    def output_dir(self) -> str:
        return path.join(self._analysis_dir, self.safe_name)

    def has_stats_for_type(self, read_type: ReadType) -> bool:
        return read_type in self._type_stats

    def get_stats_by_type(self, read_type: ReadType) -> ReferenceTypeStats:
        if read_type not in self._type_stats:
            self._type_stats[read_type] = ReferenceTypeStats(
                self.length, path.join(self.output_dir, f"{read_type.value}_alignments.txt"))
        return self._type_stats[read_type]

    def close_alignment_files(self):
        for type_stats in self._type_stats.values():
            type_stats.alignments_table.close()

class References:
    """The reference set reads were aligned against, loaded from one FASTA file."""

    def __init__(self, reference_fasta: Union[str, PathLike[str]], analysis_dir: str):
        self._analysis_dir = analysis_dir
        self._references: dict[str, ReferenceSequence] = {}
        try:
            named_strings = list(read_fasta(reference_fasta))
        except (OSError, ValueError) as e:
            raise ReferenceFileReadException(str(reference_fasta), str(e)) from e
        for named_string in named_strings:
            self._references[named_string.name] = ReferenceSequence(named_string.name, named_string.sequence, analysis_dir)
        logger.info("Loaded %d references from %s", len(self._references), reference_fasta)

    def __contains__(self, reference_name: str) -> bool:
        return reference_name in self._references

    def __len__(self):
        return len(self._references)

    def get_reference_by_id(self, reference_name: str) -> ReferenceSequence:
        if reference_name not in self._references:
            raise UnknownReferenceException(reference_name)
        return self._references[reference_name]

    def get_all_ids(self) -> list[str]:
        return list(self._references.keys())

    def write_reference_stat_files(self, read_type: ReadType, coverage_bin_size: int):
        for reference in self._references.values():
            if not reference.has_stats_for_type(read_type):
                continue
            type_stats = reference.get_stats_by_type(read_type)
            write_metrics_table(type_stats.metrics(), path.join(reference.output_dir, f"{read_type.value}_stats.txt"))
            write_rows_as_table(type_stats.binned_coverage(coverage_bin_size), path.join(reference.output_dir, f"{read_type.value}_coverage.txt"))

    def write_reference_summary(self, read_type: ReadType):
        rows = []
        for reference in self._references.values():
            if reference.has_stats_for_type(read_type):
                type_stats = reference.get_stats_by_type(read_type)
                reads_aligned, identity, percent_covered, mean_coverage = type_stats.reads_aligned, type_stats.mean_identity, type_stats.percent_covered, type_stats.mean_coverage
            else:
                reads_aligned, identity, percent_covered, mean_coverage = 0, 0.0, 0.0, 0.0
            rows.append({
                "reference": reference.name,
                "length": reference.length,
                "reads_aligned": reads_aligned,
                "mean_read_identity": identity,
                "percent_covered": percent_covered,
                "mean_coverage": mean_coverage
            })
        write_rows_as_table(rows, path.join(self._analysis_dir, f"{read_type.value}_reference_summary.txt"))

    def close_alignment_files(self):
        for reference in self._references.values():
            reference.close_alignment_files()
