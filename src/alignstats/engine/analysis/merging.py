import logging
from typing import Sequence

from alignstats.engine.structures.alignment import AlignmentFragment, AlignmentStats, MergedAlignmentProfile

logger = logging.getLogger(__name__)

class AlignmentMerger:
    """Folds the fragments of one read into a single profile against one reference.

    Only fragments of the merge read against the merge reference are folded.
    A fragment whose read interval overlaps one already folded is rejected, so
    every read base is counted at most once.
    """

    def __init__(self, reference_name: str, reference_size: int, query_name: str, query_size: int):
        self._reference_name = reference_name
        self._reference_size = reference_size
        self._query_name = query_name
        self._query_size = query_size
        self._stats = AlignmentStats()
        self._query_intervals: list[tuple[int, int]] = []
        self._reference_intervals: list[tuple[int, int]] = []
        self._rejected = 0
        self._excluded = 0

    @property
    def reference_name(self) -> str:
        return self._reference_name

    @property
    def fragments_merged(self) -> int:
        return len(self._query_intervals)

    def add_alignment(self, fragment: AlignmentFragment) -> bool:
        if fragment.query_name != self._query_name:
            self._excluded += 1
            logger.debug("Excluded fragment of %s while merging %s", fragment.query_name, self._query_name)
            return False
        if fragment.hit_name != self._reference_name:
            self._excluded += 1
            logger.debug("Excluded fragment of %s against %s (merging against %s)", fragment.query_name, fragment.hit_name, self._reference_name)
            return False
        for start, end in self._query_intervals:
            if fragment.overlaps_query(start, end):
                self._rejected += 1
                logger.debug("Rejected fragment of %s at %d-%d overlapping %d-%d", fragment.query_name, fragment.query_start, fragment.query_end, start, end)
                return False
        self._stats = self._stats + fragment.stats
        self._query_intervals.append((fragment.query_start, fragment.query_end))
        self._reference_intervals.append((fragment.hit_start, fragment.hit_end))
        return True

    def end_merge(self) -> MergedAlignmentProfile:
        if len(self._query_intervals) == 0:
            raise ValueError(f"No fragments of \"{self._query_name}\" were merged against \"{self._reference_name}\".")
        return MergedAlignmentProfile(
            reference_name=self._reference_name,
            reference_size=self._reference_size,
            query_name=self._query_name,
            query_size=self._query_size,
            stats=self._stats,
            reference_start=min(start for start, _ in self._reference_intervals),
            reference_end=max(end for _, end in self._reference_intervals),
            query_start=min(start for start, _ in self._query_intervals),
            query_end=max(end for _, end in self._query_intervals),
            fragments_merged=len(self._query_intervals),
            fragments_rejected=self._rejected,
            fragments_excluded=self._excluded,
            reference_intervals=tuple(self._reference_intervals)
        )

def merge_alignments(sorted_fragments: Sequence[AlignmentFragment], anchor_index: int) -> MergedAlignmentProfile:
    anchor = sorted_fragments[anchor_index]
    merger = AlignmentMerger(anchor.hit_name, anchor.hit_size, anchor.query_name, anchor.query_size)
    for fragment in sorted_fragments[anchor_index:]:
        merger.add_alignment(fragment)
    return merger.end_merge()
