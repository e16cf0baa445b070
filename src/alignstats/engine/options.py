from dataclasses import dataclass
from os import path
from typing import Sequence

from alignstats.engine.structures.reads import ReadType, SequenceFormat

@dataclass(frozen=True)
class AnalysisOptions:
    """Settings for one analysis run over a sample directory.

    The sample directory is expected to contain a ``fasta`` (or ``fastq``)
    read directory and a directory named after the aligner, each optionally
    split into ``pass`` and ``fail`` subdirectories that hold one directory
    per read type.
    """
    sample_dir: str
    aligner: str
    reference_fasta: str
    process_pass: bool = True
    process_fail: bool = True
    max_reads: int = 0
    coverage_bin_size: int = 100
    low_alignment_threshold: int = 1000
    read_types: Sequence[ReadType] = tuple(ReadType)

    def __post_init__(self):
        # aligner names select both the parser and the alignment directory
        object.__setattr__(self, "aligner", self.aligner.lower())
        if self.coverage_bin_size < 1:
            raise ValueError(f"Coverage bin size must be at least 1, not {self.coverage_bin_size}.")

    @property
    def sample_name(self) -> str:
        return path.basename(path.normpath(self.sample_dir))

    def read_dir(self, read_format: SequenceFormat) -> str:
        return path.join(self.sample_dir, read_format.value)

    @property
    def aligner_dir(self) -> str:
        return path.join(self.sample_dir, self.aligner)

    @property
    def analysis_dir(self) -> str:
        return path.join(self.sample_dir, "analysis")

    @property
    def unaligned_dir(self) -> str:
        return path.join(self.analysis_dir, "Unaligned")

    def is_new_style_dir(self, base_dir: str) -> bool:
        return path.isdir(path.join(base_dir, "pass")) or path.isdir(path.join(base_dir, "fail"))

    @property
    def length_summary_filename(self) -> str:
        return path.join(self.analysis_dir, "length_summary.txt")

    def lengths_filename(self, read_type: ReadType) -> str:
        return path.join(self.analysis_dir, f"{read_type.value}_lengths.txt")

    def alignment_summary_filename(self, read_type: ReadType) -> str:
        return path.join(self.analysis_dir, f"{read_type.value}_alignment_summary.txt")

    def non_aligned_filename(self, read_type: ReadType) -> str:
        return path.join(self.unaligned_dir, f"{read_type.value}_nonaligned.txt")
