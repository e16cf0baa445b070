from contextlib import AbstractContextManager
import csv
import os
from os import PathLike, path
from typing import Any, Iterable, Mapping, Sequence, Union

from alignstats.engine.structures.alignment import MergedAlignmentProfile, NonAlignedRead
from alignstats.engine.structures.reads import ReadProvenance, SequenceRecord

def format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.4f}"
    if value is None:
        return ""
    return str(value)

def _open_for_writing(file_path: Union[str, PathLike[str]]):
    directory = path.dirname(str(file_path))
    if directory:
        os.makedirs(directory, exist_ok=True)
    return open(file_path, "w", newline='')

class DelimitedTableWriter(AbstractContextManager):
    fieldnames: Sequence[str] = ()

    def __init__(self, file_path: Union[str, PathLike[str]]):
        self._path = str(file_path)
        self._handle = None
        self._writer = None
        self.rows_written = 0

    @property
    def file_path(self) -> str:
        return self._path

    def __enter__(self):
        self.open()
        return self

    def open(self):
        if self._handle is not None:
            return
        self._handle = _open_for_writing(self._path)
        self._writer = csv.DictWriter(self._handle, fieldnames=self.fieldnames, delimiter="\t")
        self._writer.writeheader()

    def write_row(self, row: Mapping[str, Any]):
        if self._writer is None:
            self.open()
        self._writer.writerow({key: format_value(value) for key, value in row.items()}) # type: ignore since open() sets the writer
        self.rows_written += 1

    def close(self):
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            self._writer = None

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

class ReadLengthsTableWriter(DelimitedTableWriter):
    fieldnames = ("file", "read_id", "length", "records", "provenance")

    def write_read_file(self, file_name: str, records: Sequence[SequenceRecord], provenance: ReadProvenance):
        self.write_row({
            "file": file_name,
            "read_id": records[0].identifier if records else None,
            "length": records[0].length if records else 0,
            "records": len(records),
            "provenance": provenance.value
        })

class MergedAlignmentsTableWriter(DelimitedTableWriter):
    fieldnames = (
        "file", "query_name", "query_size", "query_start", "query_end",
        "reference_name", "reference_size", "reference_start", "reference_end",
        "matches", "mismatches", "insertions", "deletions", "identity", "query_coverage",
        "longest_perfect_match", "fragments_merged", "fragments_rejected", "fragments_excluded"
    )

    def write_merged_alignment(self, file_name: str, profile: MergedAlignmentProfile):
        self.write_row({
            "file": file_name,
            "query_name": profile.query_name,
            "query_size": profile.query_size,
            "query_start": profile.query_start,
            "query_end": profile.query_end,
            "reference_name": profile.reference_name,
            "reference_size": profile.reference_size,
            "reference_start": profile.reference_start,
            "reference_end": profile.reference_end,
            "matches": profile.stats.matches,
            "mismatches": profile.stats.mismatches,
            "insertions": profile.stats.insertions,
            "deletions": profile.stats.deletions,
            "identity": profile.identity,
            "query_coverage": profile.query_coverage,
            "longest_perfect_match": profile.stats.longest_perfect_match,
            "fragments_merged": profile.fragments_merged,
            "fragments_rejected": profile.fragments_rejected,
            "fragments_excluded": profile.fragments_excluded
        })

class NonAlignedTableWriter(DelimitedTableWriter):
    fieldnames = ("file", "read_name", "reason")

    def write_non_aligned(self, non_aligned_read: NonAlignedRead):
        self.write_row({
            "file": non_aligned_read.file_name,
            "read_name": non_aligned_read.read_name,
            "reason": non_aligned_read.reason
        })

def write_metrics_table(metrics: Mapping[str, Any], file_path: Union[str, PathLike[str]]):
    with _open_for_writing(file_path) as filehandle:
        writer = csv.writer(filehandle, delimiter="\t")
        writer.writerow(["metric", "value"])
        for metric, value in metrics.items():
            writer.writerow([metric, format_value(value)])

def write_rows_as_table(rows: Iterable[Mapping[str, Any]], file_path: Union[str, PathLike[str]]):
    rows = list(rows)
    with _open_for_writing(file_path) as filehandle:
        if len(rows) == 0:
            return
        writer = csv.DictWriter(filehandle, fieldnames=list(rows[0].keys()), delimiter="\t")
        writer.writeheader()
        for row in rows:
            writer.writerow({key: format_value(value) for key, value in row.items()})
