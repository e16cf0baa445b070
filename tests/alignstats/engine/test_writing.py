from csv import reader
from os import path
import tempfile

from alignstats.engine.structures.alignment import AlignmentStats, MergedAlignmentProfile, NonAlignedRead
from alignstats.engine.structures.reads import ReadProvenance, SequenceRecord
from alignstats.engine.writing import MergedAlignmentsTableWriter, NonAlignedTableWriter, ReadLengthsTableWriter, format_value, write_metrics_table, write_rows_as_table

def read_table(table_path: str) -> list[list[str]]:
    with open(table_path) as table_handle:
        return list(reader(table_handle, delimiter="\t"))

def test_format_value():
    assert format_value(0.123456) == "0.1235"
    assert format_value(None) == ""
    assert format_value(12) == "12"

def test_merged_alignments_table_has_header_and_row():
    profile = MergedAlignmentProfile("ref1", 1000, "read1", 120, AlignmentStats(90, 5, 3, 2, 40), 10, 107, 0, 98, 2, 1, 0, ((10, 60), (60, 107)))
    with tempfile.TemporaryDirectory() as temp_dir:
        output_path = path.join(temp_dir, "ref1", "Template_alignments.txt")
        with MergedAlignmentsTableWriter(output_path) as table:
            table.write_merged_alignment("read1.fasta.maf", profile)
        lines = read_table(output_path)
        assert lines[0] == list(MergedAlignmentsTableWriter.fieldnames)
        row = dict(zip(lines[0], lines[1]))
        assert row["file"] == "read1.fasta.maf"
        assert row["matches"] == "90"
        assert row["identity"] == "0.9000"
        assert row["fragments_rejected"] == "1"

def test_writer_opens_lazily():
    with tempfile.TemporaryDirectory() as temp_dir:
        output_path = path.join(temp_dir, "nonaligned.txt")
        table = NonAlignedTableWriter(output_path)
        assert not path.exists(output_path)
        table.write_non_aligned(NonAlignedRead("read1.fasta.maf", None, "no alignments"))
        table.close()
        assert read_table(output_path) == [["file", "read_name", "reason"], ["read1.fasta.maf", "", "no alignments"]]

def test_read_lengths_table_one_row_per_file():
    with tempfile.TemporaryDirectory() as temp_dir:
        output_path = path.join(temp_dir, "Template_lengths.txt")
        with ReadLengthsTableWriter(output_path) as table:
            table.write_read_file("read1.fasta", [SequenceRecord("read1", 812, 7, 60, 61)], ReadProvenance.PASS)
            table.write_read_file("read2.fasta", [SequenceRecord("read2", 90, 7, 60, 61), SequenceRecord("read3", 10, 100, 60, 61)], ReadProvenance.FAIL)
        lines = read_table(output_path)
        assert lines[1] == ["read1.fasta", "read1", "812", "1", "pass"]
        assert lines[2] == ["read2.fasta", "read2", "90", "2", "fail"]
        assert table.rows_written == 2

def test_metrics_and_rows_tables():
    with tempfile.TemporaryDirectory() as temp_dir:
        metrics_path = path.join(temp_dir, "metrics.txt")
        write_metrics_table({"reads": 5, "identity": 0.5}, metrics_path)
        assert read_table(metrics_path) == [["metric", "value"], ["reads", "5"], ["identity", "0.5000"]]
        rows_path = path.join(temp_dir, "rows.txt")
        write_rows_as_table([{"start": 0, "end": 100}, {"start": 100, "end": 150}], rows_path)
        assert read_table(rows_path) == [["start", "end"], ["0", "100"], ["100", "150"]]
