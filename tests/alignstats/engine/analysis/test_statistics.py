from alignstats.engine.analysis.statistics import ReadSetStats, summarise_lengths
from alignstats.engine.structures.alignment import AlignmentStats, MergedAlignmentProfile
from alignstats.engine.structures.reads import ReadProvenance, ReadType

def dummy_profile(matches: int, mismatches: int = 0) -> MergedAlignmentProfile:
    return MergedAlignmentProfile(
        reference_name="ref1",
        reference_size=1000,
        query_name="read1",
        query_size=matches + mismatches,
        stats=AlignmentStats(matches=matches, mismatches=mismatches, longest_perfect_match=matches),
        reference_start=0,
        reference_end=matches + mismatches,
        query_start=0,
        query_end=matches + mismatches,
        fragments_merged=1,
        fragments_rejected=0,
        fragments_excluded=0,
        reference_intervals=((0, matches + mismatches),)
    )

def test_summarise_lengths():
    summary = summarise_lengths([4, 2, 6, 3, 5])
    assert summary.read_count == 5
    assert summary.total_bases == 20
    assert summary.min_length == 2
    assert summary.max_length == 6
    assert summary.mean_length == 4.0
    assert summary.median_length == 4.0
    assert summary.n50 == 5

def test_summarise_no_lengths():
    summary = summarise_lengths([])
    assert summary.read_count == 0
    assert summary.n50 == 0

def test_lengths_are_kept_per_provenance():
    stats = ReadSetStats(ReadType.TEMPLATE)
    for length in (100, 200, 300):
        stats.add_length(length, ReadProvenance.PASS)
    for length in (50, 60):
        stats.add_length(length, ReadProvenance.FAIL)
    assert stats.read_count == 5
    assert stats.calculate_stats(ReadProvenance.PASS).total_bases == 600
    assert stats.calculate_stats(ReadProvenance.FAIL).max_length == 60
    assert stats.calculate_stats().read_count == 5

def test_length_summary_row():
    stats = ReadSetStats(ReadType.COMPLEMENT)
    stats.add_length(100, ReadProvenance.COMBINED)
    stats.add_read_file(ReadProvenance.COMBINED)
    row = stats.length_summary_row()
    assert row["type"] == "Complement"
    assert row["files"] == 1
    assert row["combined_reads"] == 1
    assert row["n50"] == 100

def test_alignment_summary():
    stats = ReadSetStats(ReadType.TWO_D)
    stats.add_alignment(dummy_profile(90, 10))
    stats.add_alignment(dummy_profile(50))
    stats.add_unaligned()
    summary = stats.alignment_summary()
    assert summary["reads"] == 3
    assert summary["reads_with_alignments"] == 2
    assert summary["reads_without_alignments"] == 1
    assert summary["matches"] == 140
    assert summary["mismatches"] == 10
    assert summary["longest_perfect_match"] == 90
    assert summary["mean_read_identity"] == (0.9 + 1.0) / 2

def test_reset_does_not_double_count():
    stats = ReadSetStats(ReadType.TEMPLATE)
    for _ in range(2):
        stats.reset()
        stats.add_length(100, ReadProvenance.PASS)
        stats.add_read_file(ReadProvenance.PASS)
        stats.add_alignment(dummy_profile(100))
    assert stats.read_count == 1
    assert stats.read_file_count() == 1
    assert stats.reads_with_alignments == 1
