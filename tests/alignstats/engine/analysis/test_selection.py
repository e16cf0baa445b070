import random

import pytest

from alignstats.engine.analysis.selection import count_top_scoring, pick_top_alignment, sort_alignments
from alignstats.engine.structures.alignment import AlignmentFragment

def dummy_fragment(score: int, query_start: int = 0) -> AlignmentFragment:
    return AlignmentFragment("read1", "ref1", 100, 1000, query_start, query_start + 10, 0, 10, "+", score)

def test_sort_is_descending_and_stable():
    first_five = dummy_fragment(5, query_start=0)
    seven = dummy_fragment(7, query_start=10)
    second_five = dummy_fragment(5, query_start=20)
    assert sort_alignments([first_five, seven, second_five]) == [seven, first_five, second_five]

def test_count_top_scoring():
    fragments = sort_alignments([dummy_fragment(9), dummy_fragment(9), dummy_fragment(3), dummy_fragment(9)])
    assert count_top_scoring(fragments) == 3
    assert count_top_scoring([]) == 0

def test_single_top_score_is_deterministic():
    fragments = sort_alignments([dummy_fragment(3), dummy_fragment(12), dummy_fragment(8)])
    for seed in range(20):
        assert pick_top_alignment(fragments, random.Random(seed)) == 0
    assert pick_top_alignment(fragments) == 0

def test_tied_scores_stay_within_group():
    fragments = sort_alignments([dummy_fragment(9), dummy_fragment(9), dummy_fragment(9), dummy_fragment(4), dummy_fragment(1)])
    random_source = random.Random(7)
    picks = [pick_top_alignment(fragments, random_source) for _ in range(300)]
    assert all(0 <= pick < 3 for pick in picks)
    assert set(picks) == {0, 1, 2}

def test_seeded_random_source_is_reproducible():
    fragments = sort_alignments([dummy_fragment(9) for _ in range(5)])
    first_run = [pick_top_alignment(fragments, random.Random(1234)) for _ in range(10)]
    second_run = [pick_top_alignment(fragments, random.Random(1234)) for _ in range(10)]
    assert first_run == second_run

def test_empty_list_raises():
    with pytest.raises(ValueError):
        pick_top_alignment([])
