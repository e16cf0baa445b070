import random
from typing import Iterable, Sequence, Union

from alignstats.engine.structures.alignment import AlignmentFragment

_default_random_source = random.Random()

def sort_alignments(fragments: Iterable[AlignmentFragment]) -> list[AlignmentFragment]:
    # sorted() is stable with reverse=True, so equal scores keep file order
    return sorted(fragments, key=lambda fragment: fragment.score, reverse=True)

def count_top_scoring(fragments: Sequence[AlignmentFragment]) -> int:
    if len(fragments) == 0:
        return 0
    top_score = fragments[0].score
    count_same = 0
    while count_same < len(fragments) and fragments[count_same].score == top_score:
        count_same += 1
    return count_same

def pick_top_alignment(fragments: Sequence[AlignmentFragment], random_source: Union[random.Random, None] = None) -> int:
    """Picks the index of the fragment to anchor a merge on.

    ``fragments`` must already be sorted by :func:`sort_alignments`. When
    several fragments share the top score one of them is chosen uniformly at
    random, so that ambiguous placements are not biased towards file order.
    """
    count_same = count_top_scoring(fragments)
    if count_same == 0:
        raise ValueError("Cannot pick a top alignment from an empty list.")
    if count_same == 1:
        return 0
    if random_source is None:
        random_source = _default_random_source
    return random_source.randrange(count_same)
