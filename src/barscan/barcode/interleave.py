"""
Position-counter stripping for raw Code 128 scanner output.

Some scan engines report their raw symbol values with a running position
counter between every pair of codes:

    [START, 1, code, 2, code, 3, code, ..., n, STOP]

The check below is a heuristic on value ranges only. A genuine short
sequence whose odd positions all happen to be in [0, 64] is indistinguishable
from counter output and will be stripped as well.
"""

from collections.abc import Sequence
from numbers import Integral

START_A = 103
START_B = 104
START_C = 105
STOP = 106

START_CODES = frozenset({START_A, START_B, START_C})

# Highest value accepted as a position counter
MAX_POSITION_COUNTER = 64


def _is_counter(value) -> bool:
    return isinstance(value, Integral) and 0 <= value <= MAX_POSITION_COUNTER


def looks_interleaved(values: Sequence[int]) -> bool:
    """
    Check whether a raw code sequence carries interleaved position counters.

    The sequence must start with a start code, hold at least 4 values, and
    every odd index before the last element must be a counter value.
    """
    if len(values) < 4 or values[0] not in START_CODES:
        return False

    return all(_is_counter(values[i]) for i in range(1, len(values) - 1, 2))


def strip_position_counters(values: Sequence[int]) -> tuple[bool, list[int]]:
    """
    Remove interleaved position counters from a raw code sequence.

    Args:
        values: Raw code values as emitted by the scanner

    Returns:
        Tuple of (interleaved, cleaned_values). When the sequence does not
        look interleaved the values are returned unchanged as a new list.
    """
    codes = [int(v) for v in values]

    if not looks_interleaved(codes):
        return False, codes

    cleaned = [codes[0], *codes[2::2]]

    # Even-length input leaves the stop code on a counter slot
    if cleaned[-1] != STOP and codes[-1] == STOP:
        cleaned.append(STOP)

    return True, cleaned
