"""Total-battle estimate used to scale the progress percentage."""

from __future__ import annotations


def count_battles(item_count: int) -> int:
    """Estimate the placement work of a top-down merge sort over *item_count* items.

    Every merge level contributes ``left + right`` (one slot per item placed),
    not the ``left + right - 1`` comparisons a merge needs at most.  The
    figure only drives the progress bar and is fixed for the whole session.

    >>> count_battles(4)
    8
    """
    if item_count <= 1:
        return 0

    left = (item_count + 1) // 2  # ceil(n / 2)
    right = item_count - left
    return left + right + count_battles(left) + count_battles(right)
