"""Progress percentage and the animated catch-up used after removals."""

from __future__ import annotations

import math
from typing import Iterator

MAX_PROGRESS_PERCENT = 99
COMPLETE_PERCENT = 100


def progress_percent(
    sorted_no: float,
    total_battles: int,
    *,
    cap: int = MAX_PROGRESS_PERCENT,
) -> int:
    """Placed-items share of the battle estimate, floored and capped below 100.

    The cap keeps the bar from flashing 100% during the tail of the final
    merge; completion is signalled separately with ``COMPLETE_PERCENT``.
    """
    if total_battles <= 0:
        return 0
    return min(cap, math.floor(sorted_no / total_battles * 100))


def animation_frames(start: float, target: float, steps: int) -> Iterator[float]:
    """Yield linearly interpolated values from *start* toward *target*.

    At most *steps* values are produced and the last one is always exactly
    *target*.
    """
    increment = (target - start) / steps
    for step in range(1, steps + 1):
        value = min(target, start + increment * step)
        if step == steps or value >= target:
            yield target
            return
        yield value
