"""Interactive comparison-driven merge sort engine."""

from __future__ import annotations

from sortr.engine.battles import count_battles
from sortr.engine.history import StateHistory
from sortr.engine.keys import comparison_key, key_ids, key_references, pair_key
from sortr.engine.merge_sort import InteractiveMergeSort, shuffle_items
from sortr.engine.progress import animation_frames, progress_percent

__all__ = [
    "InteractiveMergeSort",
    "StateHistory",
    "animation_frames",
    "comparison_key",
    "count_battles",
    "key_ids",
    "key_references",
    "pair_key",
    "progress_percent",
    "shuffle_items",
]
