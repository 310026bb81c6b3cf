"""Comparison keys for unordered pairs of item ids."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sortr.models import KEY_SEPARATOR

if TYPE_CHECKING:
    from sortr.models import SortItem


def pair_key(id_a: str, id_b: str) -> str:
    """Return the canonical key for the unordered pair ``{id_a, id_b}``.

    The two ids are sorted lexicographically and joined with ``,`` so
    ``pair_key(a, b) == pair_key(b, a)``.
    """
    first, second = sorted((id_a, id_b))
    return f"{first}{KEY_SEPARATOR}{second}"


def comparison_key(item_a: SortItem, item_b: SortItem) -> str:
    """Key under which the decision between two items is cached."""
    return pair_key(item_a.id, item_b.id)


def key_ids(key: str) -> tuple[str, str]:
    """Split a comparison key back into its two ids."""
    first, _, second = key.partition(KEY_SEPARATOR)
    return first, second


def key_references(key: str, item_id: str) -> bool:
    return item_id in key_ids(key)
