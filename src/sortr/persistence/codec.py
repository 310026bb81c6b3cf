"""Compact storage encoding for ``SortProgress``.

Item ids (typically UUIDs) dominate the size of a saved session, so the
stored form lists each id once in ``item_map`` and refers to items by index
everywhere else.  Decisions become ``[index_a, index_b, winner_index]``
triples.  Entries that mention ids missing from the item list are dropped
on both encode and decode.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Sequence

from pydantic import ValidationError

from sortr.engine.keys import key_ids, pair_key
from sortr.exceptions import ProgressDecodeError
from sortr.models import (
    SerializedHistoryEntry,
    SerializedProgress,
    SortItem,
    SortProgress,
    SortState,
)

log = logging.getLogger(__name__)

PROGRESS_KEY_PREFIX = "sorting-progress-"


def progress_key(sorter_id: str, filter_slugs: Iterable[str] = ()) -> str:
    """Storage key for one sorter and one combination of filters.

    The slugs are order-independent: ``["b", "a"]`` and ``["a", "b"]`` map to
    the same key.
    """
    slugs = sorted(filter_slugs)
    if not slugs:
        return f"{PROGRESS_KEY_PREFIX}{sorter_id}-all"
    return f"{PROGRESS_KEY_PREFIX}{sorter_id}-{'-'.join(slugs)}"


def _encode_choices(
    choices: dict[str, str],
    index_of: dict[str, int],
) -> list[tuple[int, int, int]]:
    encoded: list[tuple[int, int, int]] = []
    for key, winner_id in choices.items():
        id_a, id_b = key_ids(key)
        if id_a in index_of and id_b in index_of and winner_id in index_of:
            encoded.append((index_of[id_a], index_of[id_b], index_of[winner_id]))
    return encoded


def _decode_choices(
    triples: Iterable[Sequence[int]],
    item_map: list[str],
) -> dict[str, str]:
    decoded: dict[str, str] = {}
    for index_a, index_b, winner_index in triples:
        if min(index_a, index_b, winner_index) < 0:
            continue
        try:
            id_a = item_map[index_a]
            id_b = item_map[index_b]
            winner_id = item_map[winner_index]
        except IndexError:
            continue
        if id_a and id_b and winner_id:
            decoded[pair_key(id_a, id_b)] = winner_id
    return decoded


def serialize_progress(items: Sequence[SortItem], progress: SortProgress) -> SerializedProgress:
    """Encode *progress* relative to the ids of *items*."""
    item_map = [item.id for item in items]
    index_of = {item_id: index for index, item_id in enumerate(item_map)}

    history = [
        SerializedHistoryEntry(
            choices=_encode_choices(state.user_choices, index_of),
            comparison_count=state.comparison_count,
            sorted_no=state.sorted_no,
            total_battles=progress.total_battles,
        )
        for state in progress.state_history
    ]

    return SerializedProgress(
        completed_comparisons=progress.comparison_count,
        item_map=item_map,
        choices=_encode_choices(progress.user_choices, index_of),
        history_choices=history,
        shuffled_order_indexes=[
            index_of[item_id] for item_id in progress.shuffled_order if item_id in index_of
        ],
        total_battles=progress.total_battles,
        sorted_no=progress.sorted_no,
    )


def deserialize_progress(data: SerializedProgress, items: Sequence[SortItem]) -> SortProgress:
    """Decode stored progress, resolving the shuffled order against *items*."""
    known_ids = {item.id for item in items}

    shuffled_order: list[str] = []
    for index in data.shuffled_order_indexes:
        if 0 <= index < len(data.item_map) and data.item_map[index] in known_ids:
            shuffled_order.append(data.item_map[index])

    return SortProgress(
        user_choices=_decode_choices(data.choices, data.item_map),
        comparison_count=data.completed_comparisons,
        state_history=[
            SortState(
                user_choices=_decode_choices(entry.choices, data.item_map),
                comparison_count=entry.comparison_count,
                sorted_no=entry.sorted_no,
            )
            for entry in data.history_choices
        ],
        shuffled_order=shuffled_order,
        total_battles=data.total_battles,
        sorted_no=data.sorted_no,
    )


def encode_saved_state(items: Sequence[SortItem], progress: SortProgress) -> str:
    """JSON text for a backend ``save()``."""
    return serialize_progress(items, progress).model_dump_json()


def _decode_legacy(payload: dict[str, Any]) -> SortProgress:
    """Pre-index format: decisions as ``[key, winner]`` pairs.

    Legacy saves carry no shuffled order, battle estimate or sorted count.
    """
    history: list[SortState] = []
    for entry in payload.get("stateHistoryArray") or []:
        if not isinstance(entry, dict):
            raise TypeError(f"history entry must be an object, got {type(entry).__name__}")
        history.append(
            SortState(
                user_choices=dict(entry.get("userChoicesArray") or []),
                comparison_count=entry.get("comparisonCount") or 0,
            )
        )

    return SortProgress(
        user_choices=dict(payload.get("userChoicesArray") or []),
        comparison_count=payload.get("completedComparisons") or 0,
        state_history=history,
    )


def decode_saved_state(raw: str, items: Sequence[SortItem]) -> SortProgress:
    """Decode a backend payload in either the indexed or the legacy format.

    Raises:
        ProgressDecodeError: If *raw* is not valid JSON or does not match
            either format.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProgressDecodeError(f"Saved progress is not valid JSON: {e}", raw) from e

    if not isinstance(payload, dict):
        raise ProgressDecodeError("Saved progress must be a JSON object", raw)

    try:
        if payload.get("optimized"):
            return deserialize_progress(SerializedProgress.model_validate(payload), items)
        log.info("Decoding legacy progress format")
        return _decode_legacy(payload)
    except (ValidationError, TypeError, ValueError) as e:
        raise ProgressDecodeError(f"Saved progress has an unexpected shape: {e}", raw) from e
