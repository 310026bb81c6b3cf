"""Bounded undo history of ``SortState`` snapshots."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

from sortr.models import SortState


class StateHistory:
    """Fixed-capacity stack: pushing beyond capacity evicts the oldest snapshot.

    With the default capacity of 1 this is single-level undo.
    """

    def __init__(self, capacity: int = 1, states: Optional[Iterable[SortState]] = None) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._states: deque[SortState] = deque(states or (), maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._states.maxlen or 0

    def push(self, state: SortState) -> None:
        self._states.append(state)

    def pop(self) -> SortState:
        """Remove and return the newest snapshot. Raises IndexError when empty."""
        return self._states.pop()

    def clear(self) -> None:
        self._states.clear()

    def snapshot(self) -> list[SortState]:
        """Copies of the held states, oldest first."""
        return [state.model_copy(deep=True) for state in self._states]

    def __len__(self) -> int:
        return len(self._states)

    def __bool__(self) -> bool:
        return bool(self._states)
