"""Session driver: wires an ``InteractiveMergeSort`` to a persistence backend.

The engine cannot re-enter its own suspended recursion, so after an undo,
reset or removal it asks to be restarted.  ``SortSession.run`` owns that
loop: it runs ``sort()`` in a task, abandons it when a restart is requested
and starts over from the updated state.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Iterable, Optional, Sequence

from sortr.core.config import EngineConfig
from sortr.engine.merge_sort import DecisionCallback, InteractiveMergeSort, ProgressCallback
from sortr.exceptions import PersistenceError, ProgressDecodeError, UnknownItemError
from sortr.models import SortItem, SortProgress
from sortr.persistence.codec import (
    PROGRESS_KEY_PREFIX,
    decode_saved_state,
    encode_saved_state,
    progress_key,
)
from sortr.persistence.protocols import IPersistenceBackend

log = logging.getLogger(__name__)


class _SortRestart(Exception):
    """A restart was requested while the decision callback was running."""


class SortSession:
    """One user's ranking of one item list, resumable through *backend*.

    Usage::

        session = SortSession(items, FilePersistenceBackend(path), sorter_id="s1")
        ranking = await session.run(ask_user)

    ``undo()``, ``reset()`` and ``remove_item()`` may be called from the
    decision callback or from another task while ``run()`` is waiting on a
    decision.
    """

    def __init__(
        self,
        items: Sequence[SortItem],
        backend: IPersistenceBackend,
        sorter_id: str,
        filter_slugs: Iterable[str] = (),
        *,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        # Every id ever in the session; saved history may still mention removed items.
        self._all_items = list(items)
        self._items = list(items)
        self._backend = backend
        self._key = progress_key(sorter_id, filter_slugs)
        self._config = config or EngineConfig()
        self._rng = rng
        self._on_progress = on_progress

        self._engine: Optional[InteractiveMergeSort] = None
        self._sort_task: Optional[asyncio.Task[list[SortItem]]] = None
        self._restart_requested = False
        self._completed_comparisons = 0
        self._progress_percent = 0

    # ── Engine lifecycle ─────────────────────────────────────────────

    def load(self) -> InteractiveMergeSort:
        """Build the engine, resuming from saved progress when there is any."""
        if self._engine is not None:
            return self._engine

        progress = self._read_saved_progress()
        if progress is None:
            engine = InteractiveMergeSort(config=self._config, rng=self._rng)
        else:
            engine = InteractiveMergeSort.restore(
                progress, self._all_items, config=self._config, rng=self._rng
            )
            if engine.shuffled_order:
                self._items = engine.shuffled_order
            self._completed_comparisons = progress.comparison_count
            log.info(
                "Resumed %s: %d decisions, %d/%d placed",
                self._key,
                progress.comparison_count,
                progress.sorted_no,
                progress.total_battles,
            )

        engine.set_progress_callback(self._handle_progress)
        engine.set_save_callback(self._persist)
        engine.set_restart_callback(self._handle_restart)
        self._engine = engine
        return engine

    def _read_saved_progress(self) -> Optional[SortProgress]:
        try:
            raw = self._backend.load(self._key)
            if raw is None:
                return None
            return decode_saved_state(raw, self._all_items)
        except (PersistenceError, ProgressDecodeError):
            log.error("Failed to restore saved progress for %s", self._key, exc_info=True)
            return None

    def _persist(self) -> None:
        if self._engine is None:
            return
        data = encode_saved_state(self._all_items, self._engine.export_progress())
        try:
            self._backend.save(self._key, data)
        except PersistenceError:
            log.warning("Failed to persist progress for %s", self._key, exc_info=True)

    def _handle_progress(self, completed: int, percent: int) -> None:
        self._completed_comparisons = completed
        self._progress_percent = percent
        if self._on_progress is not None:
            self._on_progress(completed, percent)

    def _handle_restart(self) -> None:
        self._restart_requested = True
        task = self._sort_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # ── Driving the sort ─────────────────────────────────────────────

    async def run(self, on_need_comparison: DecisionCallback) -> list[SortItem]:
        """Sort to completion, restarting as often as the engine asks.

        Saved progress is deleted once the ranking is complete.
        """
        engine = self.load()

        async def ask(item_a: SortItem, item_b: SortItem) -> str:
            winner = await on_need_comparison(item_a, item_b)
            if self._restart_requested:
                raise _SortRestart()
            return winner

        while True:
            self._restart_requested = False
            self._sort_task = asyncio.ensure_future(engine.sort(self._items, ask))
            try:
                result = await self._sort_task
            except (asyncio.CancelledError, _SortRestart):
                if not self._restart_requested:
                    raise
                log.debug("Restarting sort for %s", self._key)
                continue
            finally:
                self._sort_task = None
            break

        try:
            self._backend.delete(self._key)
        except PersistenceError:
            log.warning("Failed to discard finished progress for %s", self._key, exc_info=True)
        log.info("Ranking complete for %s: %d items", self._key, len(result))
        return result

    def undo(self) -> bool:
        return self.load().undo()

    def reset(self) -> None:
        self._items = list(self._all_items)
        self.load().reset()

    def remove_item(self, item_id: str) -> None:
        """Drop *item_id* from the ranking. Raises UnknownItemError if absent."""
        if all(item.id != item_id for item in self._items):
            raise UnknownItemError(item_id)
        self._items = [item for item in self._items if item.id != item_id]
        self.load().remove_item(item_id)

    # ── State ────────────────────────────────────────────────────────

    @property
    def key(self) -> str:
        return self._key

    @property
    def items(self) -> list[SortItem]:
        return list(self._items)

    @property
    def engine(self) -> InteractiveMergeSort:
        return self.load()

    @property
    def can_undo(self) -> bool:
        return self.load().can_undo()

    @property
    def completed_comparisons(self) -> int:
        return self._completed_comparisons

    @property
    def progress_percent(self) -> int:
        return self._progress_percent


def clear_all_saves(backend: IPersistenceBackend) -> int:
    """Delete every saved sorting session in *backend*; returns how many."""
    removed = sum(1 for key in backend.list_keys(PROGRESS_KEY_PREFIX) if backend.delete(key))
    log.info("Cleared %d saved sorting sessions", removed)
    return removed
