"""Interactive merge sort whose comparator is an awaited human decision.

The engine never resumes a suspended call stack.  It keeps the pure state
(decision cache, counters, shuffled order) and re-runs the merge sort from
the top on every ``sort()`` call; answered comparisons are replayed from the
cache so only unanswered ones reach the decision callback.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from typing import Awaitable, Callable, Optional, Sequence

from sortr.core.config import EngineConfig
from sortr.engine.battles import count_battles
from sortr.engine.history import StateHistory
from sortr.engine.keys import comparison_key, key_references
from sortr.engine.progress import COMPLETE_PERCENT, animation_frames, progress_percent
from sortr.models import SortItem, SortProgress, SortState

log = logging.getLogger(__name__)

DecisionCallback = Callable[[SortItem, SortItem], Awaitable[str]]
ProgressCallback = Callable[[int, int], None]
NotifyCallback = Callable[[], None]


def shuffle_items(items: Sequence[SortItem], rng: random.Random) -> list[SortItem]:
    """Fisher-Yates shuffle into a new list."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class InteractiveMergeSort:
    """Resumable, undoable merge sort over items ranked by a human.

    Usage::

        engine = InteractiveMergeSort(saved_choices=..., saved_total_battles=...)
        engine.set_save_callback(persist)
        engine.set_restart_callback(request_restart)
        ranking = await engine.sort(items, ask_user)

    All bookkeeping is synchronous.  The only suspension point is the await
    on the decision callback, so a failing or cancelled callback leaves the
    decision cache and history untouched.
    """

    def __init__(
        self,
        *,
        saved_choices: Optional[dict[str, str]] = None,
        saved_comparison_count: int = 0,
        saved_state_history: Optional[Sequence[SortState]] = None,
        saved_total_battles: Optional[int] = None,
        saved_sorted_no: Optional[int] = None,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._rng = rng or random.Random()

        self._user_choices: dict[str, str] = {}
        self._comparison_count = saved_comparison_count
        self._history = StateHistory(self._config.history_capacity, saved_state_history)
        self._total_battles = 0
        self._sorted_no = 0
        self._animated_sorted_no: float = 0
        self._current_items: list[SortItem] = []
        self._shuffled_order: list[SortItem] = []
        self._has_started = False

        self._is_animating = False
        self._animation_task: Optional[asyncio.Task[None]] = None

        self._on_progress: Optional[ProgressCallback] = None
        self._on_save: Optional[NotifyCallback] = None
        self._on_restart: Optional[NotifyCallback] = None

        if saved_choices is not None:
            self._user_choices = dict(saved_choices)
            self._has_started = True
        if saved_total_battles is not None:
            self._total_battles = saved_total_battles
        if saved_sorted_no is not None:
            self._sorted_no = saved_sorted_no
            self._animated_sorted_no = saved_sorted_no

    @classmethod
    def restore(
        cls,
        progress: SortProgress,
        items: Sequence[SortItem],
        *,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> InteractiveMergeSort:
        """Rebuild an engine from an exported ``SortProgress``.

        Shuffled-order ids are resolved against *items*; ids no longer
        present are skipped.
        """
        engine = cls(
            saved_choices=progress.user_choices,
            saved_comparison_count=progress.comparison_count,
            saved_state_history=progress.state_history,
            saved_total_battles=progress.total_battles,
            saved_sorted_no=progress.sorted_no,
            config=config,
            rng=rng,
        )
        by_id = {item.id: item for item in items}
        order = [by_id[item_id] for item_id in progress.shuffled_order if item_id in by_id]
        if order:
            engine.set_shuffled_order(order)
        return engine

    # ── Callbacks ────────────────────────────────────────────────────

    def set_progress_callback(self, callback: ProgressCallback) -> None:
        """``callback(completed_comparisons, percent)`` after every progress change."""
        self._on_progress = callback

    def set_save_callback(self, callback: NotifyCallback) -> None:
        """Called after every state mutation; the callee pulls state through the getters."""
        self._on_save = callback

    def set_restart_callback(self, callback: NotifyCallback) -> None:
        """Called when ``sort()`` must be re-invoked (after undo, reset or removal)."""
        self._on_restart = callback

    def _emit_progress(self, percent: int) -> None:
        if self._on_progress is not None:
            self._on_progress(self._comparison_count, percent)

    def _update_progress(self) -> None:
        self._emit_progress(
            progress_percent(
                self._animated_sorted_no,
                self._total_battles,
                cap=self._config.max_progress_percent,
            )
        )

    def _save(self) -> None:
        if self._on_save is not None:
            self._on_save()

    def _request_restart(self) -> None:
        if self._on_restart is not None:
            self._on_restart()

    # ── Sorting ──────────────────────────────────────────────────────

    async def sort(
        self,
        items: Sequence[SortItem],
        on_need_comparison: DecisionCallback,
    ) -> list[SortItem]:
        """Run (or re-run) the merge sort and return items best-first.

        The first call on a fresh session shuffles *items* and fixes the
        battle estimate; later calls reuse that order so cached decisions
        line up with the same merge structure.
        """
        self._current_items = list(items)

        if not self._has_started:
            self._shuffled_order = shuffle_items(items, self._rng)
            self._has_started = True
            items_to_sort = self._shuffled_order
            if self._total_battles == 0:
                self._total_battles = count_battles(len(items))
            log.info(
                "Starting new sort: %d items, %d battles estimated",
                len(items),
                self._total_battles,
            )
            self._save()
        else:
            items_to_sort = self._shuffled_order or list(items)
            if self._total_battles == 0:
                # Legacy saves carry no estimate; derive it from what is left.
                self._total_battles = count_battles(len(items))
                log.warning(
                    "No saved battle estimate, recomputed %d from %d current items",
                    self._total_battles,
                    len(items),
                )
            log.debug(
                "Resuming sort: %d items, %d cached decisions",
                len(items_to_sort),
                len(self._user_choices),
            )

        self._update_progress()

        result = await self._merge_sort(list(items_to_sort), on_need_comparison)

        self._emit_progress(COMPLETE_PERCENT)
        log.info("Sort complete after %d decisions", self._comparison_count)
        return result

    async def _merge_sort(
        self,
        items: list[SortItem],
        on_need_comparison: DecisionCallback,
    ) -> list[SortItem]:
        if len(items) <= 1:
            return items

        mid = len(items) // 2
        left = await self._merge_sort(items[:mid], on_need_comparison)
        right = await self._merge_sort(items[mid:], on_need_comparison)
        return await self._merge(left, right, on_need_comparison)

    async def _merge(
        self,
        left: list[SortItem],
        right: list[SortItem],
        on_need_comparison: DecisionCallback,
    ) -> list[SortItem]:
        result: list[SortItem] = []
        i = j = 0

        while i < len(left) and j < len(right):
            left_item = left[i]
            right_item = right[j]
            key = comparison_key(left_item, right_item)

            winner = self._user_choices.get(key)
            if winner is None:
                winner = await on_need_comparison(left_item, right_item)

                # Snapshot the pre-decision state, only once the decision exists.
                self._push_snapshot()
                self._comparison_count += 1
                self._user_choices[key] = winner
                log.debug("Decision %d: %s wins %s", self._comparison_count, winner, key)

            if winner == left_item.id:
                result.append(left_item)
                i += 1
            else:
                result.append(right_item)
                j += 1
            self._record_placement()

        # One side is exhausted; the rest are placed without comparisons.
        for item in left[i:]:
            result.append(item)
            self._record_placement()
        for item in right[j:]:
            result.append(item)
            self._record_placement()

        return result

    def _record_placement(self) -> None:
        self._sorted_no += 1
        self._animated_sorted_no = self._sorted_no
        self._update_progress()
        self._save()

    # ── Undo / reset ─────────────────────────────────────────────────

    def _push_snapshot(self) -> None:
        self._history.push(
            SortState(
                user_choices=dict(self._user_choices),
                comparison_count=self._comparison_count,
                sorted_no=self._sorted_no,
            )
        )

    def can_undo(self) -> bool:
        return bool(self._history)

    def undo(self) -> bool:
        """Restore the most recent snapshot and request a restart.

        Returns False when there is nothing to undo.
        """
        if not self._history:
            return False

        previous = self._history.pop()
        self._cancel_animation()
        self._user_choices = dict(previous.user_choices)
        self._comparison_count = previous.comparison_count
        self._sorted_no = previous.sorted_no
        self._animated_sorted_no = self._sorted_no
        log.info("Undo: back to %d decisions", self._comparison_count)

        self._update_progress()
        self._save()
        self._request_restart()
        return True

    def reset(self) -> None:
        """Forget every decision and start over with a fresh shuffle."""
        self._cancel_animation()
        self._user_choices.clear()
        self._comparison_count = 0
        self._sorted_no = 0
        self._animated_sorted_no = 0
        self._history.clear()
        self._has_started = False
        self._shuffled_order = []
        log.info("Sort reset")

        self._update_progress()
        self._save()
        self._request_restart()

    # ── Removal ──────────────────────────────────────────────────────

    def remove_item(self, item_id: str) -> None:
        """Drop an item mid-sort, purging every decision that involved it.

        Removal is undoable: a snapshot is pushed before anything changes.
        Progress is advanced by ``removal_work_factor`` per purged decision
        (capped at the battle estimate) and animated toward the new value.
        """
        self._push_snapshot()

        self._current_items = [item for item in self._current_items if item.id != item_id]
        self._shuffled_order = [item for item in self._shuffled_order if item.id != item_id]

        stale_keys = [key for key in self._user_choices if key_references(key, item_id)]
        for key in stale_keys:
            del self._user_choices[key]
        removed_comparisons = len(stale_keys)

        # Recount from the cache rather than subtracting, so the two never drift.
        self._comparison_count = len(self._user_choices)

        work_saved = math.floor(removed_comparisons * self._config.removal_work_factor)
        new_sorted_no = min(self._total_battles, self._sorted_no + work_saved)
        log.info(
            "Removed %s: %d decisions purged, sorted %d -> %d",
            item_id,
            removed_comparisons,
            self._sorted_no,
            max(new_sorted_no, self._sorted_no),
        )

        if new_sorted_no > self._sorted_no:
            self._sorted_no = new_sorted_no
            self._animate_sorted_no_increase(new_sorted_no)
        else:
            self._update_progress()

        self._save()
        self._request_restart()

    def _animate_sorted_no_increase(self, target: int) -> None:
        if self._is_animating:
            return

        self._is_animating = True
        steps = self._config.removal_animation_steps
        frames = list(animation_frames(self._animated_sorted_no, target, steps))
        step_delay = self._config.removal_animation_duration_ms / steps / 1000

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None or step_delay <= 0:
            # No timer available: step through the frames immediately.
            for frame in frames:
                self._animated_sorted_no = frame
                self._update_progress()
            self._is_animating = False
            return

        self._animated_sorted_no = frames[0]
        self._update_progress()
        self._animation_task = loop.create_task(self._run_animation(frames[1:], step_delay))

    async def _run_animation(self, frames: list[float], step_delay: float) -> None:
        try:
            for frame in frames:
                await asyncio.sleep(step_delay)
                self._animated_sorted_no = frame
                self._update_progress()
        finally:
            self._is_animating = False

    def _cancel_animation(self) -> None:
        if self._animation_task is not None and not self._animation_task.done():
            self._animation_task.cancel()
        self._animation_task = None
        self._is_animating = False

    async def wait_for_animation(self) -> None:
        """Wait until an in-flight removal animation has finished."""
        task = self._animation_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    # ── State access ─────────────────────────────────────────────────

    @property
    def comparison_count(self) -> int:
        return self._comparison_count

    @property
    def user_choices(self) -> dict[str, str]:
        return dict(self._user_choices)

    @property
    def state_history(self) -> list[SortState]:
        return self._history.snapshot()

    @property
    def shuffled_order(self) -> list[SortItem]:
        return list(self._shuffled_order)

    def set_shuffled_order(self, shuffled_order: Sequence[SortItem]) -> None:
        self._shuffled_order = list(shuffled_order)
        if self._shuffled_order:
            self._has_started = True

    @property
    def current_items(self) -> list[SortItem]:
        return list(self._current_items)

    @property
    def total_battles(self) -> int:
        return self._total_battles

    @property
    def sorted_no(self) -> int:
        return self._sorted_no

    @property
    def animated_sorted_no(self) -> float:
        return self._animated_sorted_no

    @property
    def has_started(self) -> bool:
        return self._has_started

    @property
    def is_animating(self) -> bool:
        return self._is_animating

    @property
    def current_percent(self) -> int:
        """Current capped percentage, as last emitted to the progress callback."""
        return progress_percent(
            self._animated_sorted_no,
            self._total_battles,
            cap=self._config.max_progress_percent,
        )

    def export_progress(self) -> SortProgress:
        """Snapshot of everything needed to resume this session later."""
        return SortProgress(
            user_choices=dict(self._user_choices),
            comparison_count=self._comparison_count,
            state_history=self._history.snapshot(),
            shuffled_order=[item.id for item in self._shuffled_order],
            total_battles=self._total_battles,
            sorted_no=self._sorted_no,
        )
