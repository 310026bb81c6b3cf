"""Tests for InteractiveMergeSort: sorting, caching, undo, reset, removal, failures."""

from __future__ import annotations

import asyncio
import random

import pytest

from sortr.core.config import EngineConfig
from sortr.engine.battles import count_battles
from sortr.engine.keys import key_references, pair_key
from sortr.engine.merge_sort import InteractiveMergeSort, shuffle_items
from sortr.models import SortItem, SortProgress, SortState
from tests.fakes.fake_decider import FakeDecider, InterruptingDecider, StopDeciding

PREFERENCE = ["c", "a", "d", "b"]


class _Recorder:
    """Collects engine callback invocations."""

    def __init__(self, engine: InteractiveMergeSort) -> None:
        self.progress: list[tuple[int, int]] = []
        self.saves = 0
        self.restarts = 0
        engine.set_progress_callback(lambda done, pct: self.progress.append((done, pct)))
        engine.set_save_callback(self._on_save)
        engine.set_restart_callback(self._on_restart)

    def _on_save(self) -> None:
        self.saves += 1

    def _on_restart(self) -> None:
        self.restarts += 1

    @property
    def percents(self) -> list[int]:
        return [pct for _, pct in self.progress]


def _engine(config: EngineConfig, seed: int = 7, **kwargs) -> InteractiveMergeSort:
    return InteractiveMergeSort(config=config, rng=random.Random(seed), **kwargs)


class TestShuffle:
    def test_is_permutation(self, seven_items: list[SortItem], rng: random.Random) -> None:
        shuffled = shuffle_items(seven_items, rng)
        assert sorted(i.id for i in shuffled) == sorted(i.id for i in seven_items)
        assert [i.id for i in seven_items] == [f"item-{n}" for n in range(7)]

    def test_seeded_rng_is_reproducible(self, seven_items: list[SortItem]) -> None:
        first = shuffle_items(seven_items, random.Random(3))
        second = shuffle_items(seven_items, random.Random(3))
        assert first == second


class TestSort:
    async def test_orders_by_preference(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        decider = FakeDecider(PREFERENCE)

        result = await engine.sort(four_items, decider)

        assert [item.id for item in result] == PREFERENCE
        assert engine.comparison_count == len(decider.calls)
        assert len(engine.user_choices) == len(decider.calls)

    async def test_four_items_comparison_bounds(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        for seed in range(10):
            engine = _engine(engine_config, seed=seed)
            decider = FakeDecider(PREFERENCE)
            await engine.sort(four_items, decider)
            # Two base merges of one comparison each, then a 2-vs-2 merge needing 2 or 3.
            assert 4 <= len(decider.calls) <= 5

    async def test_consistent_with_preference_for_any_shuffle(
        self, seven_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        preference = [f"item-{n}" for n in (3, 6, 0, 5, 1, 4, 2)]
        for seed in range(5):
            engine = _engine(engine_config, seed=seed)
            result = await engine.sort(seven_items, FakeDecider(preference))
            assert [item.id for item in result] == preference

    async def test_never_asks_the_same_pair_twice(
        self, seven_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        decider = FakeDecider([item.id for item in seven_items])
        await _engine(engine_config).sort(seven_items, decider)
        assert len(set(decider.asked_pairs)) == len(decider.asked_pairs)

    async def test_rerun_with_full_cache_asks_nothing(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        first = await engine.sort(four_items, FakeDecider(PREFERENCE))
        count = engine.comparison_count

        replay = FakeDecider(PREFERENCE)
        second = await engine.sort(four_items, replay)

        assert second == first
        assert replay.calls == []
        assert engine.comparison_count == count

    async def test_shuffle_happens_once(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        await engine.sort(four_items, FakeDecider(PREFERENCE))
        order = engine.shuffled_order

        await engine.sort(four_items, FakeDecider(PREFERENCE))

        assert engine.has_started
        assert engine.shuffled_order == order

    async def test_total_battles_fixed_from_item_count(
        self, seven_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        await engine.sort(seven_items, FakeDecider([i.id for i in seven_items]))
        assert engine.total_battles == count_battles(7)

    async def test_every_placement_counted(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        await engine.sort(four_items, FakeDecider(PREFERENCE))
        # 2 + 2 placements in the base merges, 4 in the final merge.
        assert engine.sorted_no == 8
        assert engine.animated_sorted_no == 8

    async def test_progress_capped_until_complete(
        self, seven_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        recorder = _Recorder(engine)

        await engine.sort(seven_items, FakeDecider([i.id for i in seven_items]))

        *running, final = recorder.percents
        assert running[0] == 0
        assert all(0 <= pct <= 99 for pct in running)
        assert running == sorted(running)
        assert final == 100
        assert recorder.progress[-1][0] == engine.comparison_count

    async def test_saves_after_each_placement(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        recorder = _Recorder(engine)

        await engine.sort(four_items, FakeDecider(PREFERENCE))

        # One save when the shuffle is fixed, one per placement.
        assert recorder.saves == 1 + engine.sorted_no
        assert recorder.restarts == 0

    async def test_degenerate_inputs(self, engine_config: EngineConfig) -> None:
        decider = FakeDecider(["only"])

        empty = _engine(engine_config)
        assert await empty.sort([], decider) == []
        assert empty.total_battles == 0

        single = _engine(engine_config)
        recorder = _Recorder(single)
        item = SortItem(id="only")
        assert await single.sort([item], decider) == [item]
        assert recorder.percents == [0, 100]
        assert decider.calls == []

    async def test_unknown_winner_takes_right_side(self, engine_config: EngineConfig) -> None:
        items = [SortItem(id="x"), SortItem(id="y")]
        engine = _engine(engine_config)
        engine.set_shuffled_order(items)

        async def confused(item_a: SortItem, item_b: SortItem) -> str:
            return "nobody"

        result = await engine.sort(items, confused)
        assert [item.id for item in result] == ["y", "x"]


class TestResume:
    async def test_saved_pair_never_reasked(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(
            engine_config,
            saved_choices={pair_key("a", "b"): "a"},
            saved_comparison_count=1,
            saved_total_battles=8,
        )
        engine.set_shuffled_order(four_items)
        decider = FakeDecider(PREFERENCE)

        result = await engine.sort(four_items, decider)

        assert frozenset({"a", "b"}) not in decider.asked_pairs
        assert engine.total_battles == 8
        assert engine.comparison_count == 1 + len(decider.calls)
        assert [item.id for item in result] == PREFERENCE

    async def test_saved_choices_skip_reshuffle(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config, saved_choices={}, saved_total_battles=8)
        assert engine.has_started

        await engine.sort(four_items, FakeDecider(PREFERENCE))

        # No stored shuffle, so the caller's order is used as-is.
        assert engine.shuffled_order == []
        assert engine.current_items == four_items

    async def test_legacy_resume_recomputes_battles(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config, saved_choices={pair_key("a", "b"): "b"})
        await engine.sort(four_items[:3], FakeDecider(PREFERENCE))
        assert engine.total_battles == count_battles(3)

    async def test_restore_from_exported_progress(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        original = _engine(engine_config)
        with pytest.raises(StopDeciding):
            await original.sort(four_items, InterruptingDecider(PREFERENCE, budget=2))
        progress = original.export_progress()

        resumed = InteractiveMergeSort.restore(progress, four_items, config=engine_config)
        decider = FakeDecider(PREFERENCE)
        result = await resumed.sort(four_items, decider)

        assert resumed.shuffled_order == original.shuffled_order
        assert not set(decider.asked_pairs) & {
            frozenset(key.split(",")) for key in progress.user_choices
        }
        assert [item.id for item in result] == PREFERENCE

    def test_restore_skips_unknown_ids(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        progress = SortProgress(shuffled_order=["d", "gone", "a"], total_battles=8)
        engine = InteractiveMergeSort.restore(progress, four_items, config=engine_config)
        assert [item.id for item in engine.shuffled_order] == ["d", "a"]
        assert engine.has_started


class TestUndo:
    async def test_round_trip_single_comparison(self, engine_config: EngineConfig) -> None:
        items = [SortItem(id="x"), SortItem(id="y")]
        engine = _engine(engine_config)
        recorder = _Recorder(engine)
        await engine.sort(items, FakeDecider(["y", "x"]))
        assert engine.comparison_count == 1

        assert engine.undo() is True

        assert engine.comparison_count == 0
        assert engine.sorted_no == 0
        assert engine.animated_sorted_no == 0
        assert engine.user_choices == {}
        assert engine.can_undo() is False
        assert recorder.restarts == 1

    async def test_only_last_decision_recoverable(
        self, seven_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        await engine.sort(seven_items, FakeDecider([i.id for i in seven_items]))
        total = engine.comparison_count

        assert len(engine.state_history) == 1
        assert engine.undo() is True
        assert engine.comparison_count == total - 1
        assert engine.undo() is False
        assert engine.comparison_count == total - 1

    async def test_rerun_after_undo_asks_only_undone_pair(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        first = FakeDecider(PREFERENCE)
        await engine.sort(four_items, first)

        engine.undo()
        second = FakeDecider(PREFERENCE)
        result = await engine.sort(four_items, second)

        assert second.asked_pairs == [first.asked_pairs[-1]]
        assert [item.id for item in result] == PREFERENCE

    def test_undo_with_empty_history(self, engine_config: EngineConfig) -> None:
        engine = _engine(engine_config)
        recorder = _Recorder(engine)
        assert engine.undo() is False
        assert recorder.saves == 0
        assert recorder.restarts == 0

    def test_saved_history_is_undoable(self, engine_config: EngineConfig) -> None:
        engine = _engine(
            engine_config,
            saved_choices={"a,b": "a", "a,c": "c"},
            saved_comparison_count=2,
            saved_state_history=[
                SortState(user_choices={"a,b": "a"}, comparison_count=1, sorted_no=1)
            ],
            saved_sorted_no=3,
        )
        assert engine.can_undo()
        engine.undo()
        assert engine.user_choices == {"a,b": "a"}
        assert engine.sorted_no == 1


class TestReset:
    async def test_clears_everything(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        recorder = _Recorder(engine)
        await engine.sort(four_items, FakeDecider(PREFERENCE))
        battles = engine.total_battles

        engine.reset()

        assert engine.user_choices == {}
        assert engine.comparison_count == 0
        assert engine.sorted_no == 0
        assert engine.animated_sorted_no == 0
        assert engine.can_undo() is False
        assert engine.has_started is False
        assert engine.shuffled_order == []
        assert engine.total_battles == battles
        assert recorder.restarts == 1
        assert recorder.progress[-1] == (0, 0)

    async def test_sort_after_reset_starts_fresh(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        first = FakeDecider(PREFERENCE)
        await engine.sort(four_items, first)
        engine.reset()

        second = FakeDecider(PREFERENCE)
        result = await engine.sort(four_items, second)

        assert len(second.calls) >= 4
        assert engine.has_started
        assert [item.id for item in result] == PREFERENCE


class TestRemoveItem:
    def _partial_engine(self, config: EngineConfig) -> InteractiveMergeSort:
        engine = _engine(
            config,
            saved_choices={"a,b": "a", "a,c": "c", "b,d": "d"},
            saved_comparison_count=3,
            saved_total_battles=8,
            saved_sorted_no=2,
        )
        engine.set_shuffled_order(
            [SortItem(id="a"), SortItem(id="b"), SortItem(id="c"), SortItem(id="d")]
        )
        return engine

    def test_purges_every_reference(self, engine_config: EngineConfig) -> None:
        engine = self._partial_engine(engine_config)
        recorder = _Recorder(engine)

        engine.remove_item("a")

        assert not any(key_references(key, "a") for key in engine.user_choices)
        assert engine.user_choices == {"b,d": "d"}
        assert engine.comparison_count == len(engine.user_choices) == 1
        assert [item.id for item in engine.shuffled_order] == ["b", "c", "d"]
        assert recorder.saves == 1
        assert recorder.restarts == 1

    def test_advances_progress_by_work_saved(self, engine_config: EngineConfig) -> None:
        engine = self._partial_engine(engine_config)
        recorder = _Recorder(engine)

        engine.remove_item("a")

        # Two purged decisions: floor(2 * 1.5) == 3.
        assert engine.sorted_no == 5
        assert engine.animated_sorted_no == 5
        assert recorder.percents[-1] == 62
        assert recorder.percents == sorted(recorder.percents)
        assert engine.is_animating is False

    def test_progress_capped_at_total_battles(self, engine_config: EngineConfig) -> None:
        engine = self._partial_engine(engine_config)
        engine.remove_item("a")
        engine.remove_item("d")
        engine.remove_item("b")
        assert engine.sorted_no <= engine.total_battles

    def test_removal_without_decisions_keeps_progress(self, engine_config: EngineConfig) -> None:
        engine = self._partial_engine(engine_config)
        recorder = _Recorder(engine)
        engine.remove_item("zzz")
        assert engine.sorted_no == 2
        assert recorder.percents == [25]

    def test_removal_is_undoable(self, engine_config: EngineConfig) -> None:
        engine = self._partial_engine(engine_config)
        engine.remove_item("a")

        assert engine.undo() is True
        assert engine.user_choices == {"a,b": "a", "a,c": "c", "b,d": "d"}
        assert engine.comparison_count == 3
        assert engine.sorted_no == 2

    async def test_rerun_after_removal(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        with pytest.raises(StopDeciding):
            await engine.sort(four_items, InterruptingDecider(PREFERENCE, budget=3))

        engine.remove_item("d")
        remaining = [item for item in four_items if item.id != "d"]
        decider = FakeDecider(PREFERENCE)
        result = await engine.sort(remaining, decider)

        assert [item.id for item in result] == ["c", "a", "b"]
        assert all("d" not in pair for pair in decider.asked_pairs)

    async def test_animates_over_time(self, engine_config: EngineConfig) -> None:
        config = EngineConfig(removal_animation_duration_ms=40, removal_animation_steps=4)
        engine = self._partial_engine(config)
        recorder = _Recorder(engine)

        engine.remove_item("a")

        assert engine.is_animating is True
        assert engine.sorted_no == 5
        assert engine.animated_sorted_no == 2.75

        await engine.wait_for_animation()

        assert engine.is_animating is False
        assert engine.animated_sorted_no == 5
        assert recorder.percents == [34, 43, 53, 62]

    async def test_overlapping_removal_keeps_running_animation(self) -> None:
        config = EngineConfig(removal_animation_duration_ms=40, removal_animation_steps=4)
        engine = self._partial_engine(config)

        engine.remove_item("a")
        engine.remove_item("d")
        await engine.wait_for_animation()

        # The second jump updates sorted_no but does not start a new animation.
        assert engine.sorted_no == 6
        assert engine.animated_sorted_no == 5

    async def test_undo_cancels_animation(self) -> None:
        config = EngineConfig(removal_animation_duration_ms=40, removal_animation_steps=4)
        engine = self._partial_engine(config)

        engine.remove_item("a")
        engine.undo()
        await engine.wait_for_animation()
        await asyncio.sleep(0.05)

        assert engine.is_animating is False
        assert engine.animated_sorted_no == 2


class TestDecisionFailure:
    async def test_failure_leaves_state_untouched(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)

        async def broken(item_a: SortItem, item_b: SortItem) -> str:
            raise RuntimeError("connection lost")

        with pytest.raises(RuntimeError, match="connection lost"):
            await engine.sort(four_items, broken)

        assert engine.user_choices == {}
        assert engine.comparison_count == 0
        assert engine.can_undo() is False

    async def test_failure_after_progress_keeps_earlier_decisions(
        self, four_items: list[SortItem], engine_config: EngineConfig
    ) -> None:
        engine = _engine(engine_config)
        decider = InterruptingDecider(PREFERENCE, budget=1)

        with pytest.raises(StopDeciding):
            await engine.sort(four_items, decider)

        assert engine.comparison_count == 1
        assert len(engine.user_choices) == 1
        assert engine.state_history[0].comparison_count == 0
