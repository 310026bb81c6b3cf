"""Shared fixtures for sortr tests."""

from __future__ import annotations

import random

import pytest

from sortr.core.config import EngineConfig
from sortr.models import SortItem


@pytest.fixture
def engine_config() -> EngineConfig:
    """Engine config with the removal animation disabled (frames applied at once)."""
    return EngineConfig(removal_animation_duration_ms=0)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def four_items() -> list[SortItem]:
    return [
        SortItem(id="a", title="Apple"),
        SortItem(id="b", title="Banana"),
        SortItem(id="c", title="Cherry"),
        SortItem(id="d", title="Date"),
    ]


@pytest.fixture
def seven_items() -> list[SortItem]:
    return [SortItem(id=f"item-{n}", title=f"Item {n}") for n in range(7)]
