"""Pydantic data models for sortr.

``SortItem`` is what callers rank.  ``SortState`` is the unit kept in the
undo history, ``SortProgress`` is the full resumable snapshot of an engine,
and ``SerializedProgress`` is its compact, index-based storage form.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

KEY_SEPARATOR = ","

# ── Items ────────────────────────────────────────────────────────────


class SortItem(BaseModel):
    """A rankable item.  Identity is by ``id``; other fields are display metadata."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    image_url: Optional[str] = None

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not value:
            raise ValueError("item id must not be empty")
        if KEY_SEPARATOR in value:
            raise ValueError(f"item id must not contain {KEY_SEPARATOR!r}: {value!r}")
        return value


# ── Engine state ─────────────────────────────────────────────────────


class SortState(BaseModel):
    """Snapshot pushed onto the undo history."""

    user_choices: dict[str, str] = Field(default_factory=dict)
    comparison_count: int = Field(default=0, ge=0)
    sorted_no: int = Field(default=0, ge=0)


class SortProgress(BaseModel):
    """Everything needed to rebuild an engine mid-sort."""

    user_choices: dict[str, str] = Field(default_factory=dict)
    comparison_count: int = Field(default=0, ge=0)
    state_history: list[SortState] = Field(default_factory=list)
    shuffled_order: list[str] = Field(default_factory=list)
    total_battles: int = Field(default=0, ge=0)
    sorted_no: int = Field(default=0, ge=0)


# ── Compact storage form ─────────────────────────────────────────────


class SerializedHistoryEntry(BaseModel):
    choices: list[tuple[int, int, int]] = Field(default_factory=list)
    comparison_count: int = 0
    sorted_no: int = 0
    total_battles: int = 0


class SerializedProgress(BaseModel):
    """Index-based encoding of ``SortProgress``.

    Item ids are written once in ``item_map`` and every decision is stored
    as an ``(index_a, index_b, winner_index)`` triple.
    """

    optimized: bool = True
    completed_comparisons: int = 0
    item_map: list[str] = Field(default_factory=list)
    choices: list[tuple[int, int, int]] = Field(default_factory=list)
    history_choices: list[SerializedHistoryEntry] = Field(default_factory=list)
    shuffled_order_indexes: list[int] = Field(default_factory=list)
    total_battles: int = 0
    sorted_no: int = 0
