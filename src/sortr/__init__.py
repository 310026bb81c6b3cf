"""sortr: rank items by successive pairwise choices with a resumable merge sort.

Public API::

    from sortr import (
        SortItem, SortState, SortProgress,
        InteractiveMergeSort, count_battles, comparison_key,
        SortSession, FilePersistenceBackend, MemoryPersistenceBackend,
        SortrSettings,
    )
"""

from __future__ import annotations

from sortr.core.config import EngineConfig, SortrSettings
from sortr.engine import InteractiveMergeSort, comparison_key, count_battles
from sortr.exceptions import (
    PersistenceError,
    ProgressDecodeError,
    SortrError,
    UnknownItemError,
)
from sortr.logging_config import setup_logging
from sortr.models import SortItem, SortProgress, SortState
from sortr.persistence import (
    FilePersistenceBackend,
    IPersistenceBackend,
    MemoryPersistenceBackend,
    progress_key,
)
from sortr.session import SortSession, clear_all_saves

__all__ = [
    "SortItem",
    "SortState",
    "SortProgress",
    "InteractiveMergeSort",
    "comparison_key",
    "count_battles",
    "SortSession",
    "clear_all_saves",
    "IPersistenceBackend",
    "FilePersistenceBackend",
    "MemoryPersistenceBackend",
    "progress_key",
    "EngineConfig",
    "SortrSettings",
    "setup_logging",
    "SortrError",
    "UnknownItemError",
    "PersistenceError",
    "ProgressDecodeError",
]
