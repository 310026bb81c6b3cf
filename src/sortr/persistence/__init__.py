"""Pluggable persistence backends and the saved-progress codec."""

from __future__ import annotations

from sortr.core.config import PersistenceConfig
from sortr.persistence.codec import (
    PROGRESS_KEY_PREFIX,
    decode_saved_state,
    deserialize_progress,
    encode_saved_state,
    progress_key,
    serialize_progress,
)
from sortr.persistence.file_backend import FilePersistenceBackend
from sortr.persistence.memory_backend import MemoryPersistenceBackend
from sortr.persistence.protocols import IPersistenceBackend

__all__ = [
    "IPersistenceBackend",
    "FilePersistenceBackend",
    "MemoryPersistenceBackend",
    "PROGRESS_KEY_PREFIX",
    "create_backend",
    "decode_saved_state",
    "deserialize_progress",
    "encode_saved_state",
    "progress_key",
    "serialize_progress",
]


def create_backend(config: PersistenceConfig) -> IPersistenceBackend:
    """Build the backend selected by ``SORTR_PERSISTENCE_BACKEND``."""
    if config.backend == "memory":
        return MemoryPersistenceBackend()
    return FilePersistenceBackend(config.store_path)
