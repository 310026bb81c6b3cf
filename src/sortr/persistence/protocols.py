"""Contract for stores that hold encoded sort progress between sessions."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class IPersistenceBackend(Protocol):
    """Where ``SortSession`` keeps one encoded progress payload per progress key.

    Backends deal in the JSON text produced by ``encode_saved_state``; they
    never interpret it.  Any failure to read or write a payload that exists
    surfaces as ``PersistenceError`` so callers can fall back to a fresh sort.
    """

    def save(self, key: str, payload: str) -> None:
        """Replace the progress stored under *key*."""
        ...

    def load(self, key: str) -> Optional[str]:
        """Stored payload, or None when nothing has been saved under *key*."""
        ...

    def delete(self, key: str) -> bool:
        """Drop the progress under *key*; True if something was removed."""
        ...

    def list_keys(self, prefix: str = "") -> list[str]:
        ...
