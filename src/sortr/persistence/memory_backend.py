"""Process-local progress store, used by tests and ``SORTR_PERSISTENCE_BACKEND=memory``."""

from __future__ import annotations

import logging
from typing import Optional

log = logging.getLogger(__name__)


class MemoryPersistenceBackend:
    """Progress payloads in a dict; lost when the process exits."""

    def __init__(self) -> None:
        self._payloads: dict[str, str] = {}

    def save(self, key: str, payload: str) -> None:
        replaced = key in self._payloads
        self._payloads[key] = payload
        log.debug(
            "%s %s in memory (%d bytes)", "Replaced" if replaced else "Stored", key, len(payload)
        )

    def load(self, key: str) -> Optional[str]:
        return self._payloads.get(key)

    def delete(self, key: str) -> bool:
        return self._payloads.pop(key, None) is not None

    def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(key for key in self._payloads if key.startswith(prefix))

    def __len__(self) -> int:
        return len(self._payloads)
