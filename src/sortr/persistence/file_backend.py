"""File-based persistence backend: one JSON file per progress key."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from sortr.exceptions import PersistenceError

log = logging.getLogger(__name__)


class FilePersistenceBackend:
    """Stores saved progress as JSON files in a local directory."""

    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)

    def _key_path(self, key: str) -> Path:
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._base / f"{safe_key}.json"

    def save(self, key: str, payload: str) -> None:
        path = self._key_path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise PersistenceError(f"Could not write {key} to {path}: {e}") from e
        log.debug("Saved %s to %s", key, path)

    def load(self, key: str) -> Optional[str]:
        path = self._key_path(key)
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Could not read {key} from {path}: {e}") from e

    def delete(self, key: str) -> bool:
        path = self._key_path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Could not delete {key} at {path}: {e}") from e
        return True

    def list_keys(self, prefix: str = "") -> list[str]:
        keys = []
        for path in self._base.glob("*.json"):
            key = path.stem
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)
