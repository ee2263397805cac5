"""
Client-local key-value storage

Holds developer-only state (account simulator) that must never reach the
shared Supabase database.
"""
import json
from pathlib import Path
from typing import Dict, Optional, Protocol

from loguru import logger


class KeyValueStore(Protocol):
    """get/set/remove by string key"""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """Process-local store (tests, ephemeral CLI runs)"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStore:
    """
    Key-value store backed by a single JSON file

    The whole file is rewritten on every change; it only ever holds a handful
    of keys.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Local store is corrupt, ignoring {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(items, f, ensure_ascii=False, indent=2)

    async def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    async def set(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    async def remove(self, key: str) -> None:
        items = self._read_all()
        if key in items:
            del items[key]
            self._write_all(items)
