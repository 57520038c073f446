import asyncio
import json
from pathlib import Path
from typing import Dict, Optional, Protocol, Union


class KeyValueStore(Protocol):
    """Async string key-value storage used for local caches and the auth blob.

    Writes are read-then-write without transactions; concurrent writers may
    lose an update.
    """

    async def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def remove_item(self, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class JsonFileKeyValueStore:
    """All keys live in one JSON object on disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not hold a JSON object")
        return data

    def _dump(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        tmp_path.replace(self.path)

    async def get_item(self, key: str) -> Optional[str]:
        data = await asyncio.to_thread(self._load)
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        def _write():
            data = self._load()
            data[key] = value
            self._dump(data)

        await asyncio.to_thread(_write)

    async def remove_item(self, key: str) -> None:
        def _delete():
            data = self._load()
            if key in data:
                del data[key]
                self._dump(data)

        await asyncio.to_thread(_delete)
