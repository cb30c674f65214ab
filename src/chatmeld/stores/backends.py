"""Key-value storage backends.

Every store in this package persists through a string key-value table, so a
single backend type serves settings, conversations and messages. Records are
serialized as JSON strings by the stores themselves.

Backends:
    - InMemoryKeyValueBackend: dict-backed, for tests and ephemeral sessions
    - JsonFileKeyValueBackend: one JSON object on disk, rewritten on change
"""

from __future__ import annotations

import json
from pathlib import Path

from chatmeld.core.logging import get_logger


logger = get_logger(__name__)


class InMemoryKeyValueBackend:
    """Dict-backed key-value table.

    Satisfies KeyValueBackendProtocol. Insertion order is preserved.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def items(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileKeyValueBackend(InMemoryKeyValueBackend):
    """Key-value table persisted to a JSON file.

    The file is read once on construction and rewritten after every change.

    Attributes:
        path: Location of the JSON file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        initial: dict[str, str] = {}
        if self.path.exists():
            with open(self.path, encoding="utf-8") as f:
                loaded = json.load(f)
            initial = {str(k): str(v) for k, v in loaded.items()}
            logger.debug("Loaded key-value file", path=str(self.path), keys=len(initial))
        super().__init__(initial)

    async def put(self, key: str, value: str) -> None:
        await super().put(key, value)
        self._save()

    async def delete(self, key: str) -> None:
        await super().delete(key)
        self._save()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2)
