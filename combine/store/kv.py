"""Key-value store abstraction.

The engine only needs string get/set/delete; which physical store holds the
keys is a deployment choice (see ``combine.store.factory``).
"""

from __future__ import annotations

from typing import Protocol


class KeyValueStore(Protocol):
    """Protocol for the persisted store holding every layer as JSON text."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, used for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)
