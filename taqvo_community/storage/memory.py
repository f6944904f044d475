"""In-process key/value store, used by tests and by the demo gateway setup."""
import copy
from typing import Any, Dict, Iterable, Optional

from .interface import KeyValueStore


class MemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store. Values are deep-copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        return True

    def keys(self) -> Iterable[str]:
        return list(self._data.keys())
