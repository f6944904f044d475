"""
Key/value storage interface - separates persisted community state from its backend.

Values must be JSON-serializable (dicts, lists, strings, numbers, booleans).
"""
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional


class KeyValueStore(ABC):
    """Device-local key/value store for user-scoped community state."""

    @abstractmethod
    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Return the value stored under ``key`` or ``default``."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; returns whether it existed."""
        pass

    @abstractmethod
    def keys(self) -> Iterable[str]:
        """Return all stored keys."""
        pass

    def contains(self, key: str) -> bool:
        return key in set(self.keys())
