"""Key-value storage capability used for identity, session and attribution.

Browsers expose two scopes: one that survives restarts and one scoped to the
current tab. The engine only sees them through `KeyValueStore`.
"""

import logging
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class StorageUnavailable(Exception):
    """Raised by a backend that cannot be read or written (quota, privacy mode)."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore:
    """A dict-backed store; also the stand-in when a real backend is absent."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def clear(self) -> None:
        self.data.clear()


class SafeStore:
    """
    Wraps a backend so that failures degrade to in-memory values for the
    life of the page instead of reaching the caller.
    """

    def __init__(self, backend: Optional[KeyValueStore], scope: str = "storage"):
        self.backend = backend
        self.scope = scope
        self._fallback = MemoryStore()
        self._warned = False

    def _degrade(self, action: str, key: str, error: Exception) -> None:
        if not self._warned:
            logger.warning(f"{self.scope} unavailable ({action} {key}): {error}; using in-memory values")
            self._warned = True

    def get(self, key: str) -> Optional[str]:
        if self.backend is not None:
            try:
                value = self.backend.get(key)
                if value is not None:
                    return value
            except Exception as e:
                self._degrade("get", key, e)
        return self._fallback.get(key)

    def set(self, key: str, value: str) -> None:
        if self.backend is not None:
            try:
                self.backend.set(key, value)
                self._fallback.remove(key)
                return
            except Exception as e:
                self._degrade("set", key, e)
        self._fallback.set(key, value)

    def remove(self, key: str) -> None:
        self._fallback.remove(key)
        if self.backend is not None:
            try:
                self.backend.remove(key)
            except Exception as e:
                self._degrade("remove", key, e)
