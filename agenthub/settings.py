"""Reactive, write-through configuration cache.

Runtime configuration (secrets and tunable parameters) is held in memory for
cheap reads. Writes persist to a backing store first, then update memory, and
finally notify registered watchers synchronously, so components can rebuild
derived state without polling or restarting.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Callable, Protocol

_CREDENTIAL_KEYS = ("token", "refresh_token", "secret", "password", "api_key")

Watcher = Callable[[str], None]


class Persister(Protocol):
    """Durable storage that Settings writes through to."""

    def set(self, key: str, value: str) -> None:
        """Persist key=value."""

    def delete(self, key: str) -> None:
        """Remove key from durable storage."""

    def keys(self) -> list[str]:
        """Return all persisted keys."""

    def get(self, key: str) -> str:
        """Return the persisted value for key, raising if it cannot."""


def _credential_key(resource_id: str, key: str) -> str:
    return f"resource:{resource_id}:{key}"


class Settings:
    """Thread-safe, reactive, write-through configuration cache."""

    def __init__(self, persister: Persister):
        self._lock = threading.Lock()
        self._data: dict[str, str] = {}
        self._subs: defaultdict[str, list[Watcher]] = defaultdict(list)
        self._persist = persister
        for key in persister.keys():
            try:
                self._data[key] = persister.get(key)
            except Exception:
                continue

    def get(self, key: str) -> str:
        """Return the value for key, or "" if it is not set."""
        with self._lock:
            return self._data.get(key, "")

    def set(self, key: str, value: str) -> None:
        """Persist key=value, keep it in memory, then notify watchers."""
        self._persist.set(key, value)
        with self._lock:
            self._data[key] = value
            watchers = list(self._subs.get(key, ()))
        for fn in watchers:
            fn(value)

    def delete(self, key: str) -> None:
        """Remove key from the backing store and memory; watchers receive ""."""
        self._persist.delete(key)
        with self._lock:
            self._data.pop(key, None)
            watchers = list(self._subs.get(key, ()))
        for fn in watchers:
            fn("")

    def seed(self, key: str, value: str) -> None:
        """Set key=value in memory only if value is non-empty and key is absent."""
        if not value:
            return
        with self._lock:
            self._data.setdefault(key, value)

    def watch(self, key: str, fn: Watcher) -> None:
        """Call fn with the new value whenever key changes via set or delete."""
        with self._lock:
            self._subs[key].append(fn)

    def keys(self) -> list[str]:
        """Return all keys currently held."""
        with self._lock:
            return list(self._data)

    def set_resource_credential(self, resource_id: str, key: str, value: str) -> None:
        """Store a credential under "resource:<resource_id>:<key>"."""
        self.set(_credential_key(resource_id, key), value)

    def get_resource_credential(self, resource_id: str, key: str) -> str:
        """Return a resource credential, or "" if it is not set."""
        return self.get(_credential_key(resource_id, key))

    def delete_resource_credentials(self, resource_id: str) -> None:
        """Remove the common credential keys of a resource, ignoring failures."""
        for name in _CREDENTIAL_KEYS:
            try:
                self.delete(_credential_key(resource_id, name))
            except Exception:
                continue