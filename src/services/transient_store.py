from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol


class TransientStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryTransientStore(TransientStore):
    """Process-local store; expired entries are hidden on read, never evicted eagerly."""

    def __init__(self, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            return None
        return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        with self._lock:
            self._entries[key] = (value, expires_at)


__all__ = ["InMemoryTransientStore", "TransientStore"]
