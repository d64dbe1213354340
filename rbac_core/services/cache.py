"""Time-boxed, token-stamped cache of resolved user access."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, Optional, Protocol
from uuid import UUID

from rbac_core.services.records import EffectiveAccess


class AccessCache(Protocol):
    """Contract for caching per-user effective access."""

    @property
    def token(self) -> int:
        ...

    def get(self, user_id: UUID) -> Optional[EffectiveAccess]:
        ...

    def put(self, user_id: UUID, access: EffectiveAccess, *, token: int) -> bool:
        ...

    def invalidate(self, token: int) -> int:
        ...


@dataclass(frozen=True)
class _CacheEntry:
    access: EffectiveAccess
    token: int
    expires_at: float


class InMemoryAccessCache(AccessCache):
    """Thread-safe map keyed by user id.

    Each entry carries the invalidation token that was current when its
    computation started. `invalidate` moves the cache to a newer token and
    drops everything; `put` refuses snapshots computed under an older token.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        *,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._ttl = max(float(ttl_seconds), 0.0)
        self._clock = clock
        self._wall_clock = wall_clock
        self._entries: Dict[UUID, _CacheEntry] = {}
        self._token = 0
        self._lock = RLock()

    @property
    def token(self) -> int:
        with self._lock:
            return self._token

    def get(self, user_id: UUID) -> Optional[EffectiveAccess]:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            if entry.token < self._token or entry.expires_at <= self._clock():
                del self._entries[user_id]
                return None
            return entry.access

    def put(self, user_id: UUID, access: EffectiveAccess, *, token: int) -> bool:
        expires_at = self._clock() + self._ttl
        if access.valid_until is not None:
            remaining = (access.valid_until - self._wall_clock()).total_seconds()
            expires_at = min(expires_at, self._clock() + max(remaining, 0.0))
        with self._lock:
            if token != self._token:
                return False
            self._entries[user_id] = _CacheEntry(access=access, token=token, expires_at=expires_at)
            return True

    def invalidate(self, token: int) -> int:
        """Adopt `token` if newer and drop every entry. Returns the number dropped."""

        with self._lock:
            if token <= self._token:
                return 0
            self._token = token
            dropped = len(self._entries)
            self._entries.clear()
            return dropped

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
