"""In-memory registry of pending self-destruct challenges.

*What:* Holds one ``PendingChallenge`` per gadget id: the secret code, when it
expires and how many confirmation attempts have been spent.
*When:* Built once by the application factory and shared by every request
thread plus the expiry reaper.
*Why:* Challenges are short lived (minutes) and must never outlive the process,
so a database table would only add cleanup work.
*How:* A dict guarded by a single ``threading.Lock``. Entries are frozen
dataclasses, so nothing outside the registry can mutate one in place.
``lock_for`` exposes a per-gadget lock so callers can run a read-check-write
sequence for one gadget without blocking unrelated gadgets.
"""

from __future__ import annotations

import threading
import zlib
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable

__all__ = ["Clock", "PendingChallenge", "ConfirmationRegistry", "utcnow"]

Clock = Callable[[], datetime]

# Number of per-gadget lock stripes; gadgets hashing to the same stripe share a lock.
LOCK_STRIPES = 64


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class PendingChallenge:
    gadget_id: str
    code: str
    expires_at: datetime
    attempts: int = 0

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class ConfirmationRegistry:
    def __init__(self, clock: Clock = utcnow, stripes: int = LOCK_STRIPES) -> None:
        self.clock = clock
        self._entries: dict[str, PendingChallenge] = {}
        self._mutex = threading.Lock()
        self._gadget_locks = tuple(threading.Lock() for _ in range(stripes))

    def __len__(self) -> int:
        with self._mutex:
            return len(self._entries)

    def lock_for(self, gadget_id: str) -> threading.Lock:
        """Return the lock serialising multi-step operations on ``gadget_id``."""

        index = zlib.crc32(gadget_id.encode("utf-8")) % len(self._gadget_locks)
        return self._gadget_locks[index]

    def create(self, gadget_id: str, code: str, ttl: timedelta, now: datetime | None = None) -> None:
        """Insert or replace the challenge for ``gadget_id``, expiring ``ttl`` after ``now``."""

        issued_at = self.clock() if now is None else now
        challenge = PendingChallenge(gadget_id=gadget_id, code=code, expires_at=issued_at + ttl)
        with self._mutex:
            self._entries[gadget_id] = challenge

    def get(self, gadget_id: str) -> PendingChallenge | None:
        with self._mutex:
            return self._entries.get(gadget_id)

    def increment_attempts(self, gadget_id: str) -> int | None:
        """Bump the attempt counter and return the new value, or ``None`` if absent."""

        with self._mutex:
            current = self._entries.get(gadget_id)
            if current is None:
                return None
            updated = replace(current, attempts=current.attempts + 1)
            self._entries[gadget_id] = updated
            return updated.attempts

    def restore_attempt(self, gadget_id: str) -> int | None:
        """Give back one attempt, never going below zero."""

        with self._mutex:
            current = self._entries.get(gadget_id)
            if current is None:
                return None
            updated = replace(current, attempts=max(current.attempts - 1, 0))
            self._entries[gadget_id] = updated
            return updated.attempts

    def delete(self, gadget_id: str) -> None:
        with self._mutex:
            self._entries.pop(gadget_id, None)

    def purge_expired(self, now: datetime) -> int:
        with self._mutex:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)
