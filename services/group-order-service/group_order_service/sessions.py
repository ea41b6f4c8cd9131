from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from .states import SessionState

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60


class SessionStore(Protocol):
    def get(self, key: int) -> Optional[SessionState]: ...

    def set(self, key: int, state: SessionState) -> None: ...

    def clear(self, key: int) -> None: ...

    def take(self, key: int) -> Optional[SessionState]: ...


class InMemorySessionStore:
    """Process-local session map with a per-entry time to live.

    Sessions are lost on restart; the participant simply starts the flow
    again. Expired entries read as missing and are purged on write.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[int, Tuple[SessionState, float]] = {}

    def get(self, key: int) -> Optional[SessionState]:
        with self._lock:
            return self._live(key)

    def set(self, key: int, state: SessionState) -> None:
        with self._lock:
            self._purge_expired()
            self._entries[key] = (state, self._clock())

    def clear(self, key: int) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def take(self, key: int) -> Optional[SessionState]:
        """Remove and return the session in one step.

        Two concurrent callers for the same key never both get the state.
        """
        with self._lock:
            state = self._live(key)
            self._entries.pop(key, None)
            return state

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _live(self, key: int) -> Optional[SessionState]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        state, written_at = entry
        if self._clock() - written_at > self._ttl:
            del self._entries[key]
            logger.debug("Session for %s expired in step %s", key, state.expecting.value)
            return None
        return state

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (_, written_at) in self._entries.items() if now - written_at > self._ttl]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired sessions", len(expired))
