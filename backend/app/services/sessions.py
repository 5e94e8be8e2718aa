"""
Anonymous session identity and the in-memory registry of practice sessions.

A client holds a random 64-hex token; the server only ever stores and passes
around its SHA-256 hash.
"""

import hashlib
import logging
import secrets
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from app.exceptions import SessionNotFoundError
from app.services.session_machine import PracticeSession

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def new_session_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_session(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def is_valid_token(token: str | None) -> bool:
    if not token or len(token) != TOKEN_BYTES * 2:
        return False
    try:
        int(token, 16)
    except ValueError:
        return False
    return True


class SessionRegistry:
    """
    Practice sessions keyed by session hash. Each entry has its own lock.

    Entries idle for longer than `idle_seconds` are dropped, and the registry
    never holds more than `max_sessions`; the least recently used go first.
    """

    def __init__(
        self,
        idle_seconds: float = 4 * 3600,
        max_sessions: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.idle_seconds = idle_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        self._lock = threading.Lock()
        # hash -> (session, lock, last_used), oldest use first
        self._sessions: OrderedDict[str, tuple[PracticeSession, threading.Lock, float]] = OrderedDict()

    def _evict(self, now: float) -> None:
        """Drop idle entries, then the least recently used beyond capacity. Caller holds _lock."""
        while self._sessions:
            session_hash, (_, _, last_used) = next(iter(self._sessions.items()))
            if now - last_used <= self.idle_seconds and len(self._sessions) <= self.max_sessions:
                break
            del self._sessions[session_hash]
            logger.debug(f"[Sessions] Evicted {session_hash[:8]}")

    def _store(self, session_hash: str, session: PracticeSession, lock: threading.Lock, now: float) -> None:
        self._sessions[session_hash] = (session, lock, now)
        self._sessions.move_to_end(session_hash)
        self._evict(now)

    def _entry(self, session_hash: str, create: bool) -> tuple[PracticeSession, threading.Lock]:
        with self._lock:
            now = self._clock()
            self._evict(now)
            entry = self._sessions.get(session_hash)
            if entry is None:
                if not create:
                    raise SessionNotFoundError(f"No practice session for {session_hash[:8]}")
                session, lock = PracticeSession(session_hash), threading.Lock()
            else:
                session, lock, _ = entry
            self._store(session_hash, session, lock, now)
            return session, lock

    @contextmanager
    def open(self, session_hash: str, create: bool = False) -> Iterator[PracticeSession]:
        """Hold a session exclusively for the duration of one request."""
        session, lock = self._entry(session_hash, create)
        with lock:
            yield session

    def reset(self, session_hash: str) -> PracticeSession:
        """Replace a session with a fresh one in onboarding."""
        with self._lock:
            session = PracticeSession(session_hash)
            self._store(session_hash, session, threading.Lock(), self._clock())
            return session

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __contains__(self, session_hash: str) -> bool:
        with self._lock:
            return session_hash in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
