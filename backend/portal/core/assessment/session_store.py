"""
In-process session registry and result hand-off.

Theta re-estimation reads and writes a dimension's response list
non-atomically, so two requests must never mutate the same session at the
same time. ``SessionStore.locked`` serializes access per session id; distinct
sessions never contend.

Sessions expire: every access through ``locked`` pushes an unfinished
session's expiry out by ``ttl_seconds``, and a session that completes is cut
down to ``completed_ttl_seconds``. Expired entries are dropped lazily on
lookup and in a periodic sweep, so abandoned sessions do not accumulate.

Finished profiles are handed to a ``ResultRepository``. Durable storage is
owned by an external data store; the in-memory repository serves tests and
single-process deployments and forgets profiles after ``ttl_seconds``.
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Protocol

from libs.domain_types import SessionState
from portal.core.assessment.engine import AdaptiveSession
from portal.core.assessment.exceptions import SessionNotFoundError
from portal.core.assessment.results import CognitiveProfile

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 3600.0
DEFAULT_COMPLETED_SESSION_TTL_SECONDS = 300.0
DEFAULT_RESULT_TTL_SECONDS = 86400.0
DEFAULT_CLEANUP_INTERVAL_SECONDS = 60.0


class SessionStore:
    """
    Thread-safe registry of live sessions with per-session locks and expiry.

    Args:
        ttl_seconds: Idle lifetime of an unfinished session.
        completed_ttl_seconds: Lifetime of a session once it is complete.
        cleanup_interval: Minimum seconds between sweeps of expired sessions.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        completed_ttl_seconds: float = DEFAULT_COMPLETED_SESSION_TTL_SECONDS,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        if ttl_seconds <= 0 or completed_ttl_seconds < 0 or cleanup_interval < 0:
            raise ValueError(
                "ttl_seconds must be positive; completed_ttl_seconds and "
                "cleanup_interval must not be negative"
            )
        self.ttl_seconds = ttl_seconds
        self.completed_ttl_seconds = completed_ttl_seconds
        self._cleanup_interval = cleanup_interval
        self._sessions: Dict[str, AdaptiveSession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._expiry: Dict[str, float] = {}
        self._registry_lock = threading.Lock()
        self._last_cleanup = time.time()

    def add(self, session: AdaptiveSession) -> AdaptiveSession:
        with self._registry_lock:
            now = time.time()
            self._maybe_cleanup(now)
            self._sessions[session.session_id] = session
            self._locks.setdefault(session.session_id, threading.Lock())
            self._expiry[session.session_id] = now + self.ttl_seconds
        return session

    def get(self, session_id: str) -> AdaptiveSession:
        """
        Raises:
            SessionNotFoundError: If no live session is registered under the id.
        """
        with self._registry_lock:
            now = time.time()
            self._maybe_cleanup(now)
            session = self._live_session(session_id, now)
        if session is None:
            raise SessionNotFoundError(
                "Session not found", context={"session_id": session_id}
            )
        return session

    def remove(self, session_id: str) -> None:
        with self._registry_lock:
            self._drop(session_id)

    @contextmanager
    def locked(self, session_id: str) -> Iterator[AdaptiveSession]:
        """
        Hold the session's lock for the duration of the block.

        Entering refreshes an unfinished session's expiry. If the session is
        complete when the block exits, its expiry is shortened to
        ``completed_ttl_seconds``.
        """
        with self._registry_lock:
            now = time.time()
            self._maybe_cleanup(now)
            lock = (
                self._locks.get(session_id)
                if self._live_session(session_id, now) is not None
                else None
            )
        if lock is None:
            raise SessionNotFoundError(
                "Session not found", context={"session_id": session_id}
            )
        with lock:
            session = self._touch(session_id)
            try:
                yield session
            finally:
                if session.state is SessionState.COMPLETE:
                    self._shorten_after_completion(session_id)

    def cleanup_expired(self) -> int:
        """Drop every expired session now; returns how many were dropped."""
        with self._registry_lock:
            now = time.time()
            self._last_cleanup = now
            return self._drop_expired(now)

    def __len__(self) -> int:
        with self._registry_lock:
            now = time.time()
            return sum(1 for expiry in self._expiry.values() if expiry >= now)

    def __contains__(self, session_id: object) -> bool:
        if not isinstance(session_id, str):
            return False
        with self._registry_lock:
            return self._live_session(session_id, time.time()) is not None

    def _touch(self, session_id: str) -> AdaptiveSession:
        with self._registry_lock:
            session = self._sessions.get(session_id)
            if session is None:
                # Swept while waiting for the session lock
                raise SessionNotFoundError(
                    "Session not found", context={"session_id": session_id}
                )
            if session.state is not SessionState.COMPLETE:
                self._expiry[session_id] = time.time() + self.ttl_seconds
            return session

    def _shorten_after_completion(self, session_id: str) -> None:
        with self._registry_lock:
            if session_id not in self._expiry:
                return
            self._expiry[session_id] = min(
                self._expiry[session_id], time.time() + self.completed_ttl_seconds
            )

    def _live_session(self, session_id: str, now: float) -> Optional[AdaptiveSession]:
        """Return the session unless missing or expired; expired ones are dropped."""
        expiry = self._expiry.get(session_id)
        if expiry is None:
            return None
        if now > expiry:
            self._drop(session_id)
            logger.info(
                f"Session {session_id} expired",
                extra={"session_id": session_id},
            )
            return None
        return self._sessions.get(session_id)

    def _maybe_cleanup(self, now: float) -> None:
        """Sweep expired sessions if the cleanup interval has passed."""
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        self._drop_expired(now)

    def _drop_expired(self, now: float) -> int:
        expired_ids = [
            session_id for session_id, expiry in self._expiry.items() if now > expiry
        ]
        for session_id in expired_ids:
            self._drop(session_id)
        if expired_ids:
            logger.info(f"Dropped {len(expired_ids)} expired sessions")
        return len(expired_ids)

    def _drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)
        self._expiry.pop(session_id, None)


class ResultRepository(Protocol):
    """Narrow persistence interface for finished profiles."""

    def save(self, profile: CognitiveProfile) -> None:
        ...

    def get(self, session_id: str) -> Optional[CognitiveProfile]:
        ...


class InMemoryResultRepository:
    """
    Keeps finished profiles in a dict; the first save of a session wins.

    Profiles are forgotten ``ttl_seconds`` after they are saved.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_RESULT_TTL_SECONDS,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        if ttl_seconds <= 0 or cleanup_interval < 0:
            raise ValueError(
                "ttl_seconds must be positive and cleanup_interval not negative"
            )
        self.ttl_seconds = ttl_seconds
        self._cleanup_interval = cleanup_interval
        self._profiles: Dict[str, CognitiveProfile] = {}
        self._expiry: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._last_cleanup = time.time()

    def save(self, profile: CognitiveProfile) -> None:
        with self._lock:
            now = time.time()
            self._maybe_cleanup(now)
            if self._live_profile(profile.session_id, now) is not None:
                return
            self._profiles[profile.session_id] = profile
            self._expiry[profile.session_id] = now + self.ttl_seconds
        logger.info(
            f"Stored profile {profile.type_code} for session {profile.session_id}",
            extra={"session_id": profile.session_id},
        )

    def get(self, session_id: str) -> Optional[CognitiveProfile]:
        with self._lock:
            now = time.time()
            self._maybe_cleanup(now)
            return self._live_profile(session_id, now)

    def __len__(self) -> int:
        with self._lock:
            now = time.time()
            return sum(1 for expiry in self._expiry.values() if expiry >= now)

    def _live_profile(self, session_id: str, now: float) -> Optional[CognitiveProfile]:
        expiry = self._expiry.get(session_id)
        if expiry is None:
            return None
        if now > expiry:
            del self._profiles[session_id]
            del self._expiry[session_id]
            return None
        return self._profiles[session_id]

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        expired_ids = [
            session_id for session_id, expiry in self._expiry.items() if now > expiry
        ]
        for session_id in expired_ids:
            del self._profiles[session_id]
            del self._expiry[session_id]
