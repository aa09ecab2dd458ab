"""
In-memory stores for development: StateStore and SessionStore.

Why: Keep server-side state (OAuth state, PKCE code_verifier, nonce) and
sessions opaque to the client. For production, use the DB-backed session
store (`stores_db.DBSessionStore`, SESSIONS_BACKEND=db).

Security: Cookies carry only an opaque session id. Session data stays server-side.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol
import secrets
import time

Clock = Callable[[], float]


@dataclass
class StateRecord:
    state: str
    code_verifier: str
    redirect: Optional[str]
    expires_at: int
    nonce: Optional[str] = None


class StateStore:
    def __init__(self, clock: Clock = time.time):
        self._data: Dict[str, StateRecord] = {}
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def _purge_expired(self) -> None:
        # Abandoned logins never reach pop_valid; drop them here.
        now = self._now()
        for key in [k for k, rec in self._data.items() if rec.expires_at < now]:
            del self._data[key]

    def create(
        self,
        *,
        code_verifier: str,
        ttl_seconds: int = 900,
        redirect: Optional[str] = None,
        nonce: Optional[str] = None,
    ) -> StateRecord:
        state = secrets.token_urlsafe(24)
        rec = StateRecord(
            state=state,
            code_verifier=code_verifier,
            redirect=redirect,
            expires_at=self._now() + ttl_seconds,
            nonce=nonce,
        )
        self._purge_expired()
        self._data[state] = rec
        return rec

    def __len__(self) -> int:
        return len(self._data)

    def pop_valid(self, state: str) -> Optional[StateRecord]:
        rec = self._data.pop(state, None)
        if not rec:
            return None
        if rec.expires_at < self._now():
            return None
        return rec


@dataclass
class SessionRecord:
    session_id: str
    user_id: int
    expires_at: int
    ttl_seconds: int


class SessionStoreProtocol(Protocol):
    async def create(self, *, user_id: int, ttl_seconds: int) -> SessionRecord:
        ...

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        ...

    async def delete(self, session_id: str) -> None:
        ...


class SessionStore:
    """Process-local session store; sessions vanish on restart."""

    def __init__(self, clock: Clock = time.time):
        self._data: Dict[str, SessionRecord] = {}
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def _purge_expired(self) -> None:
        now = self._now()
        for key in [k for k, rec in self._data.items() if rec.expires_at <= now]:
            del self._data[key]

    async def create(self, *, user_id: int, ttl_seconds: int) -> SessionRecord:
        sid = secrets.token_urlsafe(32)
        rec = SessionRecord(
            session_id=sid,
            user_id=user_id,
            expires_at=self._now() + ttl_seconds,
            ttl_seconds=ttl_seconds,
        )
        self._purge_expired()
        self._data[sid] = rec
        return rec

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at <= self._now():
            self._data.pop(session_id, None)
            return None
        return rec

    async def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._data)
