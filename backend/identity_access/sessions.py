"""
Session manager: bind opaque session tokens to user identities.

Why:
    One explicit object, built once at application start and handed to request
    handlers, owns session lifecycle. There is no process-global session
    singleton; tests construct their own managers with fake clocks/stores.

Behavior:
    - Sessions live for a fixed 24 hours from creation.
    - `resolve_session` always re-reads the user row, so role changes apply
      on the very next request (one extra store round trip per request).
"""
from __future__ import annotations

import logging
from typing import Optional

from backend.identity_access.domain import User
from backend.identity_access.repo_db import UserRepoProtocol
from backend.identity_access.stores import SessionRecord, SessionStoreProtocol

logger = logging.getLogger("learnhub.identity_access.sessions")

SESSION_TTL_SECONDS = 24 * 60 * 60


class SessionManager:
    def __init__(
        self,
        store: SessionStoreProtocol,
        users: UserRepoProtocol,
        ttl_seconds: int = SESSION_TTL_SECONDS,
    ) -> None:
        self._store = store
        self._users = users
        self._ttl = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    async def create_session(self, user: User) -> SessionRecord:
        return await self._store.create(user_id=user.id, ttl_seconds=self._ttl)

    async def resolve_session(self, token: Optional[str]) -> Optional[User]:
        """Return the live user for a token, or None when absent/expired/orphaned."""
        if not token:
            return None
        rec = await self._store.get(token)
        if rec is None:
            return None
        user = await self._users.get_by_id(rec.user_id)
        if user is None:
            # Subject vanished; drop the dangling session.
            logger.warning("Session subject %s no longer exists", rec.user_id)
            await self._store.delete(token)
            return None
        return user

    async def destroy_session(self, token: Optional[str]) -> None:
        """Invalidate a token. Unknown or empty tokens are a no-op."""
        if not token:
            return
        await self._store.delete(token)


__all__ = ["SESSION_TTL_SECONDS", "SessionManager"]
