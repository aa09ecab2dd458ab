"""
Database-backed SessionStore for production use (Postgres).

Why: In-memory sessions are not durable and do not scale across instances. This
store persists sessions in Postgres while keeping the cookie opaque and
PII-minimal (only the user id is stored next to the session id).

Security:
- Only the opaque `session_id` is set in the cookie; all user context stays server-side.
- Expiry is part of the lookup predicate, so an expired row is never
  returned even before it is deleted.
"""
from __future__ import annotations

import re
from typing import Callable, Optional
import time

from psycopg import sql
from psycopg_pool import AsyncConnectionPool

from backend.db import store_errors
from backend.identity_access.stores import SessionRecord

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


class DBSessionStore:
    """Postgres-backed session store.

    Parameters
    ----------
    pool:
        The shared async connection pool.
    table:
        Fully qualified table name. Defaults to `public.app_sessions`.
    purge_interval_seconds:
        Minimum gap between sweeps of expired rows. `create` runs the sweep
        at most once per interval on the connection it already holds.
    """

    def __init__(
        self,
        pool: AsyncConnectionPool,
        table: str = "public.app_sessions",
        clock: Callable[[], float] = time.time,
        purge_interval_seconds: int = 300,
    ) -> None:
        # Validate table identifier early; it is composed into SQL below.
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._pool = pool
        self._table = table
        self._clock = clock
        self._purge_interval = purge_interval_seconds
        self._next_purge_at = 0

    def _identifier(self) -> sql.Composable:
        if "." in self._table:
            schema, name = self._table.split(".", 1)
            return sql.Identifier(schema, name)
        return sql.Identifier(self._table)

    async def create(self, *, user_id: int, ttl_seconds: int) -> SessionRecord:
        expires_at = int(self._clock()) + ttl_seconds
        stmt = sql.SQL(
            "insert into {} (session_id, user_id, expires_at) "
            "values (gen_random_uuid()::text, %s, to_timestamp(%s)) returning session_id"
        ).format(self._identifier())
        async with store_errors("sessions.create"):
            async with self._pool.connection() as conn:
                cur = await conn.execute(stmt, (user_id, expires_at))
                row = await cur.fetchone()
                await self._purge_expired(conn)
        sid = str(row["session_id"]) if row else ""
        return SessionRecord(session_id=sid, user_id=user_id, expires_at=expires_at, ttl_seconds=ttl_seconds)

    async def _purge_expired(self, conn) -> None:
        now = int(self._clock())
        if now < self._next_purge_at:
            return
        self._next_purge_at = now + self._purge_interval
        stmt = sql.SQL("delete from {} where expires_at <= to_timestamp(%s)").format(self._identifier())
        await conn.execute(stmt, (now,))

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        stmt = sql.SQL(
            "select session_id, user_id, extract(epoch from expires_at)::bigint as expires_at "
            "from {} where session_id = %s and expires_at > to_timestamp(%s)"
        ).format(self._identifier())
        async with store_errors("sessions.get"):
            async with self._pool.connection() as conn:
                cur = await conn.execute(stmt, (session_id, int(self._clock())))
                row = await cur.fetchone()
        if not row:
            return None
        expires_at = int(row["expires_at"])
        return SessionRecord(
            session_id=row["session_id"],
            user_id=row["user_id"],
            expires_at=expires_at,
            ttl_seconds=max(0, expires_at - int(self._clock())),
        )

    async def delete(self, session_id: str) -> None:
        stmt = sql.SQL("delete from {} where session_id = %s").format(self._identifier())
        async with store_errors("sessions.delete"):
            async with self._pool.connection() as conn:
                await conn.execute(stmt, (session_id,))

