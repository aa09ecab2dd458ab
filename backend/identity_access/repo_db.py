"""Postgres-backed user repository for the identity_access context."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

from psycopg import errors as pg_errors
from psycopg_pool import AsyncConnectionPool

from backend.db import store_errors
from backend.errors import ConflictError, InternalError
from backend.identity_access.domain import Role, User

logger = logging.getLogger("learnhub.identity_access.repo")

_USER_COLUMNS = "id, username, email, password, google_id, role_id, created_at"


class UserRepoProtocol(Protocol):
    async def get_by_id(self, user_id: int) -> Optional[User]:
        ...

    async def get_by_email(self, email: str) -> Optional[User]:
        ...

    async def find_by_google_id_or_email(self, google_id: str, email: str) -> Optional[User]:
        ...

    async def create_user(
        self,
        *,
        username: str,
        email: str,
        role: Role,
        password_hash: Optional[str] = None,
        google_id: Optional[str] = None,
    ) -> User:
        ...

    async def attach_google_id(self, user_id: int, google_id: str) -> None:
        ...

    async def set_role(self, user_id: int, role: Role) -> bool:
        ...


def user_from_row(row: Mapping[str, Any]) -> User:
    """Map a `users` row to the domain record.

    A role_id outside the closed set means the store was written by something
    other than this service; refuse to guess a role for it.
    """
    try:
        role = Role.from_role_id(row.get("role_id"))
    except ValueError:
        logger.error("User %s carries an unknown role_id", row.get("id"))
        raise InternalError("unknown_role")
    return User(
        id=row["id"],
        username=row.get("username") or "",
        email=row["email"],
        role=role,
        password_hash=row.get("password"),
        google_id=row.get("google_id"),
        created_at=row.get("created_at"),
    )


class DBUserRepo:
    """Persistence adapter for users (table `users`)."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def _fetch_one(self, operation: str, sql: str, params: tuple) -> Optional[User]:
        async with store_errors(operation):
            async with self._pool.connection() as conn:
                cur = await conn.execute(sql, params)
                row = await cur.fetchone()
        return user_from_row(row) if row else None

    async def get_by_id(self, user_id: int) -> Optional[User]:
        return await self._fetch_one(
            "users.get_by_id", f"select {_USER_COLUMNS} from users where id = %s", (user_id,)
        )

    async def get_by_email(self, email: str) -> Optional[User]:
        return await self._fetch_one(
            "users.get_by_email", f"select {_USER_COLUMNS} from users where email = %s", (email,)
        )

    async def find_by_google_id_or_email(self, google_id: str, email: str) -> Optional[User]:
        """Return the account linked to google_id, else the one owning email.

        Prefers the federated-id match so an already linked account wins over
        a different account that happens to share the email.
        """
        return await self._fetch_one(
            "users.find_federated",
            f"""
            select {_USER_COLUMNS}
              from users
             where google_id = %s or email = %s
             order by (google_id = %s) desc nulls last, id asc
             limit 1
            """,
            (google_id, email, google_id),
        )

    async def create_user(
        self,
        *,
        username: str,
        email: str,
        role: Role,
        password_hash: Optional[str] = None,
        google_id: Optional[str] = None,
    ) -> User:
        async with store_errors("users.create"):
            try:
                async with self._pool.connection() as conn:
                    cur = await conn.execute(
                        f"""
                        insert into users (username, email, password, google_id, role_id)
                        values (%s, %s, %s, %s, %s)
                        returning {_USER_COLUMNS}
                        """,
                        (username, email, password_hash, google_id, role.role_id),
                    )
                    row = await cur.fetchone()
            except pg_errors.UniqueViolation as exc:
                raise ConflictError("user_exists", "User already exists") from exc
        if not row:
            raise InternalError()
        return user_from_row(row)

    async def attach_google_id(self, user_id: int, google_id: str) -> None:
        # Only backfill; never overwrite an existing link.
        async with store_errors("users.attach_google_id"):
            async with self._pool.connection() as conn:
                await conn.execute(
                    "update users set google_id = %s where id = %s and google_id is null",
                    (google_id, user_id),
                )

    async def set_role(self, user_id: int, role: Role) -> bool:
        async with store_errors("users.set_role"):
            async with self._pool.connection() as conn:
                cur = await conn.execute(
                    "update users set role_id = %s where id = %s", (role.role_id, user_id)
                )
                return (cur.rowcount or 0) > 0


__all__ = ["DBUserRepo", "UserRepoProtocol", "user_from_row"]
