"""
Password hashing for local credentials (bcrypt).

Security:
- Work factor never drops below MIN_ROUNDS (12); BCRYPT_ROUNDS may raise it.
- Verification uses `bcrypt.checkpw`, which compares in constant time.
- Hashing is CPU-bound; the async helpers run it in a worker thread so the
  event loop keeps serving other requests.
"""
from __future__ import annotations

import os
from typing import Optional

import anyio.to_thread
import bcrypt

MIN_ROUNDS = 12
MAX_ROUNDS = 16
# bcrypt ignores bytes beyond 72; newer releases raise instead.
_MAX_PASSWORD_BYTES = 72


def configured_rounds() -> int:
    raw = (os.getenv("BCRYPT_ROUNDS") or "").strip()
    try:
        value = int(raw) if raw else MIN_ROUNDS
    except ValueError:
        value = MIN_ROUNDS
    return max(MIN_ROUNDS, min(value, MAX_ROUNDS))


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]


def hash_password_sync(password: str, rounds: Optional[int] = None) -> str:
    cost = max(MIN_ROUNDS, rounds or configured_rounds())
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=cost)).decode("ascii")


def verify_password_sync(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash: treat as a mismatch.
        return False


class PasswordHasher:
    """Async facade used by the identity resolver.

    `rounds` exists for tests that want a faster hash; it is still clamped to
    MIN_ROUNDS unless `allow_weak_rounds_for_tests` is set.
    """

    def __init__(self, rounds: Optional[int] = None, *, allow_weak_rounds_for_tests: bool = False) -> None:
        if rounds is not None and rounds < MIN_ROUNDS and not allow_weak_rounds_for_tests:
            rounds = MIN_ROUNDS
        self._rounds = rounds or configured_rounds()
        # Hash checked for unknown accounts so timing does not reveal whether
        # an email exists.
        self._dummy_hash: Optional[str] = None

    @property
    def rounds(self) -> int:
        return self._rounds

    async def hash(self, password: str) -> str:
        return await anyio.to_thread.run_sync(self._hash, password)

    async def verify(self, password: str, password_hash: str) -> bool:
        return await anyio.to_thread.run_sync(verify_password_sync, password, password_hash)

    async def verify_dummy(self, password: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = await self.hash("dummy-password-for-timing")
        await self.verify(password, self._dummy_hash)

    def _hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("ascii")


__all__ = [
    "MIN_ROUNDS",
    "PasswordHasher",
    "configured_rounds",
    "hash_password_sync",
    "verify_password_sync",
]
