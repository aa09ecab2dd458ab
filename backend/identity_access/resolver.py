"""
Identity resolver: reconcile local credentials and federated identities.

Why:
    Login, signup and the Google callback must all end up with exactly one user
    record per email. This module owns those rules; the web adapter only maps
    request payloads in and the resulting `User` out.

Permissions:
    Public use cases (run before a session exists).
"""
from __future__ import annotations

import logging
from typing import Optional

from backend.errors import AuthError, ConflictError, DomainError, InternalError, ValidationError
from backend.identity_access.domain import DEFAULT_ROLE, User, mask_email, username_from
from backend.identity_access.passwords import PasswordHasher
from backend.identity_access.repo_db import UserRepoProtocol

logger = logging.getLogger("learnhub.identity_access.resolver")


def _normalize_email(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def _as_text(value: object) -> str:
    return value if isinstance(value, str) else ""


class IdentityResolver:
    def __init__(self, users: UserRepoProtocol, hasher: Optional[PasswordHasher] = None) -> None:
        self._users = users
        self._hasher = hasher or PasswordHasher()

    async def resolve_local_signup(
        self,
        *,
        username: Optional[str],
        email: object,
        password: object,
        confirm_password: object,
    ) -> User:
        """Create a learner account with a bcrypt-hashed password.

        Raises:
            ValidationError: missing email/password/confirmation or mismatch.
            ConflictError: the email is already registered.
        """
        email_n = _normalize_email(email)
        password_s = _as_text(password)
        confirm_s = _as_text(confirm_password)
        if not email_n or not password_s or not confirm_s:
            raise ValidationError("missing_fields", "Missing fields")
        if password_s != confirm_s:
            raise ValidationError("password_mismatch", "Passwords do not match")

        if await self._users.get_by_email(email_n):
            raise ConflictError("user_exists", "User already exists")

        password_hash = await self._hasher.hash(password_s)
        # The unique index on email still decides a concurrent signup race.
        user = await self._users.create_user(
            username=username_from(username if isinstance(username, str) else None, email_n),
            email=email_n,
            role=DEFAULT_ROLE,
            password_hash=password_hash,
        )
        logger.info("Local signup created user %s (%s)", user.id, mask_email(email_n))
        return user

    async def resolve_local_login(self, *, email: object, password: object) -> User:
        """Return the user for valid local credentials.

        Every failure (unknown email, federated-only account, wrong password)
        is reported as the same AuthError so the response does not reveal
        which one occurred.
        """
        email_n = _normalize_email(email)
        password_s = _as_text(password)
        if not email_n or not password_s:
            raise ValidationError("missing_fields", "Missing fields")

        user = await self._users.get_by_email(email_n)
        if user is None or not user.password_hash:
            await self._hasher.verify_dummy(password_s)
            raise AuthError("invalid_credentials", "Invalid credentials")
        if not await self._hasher.verify(password_s, user.password_hash):
            raise AuthError("invalid_credentials", "Invalid credentials")
        return user

    async def resolve_federated_login(
        self,
        *,
        federated_id: str,
        email: Optional[str],
        display_name: Optional[str],
    ) -> User:
        """Find or create the user behind a Google identity.

        Behavior:
            - Match by federated id or email; attach the federated id when the
              matched account has none (idempotent backfill).
            - Otherwise create a learner named after the display name or the
              email local part.
            - A concurrent first login that loses the insert race re-reads the
              winner's row instead of creating a duplicate.

        Raises:
            ValidationError: the provider returned no subject or no email.
            InternalError: the store failed.
        """
        if not federated_id:
            raise ValidationError("missing_federated_id")
        email_n = _normalize_email(email)
        if not email_n:
            raise ValidationError("missing_email")

        try:
            user = await self._users.find_by_google_id_or_email(federated_id, email_n)
            if user is not None:
                return await self._ensure_linked(user, federated_id)
            try:
                created = await self._users.create_user(
                    username=username_from(display_name, email_n),
                    email=email_n,
                    role=DEFAULT_ROLE,
                    google_id=federated_id,
                )
            except ConflictError:
                winner = await self._users.find_by_google_id_or_email(federated_id, email_n)
                if winner is None:
                    raise InternalError()
                return await self._ensure_linked(winner, federated_id)
        except DomainError:
            raise
        except Exception as exc:
            logger.error("Federated login store failure: %s", exc.__class__.__name__)
            raise InternalError() from exc
        logger.info("Federated login created user %s (%s)", created.id, mask_email(email_n))
        return created

    async def _ensure_linked(self, user: User, federated_id: str) -> User:
        if not user.google_id:
            await self._users.attach_google_id(user.id, federated_id)
            user.google_id = federated_id
            logger.info("Linked federated identity to user %s", user.id)
        return user


__all__ = ["IdentityResolver"]
