"""
Authorization gate: authenticated-user and role checks.

Framework-free so use cases and tests can call it directly; the FastAPI
dependencies in `backend.web.deps` wrap these functions.
"""
from __future__ import annotations

from typing import Optional

from backend.errors import Forbidden, Unauthenticated
from backend.identity_access.domain import Role, User


def require_authenticated(user: Optional[User]) -> User:
    if user is None:
        raise Unauthenticated("unauthenticated", "Not authenticated")
    return user


def require_role(user: User, role: Role) -> None:
    """Ensure `user` holds exactly `role`.

    A missing role and a different role are both 403, but carry different
    codes so clients and logs can tell them apart.
    """
    required = Role.parse(role)
    if user.role is None:
        raise Forbidden("no_role_assigned", "No role assigned")
    if user.role is not required:
        raise Forbidden("role_mismatch", f"Forbidden - require role {required.value}")


__all__ = ["require_authenticated", "require_role"]
