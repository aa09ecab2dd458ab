"""
FastAPI dependencies: service lookup, session resolution and role gates.

The resolved `User` is passed into handlers explicitly as a dependency
result; nothing is stashed on the request object.
"""
from __future__ import annotations

from typing import Awaitable, Callable, Optional

from fastapi import Depends, Request, UploadFile

from backend.identity_access.authz import require_authenticated, require_role
from backend.identity_access.domain import Role, User
from backend.storage.ports import Upload
from backend.web.auth_utils import SESSION_COOKIE_NAME
from backend.web.wiring import AppServices


def get_services(request: Request) -> AppServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        # Lifespan did not run (or failed); nothing can be served.
        raise RuntimeError("application services are not initialized")
    return services


async def current_user(
    request: Request, services: AppServices = Depends(get_services)
) -> Optional[User]:
    """Resolve the session cookie to a fresh user row, or None."""
    return await services.sessions.resolve_session(request.cookies.get(SESSION_COOKIE_NAME))


async def authenticated_user(user: Optional[User] = Depends(current_user)) -> User:
    return require_authenticated(user)


def require_role_dependency(role: Role) -> Callable[..., Awaitable[User]]:
    """Build a dependency that admits only users holding `role`.

    No session -> 401; no role or another role -> 403.
    """

    async def _dependency(user: User = Depends(authenticated_user)) -> User:
        require_role(user, role)
        return user

    _dependency.__name__ = f"require_{role.value}"
    return _dependency


require_admin = require_role_dependency(Role.ADMIN)
require_instructor = require_role_dependency(Role.INSTRUCTOR)
require_learner = require_role_dependency(Role.LEARNER)


def upload_from(file: Optional[UploadFile]) -> Optional[Upload]:
    """Map an optional multipart file to the storage port; empty file inputs count as none."""
    if file is None or not file.filename:
        return None
    return Upload(stream=file.file, filename=file.filename)


__all__ = [
    "authenticated_user",
    "current_user",
    "get_services",
    "require_admin",
    "require_instructor",
    "require_learner",
    "require_role_dependency",
    "upload_from",
]
