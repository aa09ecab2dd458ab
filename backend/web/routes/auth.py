"""
Authentication routes: local signup/login, Google sign-in, logout and `/me`.

Why:
    Keep auth endpoints in a dedicated router. Identity rules live in
    `IdentityResolver`; this module only maps request payloads in, starts or
    ends sessions and sets the cookie.

Notes:
    - Google sign-in uses the authorization-code flow with PKCE, `state` and
      `nonce` stored server-side. The blocking token exchange and JWKS fetch
      run in worker threads.
    - The callback always ends in a redirect to the frontend: `/dashboard` on
      success, `/login` on any failure.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Optional

import anyio.to_thread
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from backend.errors import DomainError
from backend.identity_access.domain import User
from backend.identity_access.tokens import IDTokenVerificationError, identity_from_claims, verify_id_token
from backend.web.auth_utils import SESSION_COOKIE_NAME, session_cookie_kwargs
from backend.web.deps import current_user, get_services
from backend.web.responses import json_private, private_no_store
from backend.web.wiring import AppServices

auth_router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger("learnhub.web.auth")


class SignupPayload(BaseModel):
    # Accept raw values and validate in the resolver to return 400 consistently
    model_config = ConfigDict(populate_by_name=True)

    username: Any = None
    email: Any = None
    password: Any = None
    confirm_password: Any = Field(default=None, alias="confirmPassword")


class LoginPayload(BaseModel):
    email: Any = None
    password: Any = None


async def _start_session(services: AppServices, user: User, response: Response) -> None:
    rec = await services.sessions.create_session(user)
    response.set_cookie(
        value=rec.session_id,
        **session_cookie_kwargs(services.settings.environment, max_age=services.sessions.ttl_seconds),
    )


@auth_router.post("/signup")
async def signup(payload: SignupPayload, services: AppServices = Depends(get_services)):
    """Create a learner account and log it in."""
    user = await services.resolver.resolve_local_signup(
        username=payload.username,
        email=payload.email,
        password=payload.password,
        confirm_password=payload.confirm_password,
    )
    response = json_private({"user": user.to_public()})
    await _start_session(services, user, response)
    return response


@auth_router.post("/login")
async def login(payload: LoginPayload, services: AppServices = Depends(get_services)):
    user = await services.resolver.resolve_local_login(email=payload.email, password=payload.password)
    response = json_private({"user": user.to_public()})
    await _start_session(services, user, response)
    return response


@auth_router.post("/logout")
async def logout(request: Request, services: AppServices = Depends(get_services)):
    """End the current session. Always succeeds, also without a session."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    try:
        await services.sessions.destroy_session(token)
    except DomainError as exc:
        logger.warning("Session delete failed during logout: %s", exc.code)
    response = json_private({"ok": True})
    opts = session_cookie_kwargs(services.settings.environment, max_age=0)
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path=opts["path"],
        secure=opts["secure"],
        httponly=True,
        samesite=opts["samesite"],
    )
    return response


@auth_router.get("/me")
async def me(user: Optional[User] = Depends(current_user)):
    return json_private({"user": user.to_public() if user else None})


@auth_router.get("/google")
async def google_login(services: AppServices = Depends(get_services)):
    """Redirect to Google with state, nonce and a PKCE challenge."""
    if not services.oidc.cfg.configured:
        return JSONResponse({"error": "google_login_unavailable"}, status_code=503, headers=private_no_store())
    code_verifier = services.oidc.generate_code_verifier()
    nonce = secrets.token_urlsafe(16)
    rec = services.states.create(code_verifier=code_verifier, nonce=nonce)
    url = services.oidc.build_authorization_url(
        state=rec.state,
        code_challenge=services.oidc.code_challenge_s256(code_verifier),
        nonce=nonce,
    )
    return RedirectResponse(url=url, status_code=302, headers=private_no_store())


def _login_failed(services: AppServices, reason: str) -> RedirectResponse:
    logger.warning("Google sign-in failed: %s", reason)
    return RedirectResponse(
        url=f"{services.settings.frontend_url}/login", status_code=302, headers=private_no_store()
    )


@auth_router.get("/google/callback")
async def google_callback(
    code: str | None = None,
    state: str | None = None,
    services: AppServices = Depends(get_services),
):
    if not code or not state:
        return _login_failed(services, "missing_code_or_state")
    rec = services.states.pop_valid(state)
    if not rec:
        return _login_failed(services, "invalid_state")

    try:
        tokens = await anyio.to_thread.run_sync(
            lambda: services.oidc.exchange_code_for_tokens(code=code, code_verifier=rec.code_verifier)
        )
    except Exception as exc:
        return _login_failed(services, f"token_exchange:{exc.__class__.__name__}")
    id_token = tokens.get("id_token") if isinstance(tokens, dict) else None
    if not id_token or not isinstance(id_token, str):
        return _login_failed(services, "missing_id_token")

    try:
        claims = await anyio.to_thread.run_sync(
            lambda: verify_id_token(id_token=id_token, cfg=services.oidc.cfg, nonce=rec.nonce)
        )
        identity = identity_from_claims(claims)
    except IDTokenVerificationError as exc:
        return _login_failed(services, exc.code)
    # Accounts are merged by email, so the address must be provider-verified.
    if not identity.email_verified:
        return _login_failed(services, "email_not_verified")

    try:
        user = await services.resolver.resolve_federated_login(
            federated_id=identity.subject,
            email=identity.email,
            display_name=identity.display_name,
        )
    except DomainError as exc:
        return _login_failed(services, exc.code)

    response = RedirectResponse(
        url=f"{services.settings.frontend_url}/dashboard", status_code=302, headers=private_no_store()
    )
    await _start_session(services, user, response)
    logger.info("Google sign-in for user %s", user.id)
    return response


__all__ = ["auth_router"]
