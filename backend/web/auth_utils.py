"""
Shared authentication utilities.

Why:
    Avoid duplicating environment-dependent cookie policy logic across modules
    (e.g., the app factory and the auth router). Keeping a single helper
    improves consistency and makes testing easier.

Design:
    The helpers are framework-agnostic and pure: they accept an environment
    string and return the corresponding cookie flags. Callers decide where the
    environment comes from (the settings object).
"""

from __future__ import annotations

SESSION_COOKIE_NAME = "learnhub_session"


def _is_prod_like(environment: str) -> bool:
    return (environment or "").lower() in {"prod", "production", "stage", "staging"}


def cookie_opts(environment: str) -> dict:
    """Return cookie flags for the session cookie.

    Returns a mapping with keys:
      - secure: True only in prod-like environments (local dev runs on http)
      - samesite: "none" in prod-like environments, where the SPA lives on a
        different site than the API; "lax" otherwise so top-level OAuth
        redirects still carry the cookie
    """
    if _is_prod_like(environment):
        return {"secure": True, "samesite": "none"}
    return {"secure": False, "samesite": "lax"}


def session_cookie_kwargs(environment: str, *, max_age: int) -> dict:
    """Full `Response.set_cookie` keyword set for a session id."""
    opts = cookie_opts(environment)
    return {
        "key": SESSION_COOKIE_NAME,
        "httponly": True,
        "secure": opts["secure"],
        "samesite": opts["samesite"],
        "path": "/",
        "max_age": max_age,
    }


__all__ = ["SESSION_COOKIE_NAME", "cookie_opts", "session_cookie_kwargs"]
