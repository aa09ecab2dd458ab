"""
Configuration and startup security checks for Learnhub.

Why: A learning platform stores credentials and grades; we must prevent
accidental insecure deployments. This module reads the environment once into
an immutable settings object and provides a single guard that enforces
minimal production safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The functions simply read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping, Optional, Tuple

from backend.storage.config import get_max_upload_bytes, get_upload_dir

DEFAULT_FRONTEND_URL = "http://localhost:5173"
DEFAULT_CALLBACK_URL = "http://localhost:4000/auth/google/callback"


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _flag(environ: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = (environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _split_origins(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip().rstrip("/") for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class AppSettings:
    environment: str = "dev"
    database_url: Optional[str] = None
    sessions_backend: str = "memory"
    google_client_id: str = ""
    google_client_secret: str = ""
    google_callback_url: str = DEFAULT_CALLBACK_URL
    frontend_url: str = DEFAULT_FRONTEND_URL
    cors_origins: Tuple[str, ...] = (DEFAULT_FRONTEND_URL,)
    upload_dir: str = "./uploads"
    max_upload_bytes: int = 20 * 1024 * 1024
    strict_regrade: bool = False
    strict_progress_bounds: bool = False

    @property
    def prod_like(self) -> bool:
        return _is_prod_like(self.environment)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Build `AppSettings` from the environment (or an explicit mapping in tests)."""
    env = os.environ if environ is None else environ
    frontend_url = (env.get("FRONTEND_URL") or DEFAULT_FRONTEND_URL).strip().rstrip("/")
    # FRONTEND_URLS (comma separated) wins over the single FRONTEND_URL.
    origins = _split_origins(env.get("FRONTEND_URLS") or "") or (frontend_url,)
    sessions_backend = (env.get("SESSIONS_BACKEND") or "memory").strip().lower()
    if sessions_backend not in ("memory", "db"):
        sessions_backend = "memory"
    return AppSettings(
        environment=(env.get("LEARNHUB_ENV") or "dev").strip().lower(),
        database_url=(env.get("DATABASE_URL") or "").strip() or None,
        sessions_backend=sessions_backend,
        google_client_id=(env.get("GOOGLE_CLIENT_ID") or "").strip(),
        google_client_secret=(env.get("GOOGLE_CLIENT_SECRET") or "").strip(),
        google_callback_url=(env.get("GOOGLE_CALLBACK_URL") or DEFAULT_CALLBACK_URL).strip(),
        frontend_url=frontend_url,
        cors_origins=origins,
        upload_dir=get_upload_dir(env),
        max_upload_bytes=get_max_upload_bytes(env),
        strict_regrade=_flag(env, "STRICT_REGRADE"),
        strict_progress_bounds=_flag(env, "STRICT_PROGRESS_BOUNDS"),
    )


def ensure_secure_config_on_startup(settings: Optional[AppSettings] = None) -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - DATABASE_URL must be set and must not explicitly disable TLS.
    - The Google client secret must be configured.
    - FRONTEND_URL must use https (cookies are SameSite=None; Secure).
    - Sessions must be persisted in the database, not process memory.
    """
    cfg = settings or load_settings()
    if not cfg.prod_like:
        return  # dev/test remain permissive

    # 1) Postgres DSN present and TLS not explicitly disabled
    if not cfg.database_url:
        raise SystemExit("Refusing to start: DATABASE_URL is required in production.")
    if "sslmode=disable" in cfg.database_url:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )

    # 2) Google OAuth client secret
    secret = cfg.google_client_secret
    if not secret or secret.upper().startswith("CHANGE_ME"):
        raise SystemExit(
            "Refusing to start: GOOGLE_CLIENT_SECRET is unset or a placeholder in production."
        )

    # 3) Frontend origin must be https
    if not cfg.frontend_url.lower().startswith("https://"):
        raise SystemExit("Refusing to start: FRONTEND_URL must use https in production.")

    # 4) Durable sessions
    if cfg.sessions_backend != "db":
        raise SystemExit(
            "Refusing to start: SESSIONS_BACKEND=memory is not allowed in production/staging. Use SESSIONS_BACKEND=db."
        )
