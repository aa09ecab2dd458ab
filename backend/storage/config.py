"""
Centralized storage configuration for uploaded files.

Intent:
    Provide a single source of truth for the upload directory and the upload
    size limit shared by assignments, materials and submissions. Prevents
    drift across routers and enables simple testing.

Behavior:
    - UPLOAD_DIR_DEFAULT is "./uploads"; UPLOAD_DIR overrides it.
    - MAX_UPLOAD_BYTES overrides the size limit (default/clamped 20 MiB).
      Invalid or non-positive values fall back to the default.
"""
from __future__ import annotations

import os
from typing import Mapping, Optional


UPLOAD_DIR_DEFAULT = "./uploads"
MAX_UPLOAD_BYTES_DEFAULT = 20 * 1024 * 1024


def get_upload_dir(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the configured upload directory (not created here)."""
    env = os.environ if environ is None else environ
    return (env.get("UPLOAD_DIR") or UPLOAD_DIR_DEFAULT).strip()


def _parse_int_env(
    name: str,
    default: int,
    *,
    contract_max: int | None = None,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    env = os.environ if environ is None else environ
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_max_upload_bytes(environ: Optional[Mapping[str, str]] = None) -> int:
    """Maximum size of a single uploaded file."""
    return _parse_int_env(
        "MAX_UPLOAD_BYTES",
        MAX_UPLOAD_BYTES_DEFAULT,
        contract_max=MAX_UPLOAD_BYTES_DEFAULT,
        environ=environ,
    )


__all__ = [
    "MAX_UPLOAD_BYTES_DEFAULT",
    "UPLOAD_DIR_DEFAULT",
    "get_max_upload_bytes",
    "get_upload_dir",
]
