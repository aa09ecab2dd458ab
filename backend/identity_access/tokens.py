"""
JWT verification helpers for the identity_access bounded context.

Why: Keep cryptographic validation of ID tokens outside the web adapter so we
can unit test it independently.

Security: Validates the ID token signature with the provider's JWKS and checks
issuer, audience, expiration and (when supplied) the nonce.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .oidc import OIDCConfig


class IDTokenVerificationError(Exception):
    """Raised when the ID token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass
class _CacheEntry:
    jwks: Dict[str, object]
    expires_at: float


class JWKSCache:
    """Very small in-memory cache for JWKS responses."""

    def __init__(self, ttl_seconds: int = 3600):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, _CacheEntry] = {}

    def get(self, cfg: OIDCConfig) -> Dict[str, object]:
        key = cfg.jwks_uri
        now = time.time()
        entry = self._entries.get(key)
        if entry and entry.expires_at > now:
            return entry.jwks

        jwks = self._fetch(cfg)
        self._entries[key] = _CacheEntry(jwks=jwks, expires_at=now + self.ttl_seconds)
        return jwks

    def _fetch(self, cfg: OIDCConfig) -> Dict[str, object]:
        try:
            resp = requests.get(cfg.jwks_uri, timeout=5)
        except requests.RequestException as exc:
            raise IDTokenVerificationError("jwks_fetch_failed") from exc
        if resp.status_code != 200:
            raise IDTokenVerificationError("jwks_fetch_failed")
        try:
            jwks = resp.json()
        except ValueError as exc:
            raise IDTokenVerificationError("jwks_invalid") from exc
        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise IDTokenVerificationError("jwks_invalid")
        return jwks


JWKS_CACHE = JWKSCache()

MAX_CLOCK_SKEW_SECONDS = 30


@dataclass(frozen=True)
class FederatedIdentity:
    subject: str
    email: Optional[str]
    display_name: Optional[str]
    email_verified: bool


def verify_id_token(
    *,
    id_token: str,
    cfg: OIDCConfig,
    nonce: Optional[str] = None,
    cache: JWKSCache | None = None,
) -> Dict[str, object]:
    """Validate an ID token using the provider JWKS and return claims.

    Raises
    ------
    IDTokenVerificationError:
        When the token is invalid (signature, issuer, audience, expiry, kid, nonce).
    """
    cache = cache or JWKS_CACHE
    jwks = cache.get(cfg)
    try:
        header = jwt.get_unverified_header(id_token)
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc
    kid = header.get("kid")
    if not kid:
        raise IDTokenVerificationError("missing_kid")
    key_dict = _find_key(jwks, kid)
    if not key_dict:
        raise IDTokenVerificationError("unknown_kid")

    try:
        claims = jwt.decode(
            id_token,
            key_dict,
            algorithms=["RS256"],
            audience=cfg.client_id,
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_iss": False,
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_at_hash": False,
            },
        )
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc

    # Google issues tokens under two equivalent issuer spellings.
    if claims.get("iss") not in cfg.issuers:
        raise IDTokenVerificationError("invalid_issuer")
    _validate_temporal_claims(claims)
    if nonce is not None and claims.get("nonce") != nonce:
        raise IDTokenVerificationError("invalid_nonce")
    return claims


def identity_from_claims(claims: Dict[str, object]) -> FederatedIdentity:
    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub:
        raise IDTokenVerificationError("missing_sub")
    email = claims.get("email")
    name = claims.get("name")
    verified = claims.get("email_verified")
    return FederatedIdentity(
        subject=sub,
        email=email if isinstance(email, str) else None,
        display_name=name if isinstance(name, str) else None,
        email_verified=verified is True or verified == "true",
    )


def _find_key(jwks: Dict[str, object], kid: str) -> Dict[str, object] | None:
    keys = jwks.get("keys")
    if not isinstance(keys, list):
        return None
    for key in keys:
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None


def _validate_temporal_claims(claims: Dict[str, object]) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise IDTokenVerificationError("invalid_id_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise IDTokenVerificationError("invalid_id_token")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)):
        if iat - MAX_CLOCK_SKEW_SECONDS > now:
            raise IDTokenVerificationError("invalid_id_token")

    nbf = claims.get("nbf")
    if isinstance(nbf, (int, float)) and nbf - MAX_CLOCK_SKEW_SECONDS > now:
        raise IDTokenVerificationError("invalid_id_token")


__all__ = [
    "FederatedIdentity",
    "IDTokenVerificationError",
    "JWKSCache",
    "identity_from_claims",
    "verify_id_token",
]
