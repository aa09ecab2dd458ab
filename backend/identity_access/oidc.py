"""
Minimal OAuth2/OIDC client for Google sign-in.

Why: Keep web framework independent logic in a separate module. The web
adapter (FastAPI) calls into this client to build the authorization URL and
exchange the authorization code for tokens.

Security: Uses PKCE (S256) parameters plus `state` and `nonce`; the caller is
responsible for storing them server-side (see `stores.StateStore`). This
client does not manage persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import hashlib
import base64
import os
from urllib.parse import urlencode

# Small indirection to ease monkeypatching in tests
import requests as http

GOOGLE_AUTH_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
GOOGLE_JWKS_URI = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("https://accounts.google.com", "accounts.google.com")


def http_post(url: str, data: Dict[str, str], headers: Dict[str, str], timeout: float = 10.0):
    return http.post(url, data=data, headers=headers, timeout=timeout)


@dataclass(frozen=True)
class OIDCConfig:
    client_id: str
    client_secret: str
    redirect_uri: str  # e.g., http://localhost:4000/auth/google/callback
    auth_endpoint: str = GOOGLE_AUTH_ENDPOINT
    token_endpoint: str = GOOGLE_TOKEN_ENDPOINT
    jwks_uri: str = GOOGLE_JWKS_URI
    issuers: tuple[str, ...] = GOOGLE_ISSUERS
    scope: str = "openid email profile"

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


class OIDCClient:
    def __init__(self, config: OIDCConfig):
        self.cfg = config

    @staticmethod
    def generate_code_verifier(length: int = 64) -> str:
        """Generate a high-entropy URL-safe code_verifier.

        Note: RFC suggests length between 43 and 128 characters.
        """
        return base64.urlsafe_b64encode(os.urandom(length)).decode("ascii").rstrip("=")

    @staticmethod
    def code_challenge_s256(code_verifier: str) -> str:
        """Derive S256 code challenge from verifier."""
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def build_authorization_url(self, *, state: str, code_challenge: str, nonce: Optional[str] = None) -> str:
        """Return the provider authorization URL.

        Parameters
        - state: Opaque anti-CSRF token, validated on callback
        - code_challenge: The S256 code challenge derived from the verifier
        - nonce: OIDC replay protection value, echoed in the ID token
        """
        params = {
            "response_type": "code",
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
            "scope": self.cfg.scope,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "prompt": "select_account",
        }
        if nonce:
            params["nonce"] = nonce
        return f"{self.cfg.auth_endpoint}?{urlencode(params)}"

    def exchange_code_for_tokens(self, *, code: str, code_verifier: str) -> Dict[str, str]:
        """Exchange authorization code for tokens at token endpoint.

        Returns tokens dict on success; raises ValueError on failure.
        Blocking (requests); async callers run it in a worker thread.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.cfg.client_id,
            "client_secret": self.cfg.client_secret,
            "redirect_uri": self.cfg.redirect_uri,
            "code_verifier": code_verifier,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        resp = http_post(self.cfg.token_endpoint, data=data, headers=headers)
        if resp.status_code != 200:
            raise ValueError("token_exchange_failed")
        return resp.json()
