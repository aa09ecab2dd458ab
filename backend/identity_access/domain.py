"""
Identity domain types: the closed role set and the user record.

Why:
- Centralize allowed roles to avoid drift between tools and web layer.
- The persistent store keeps the legacy integer `role_id` column
  (1=admin, 2=instructor, 3=learner); the mapping lives only here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from backend.errors import ValidationError


class Role(str, Enum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    LEARNER = "learner"

    @property
    def role_id(self) -> int:
        return _ROLE_IDS[self]

    @classmethod
    def from_role_id(cls, role_id: Optional[int]) -> Optional["Role"]:
        """Map the stored integer to a role; None stays None, unknown ids raise."""
        if role_id is None:
            return None
        for role, rid in _ROLE_IDS.items():
            if rid == role_id:
                return role
        raise ValueError(f"unknown role_id: {role_id!r}")

    @classmethod
    def parse(cls, value: object) -> "Role":
        """Parse a role name ("admin") or legacy id (1) from untrusted input.

        Raises ValidationError("invalid_role") for anything outside the closed set,
        including booleans and numeric strings of unknown ids.
        """
        if isinstance(value, Role):
            return value
        if isinstance(value, bool):
            raise ValidationError("invalid_role")
        if isinstance(value, int):
            try:
                role = cls.from_role_id(value)
            except ValueError:
                raise ValidationError("invalid_role") from None
            if role is None:  # pragma: no cover - ints are never None
                raise ValidationError("invalid_role")
            return role
        if isinstance(value, str):
            text = value.strip().lower()
            if text.isdigit():
                return cls.parse(int(text))
            try:
                return cls(text)
            except ValueError:
                raise ValidationError("invalid_role") from None
        raise ValidationError("invalid_role")


_ROLE_IDS = {Role.ADMIN: 1, Role.INSTRUCTOR: 2, Role.LEARNER: 3}

DEFAULT_ROLE = Role.LEARNER


@dataclass
class User:
    id: int
    username: str
    email: str
    role: Optional[Role] = None
    password_hash: Optional[str] = None
    google_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def to_public(self) -> dict:
        """Client-facing projection; never includes credential material."""
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "role": self.role.value if self.role else None,
            "role_id": self.role.role_id if self.role else None,
        }


def username_from(display_name: Optional[str], email: str) -> str:
    """Derive a username: display name if present, else the email local part."""
    name = (display_name or "").strip()
    if name:
        return name
    return (email or "").split("@", 1)[0]


def mask_email(email: str) -> str:
    """Return a log-safe rendering of an email address."""
    try:
        local, _, domain = (email or "").partition("@")
        return f"{local[:2]}***@{domain}"
    except Exception:
        return "***"


__all__ = ["Role", "DEFAULT_ROLE", "User", "username_from", "mask_email"]
