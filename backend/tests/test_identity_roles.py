"""
Role mapping tests: the closed role set and the legacy integer ids.
"""
from __future__ import annotations

import pytest

from backend.errors import ValidationError
from backend.identity_access import domain
from backend.identity_access.domain import Role, User, mask_email, username_from


@pytest.mark.parametrize(
    "role, role_id",
    [(Role.ADMIN, 1), (Role.INSTRUCTOR, 2), (Role.LEARNER, 3)],
)
def test_role_ids_round_trip(role, role_id):
    assert role.role_id == role_id
    assert Role.from_role_id(role_id) is role


def test_from_role_id_keeps_none_and_rejects_unknown():
    assert Role.from_role_id(None) is None
    with pytest.raises(ValueError):
        Role.from_role_id(7)


@pytest.mark.parametrize("value", ["instructor", " Instructor ", 2, "2", Role.INSTRUCTOR])
def test_parse_accepts_names_and_ids(value):
    assert Role.parse(value) is Role.INSTRUCTOR


@pytest.mark.parametrize("value", ["teacher", 0, 4, "9", True, None, 2.0, ""])
def test_parse_rejects_values_outside_closed_set(value):
    with pytest.raises(ValidationError) as exc:
        Role.parse(value)
    assert exc.value.code == "invalid_role"


def test_public_projection_never_leaks_password_hash():
    user = User(id=5, username="ada", email="ada@example.org", role=Role.LEARNER, password_hash="$2b$...")
    public = user.to_public()
    assert public == {"id": 5, "email": "ada@example.org", "username": "ada", "role": "learner", "role_id": 3}
    assert "password" not in str(public)


def test_public_projection_without_role():
    user = User(id=1, username="x", email="x@example.org")
    assert user.to_public()["role"] is None
    assert user.to_public()["role_id"] is None


def test_username_falls_back_to_email_local_part():
    assert username_from("  Ada Lovelace ", "ada@example.org") == "Ada Lovelace"
    assert username_from(None, "ada@example.org") == "ada"
    assert username_from("   ", "grace@example.org") == "grace"


def test_mask_email_hides_local_part():
    assert mask_email("ada.lovelace@example.org") == "ad***@example.org"


def test_role_enum_is_the_only_role_registry():
    assert {role.value for role in Role} == {"admin", "instructor", "learner"}
    assert set(domain.__all__) == {"Role", "DEFAULT_ROLE", "User", "username_from", "mask_email"}
    assert all(hasattr(domain, name) for name in domain.__all__)
