"""Promote (or create) an administrator account.

Signup always yields learners, so the first admin has to be created out of
band. Existing users keep their credentials and only get `role_id = 1`; a
missing user is created with a bcrypt password.

Usage example:

    python -m backend.tools.bootstrap_admin --email admin@example.org
    python -m backend.tools.bootstrap_admin --email admin@example.org \
        --username admin --password-env LEARNHUB_ADMIN_PASSWORD

The DSN comes from --dsn or DATABASE_URL (local dev default otherwise).
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
from typing import Sequence

import psycopg

from backend.db import resolve_dsn, with_ssl
from backend.identity_access.domain import Role, mask_email, username_from
from backend.identity_access.passwords import hash_password_sync


logger = logging.getLogger("learnhub.tools.bootstrap_admin")


def _read_password(env_name: str | None) -> str:
    if env_name:
        value = os.getenv(env_name) or ""
        if not value:
            raise SystemExit(f"{env_name} is empty")
        return value
    first = getpass.getpass("New admin password: ")
    second = getpass.getpass("Repeat password: ")
    if not first or first != second:
        raise SystemExit("Passwords are empty or do not match")
    return first


def bootstrap_admin(
    conn: psycopg.Connection,
    *,
    email: str,
    username: str | None,
    password: str | None,
) -> str:
    """Promote or create the admin. Returns "promoted" or "created"."""
    email_n = email.strip().lower()
    with conn.cursor() as cur:
        cur.execute(
            "update users set role_id = %s where email = %s returning id",
            (Role.ADMIN.role_id, email_n),
        )
        if cur.fetchone():
            logger.info("Promoted %s to admin", mask_email(email_n))
            return "promoted"
        if not password:
            raise SystemExit("User does not exist; a password is required to create it")
        cur.execute(
            "insert into users (username, email, password, role_id) values (%s, %s, %s, %s)",
            (username_from(username, email_n), email_n, hash_password_sync(password), Role.ADMIN.role_id),
        )
    logger.info("Created admin %s", mask_email(email_n))
    return "created"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Promote or create a Learnhub admin user.")
    parser.add_argument("--email", required=True, help="Email of the admin account")
    parser.add_argument("--username", help="Username for a newly created account")
    parser.add_argument(
        "--password-env",
        help="Read the password for a new account from this environment variable (prompted otherwise)",
    )
    parser.add_argument("--dsn", help="Postgres DSN (defaults to DATABASE_URL)")
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="%(levelname)s %(message)s")

    dsn = with_ssl(resolve_dsn(args.dsn))
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute("select 1 from users where email = %s", (args.email.strip().lower(),))
            exists = cur.fetchone() is not None
        password = None if exists else _read_password(args.password_env)
        outcome = bootstrap_admin(conn, email=args.email, username=args.username, password=password)
        conn.commit()
    print(outcome)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
