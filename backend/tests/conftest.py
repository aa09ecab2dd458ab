"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors), and
build the app from in-memory services so the suite runs without Postgres.
"""
import sys
from pathlib import Path

import pytest

# Ensure `backend.*` and the test helpers under `utils/` are importable.
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "backend" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from backend.identity_access.oidc import OIDCClient, OIDCConfig  # noqa: E402
from backend.identity_access.passwords import PasswordHasher  # noqa: E402
from backend.identity_access.stores import SessionStore  # noqa: E402
from backend.web.config import AppSettings  # noqa: E402
from backend.web.main import create_app  # noqa: E402
from backend.web.wiring import build_services  # noqa: E402
from utils.memory_repos import (  # noqa: E402
    InMemoryAdminRepo,
    InMemoryLearningRepo,
    InMemoryTeachingRepo,
    InMemoryUserRepo,
    MemoryBlobStore,
    MemoryDB,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_learnhub_env(monkeypatch: pytest.MonkeyPatch):
    """Keep env-driven toggles from a developer shell out of the suite."""
    for var in (
        "LEARNHUB_ENV",
        "DATABASE_URL",
        "SESSIONS_BACKEND",
        "STRICT_REGRADE",
        "STRICT_PROGRESS_BOUNDS",
        "FRONTEND_URL",
        "FRONTEND_URLS",
        "UPLOAD_DIR",
        "MAX_UPLOAD_BYTES",
        "BCRYPT_ROUNDS",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def memory_db() -> MemoryDB:
    return MemoryDB()


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def oidc_client() -> OIDCClient:
    return OIDCClient(
        OIDCConfig(
            client_id="learnhub-test",
            client_secret="test-secret",
            redirect_uri="http://localhost:4000/auth/google/callback",
        )
    )


@pytest.fixture
def services(settings, memory_db, blobs, oidc_client):
    return build_services(
        settings,
        users=InMemoryUserRepo(memory_db),
        session_store=SessionStore(),
        learning_repo=InMemoryLearningRepo(memory_db),
        teaching_repo=InMemoryTeachingRepo(memory_db),
        admin_repo=InMemoryAdminRepo(memory_db),
        blobs=blobs,
        hasher=PasswordHasher(4, allow_weak_rounds_for_tests=True),
        oidc=oidc_client,
    )


@pytest.fixture
def app(services):
    return create_app(services.settings, services=services)
