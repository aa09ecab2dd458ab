"""
Application service wiring.

Why:
    Request handlers reach every collaborator through one `AppServices`
    object stored on `app.state`. Production builds it from the shared
    Postgres pool in the app lifespan; tests build it from in-memory fakes.
    Either way there are no module-level singletons to patch.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Optional

from psycopg_pool import AsyncConnectionPool

from backend.administration.repo_db import DBAdminRepo
from backend.administration.services import AdminService
from backend.db import open_pool
from backend.identity_access.oidc import OIDCClient, OIDCConfig
from backend.identity_access.passwords import PasswordHasher
from backend.identity_access.repo_db import DBUserRepo, UserRepoProtocol
from backend.identity_access.resolver import IdentityResolver
from backend.identity_access.sessions import SessionManager
from backend.identity_access.stores import SessionStore, SessionStoreProtocol, StateStore
from backend.identity_access.stores_db import DBSessionStore
from backend.learning.repo_db import DBLearningRepo
from backend.learning.usecases import LearnerDashboardUseCase, SubmitAssignmentUseCase
from backend.storage.local import LocalDiskBlobStore
from backend.storage.ports import BlobStore
from backend.teaching.repo_db import DBTeachingRepo
from backend.teaching.services.content import ContentService
from backend.teaching.services.dashboard import InstructorDashboardService
from backend.teaching.services.grading import GradingService
from backend.teaching.services.progress import ProgressService
from backend.web.config import AppSettings

logger = logging.getLogger("learnhub.web")


@dataclass
class AppServices:
    settings: AppSettings
    users: UserRepoProtocol
    sessions: SessionManager
    resolver: IdentityResolver
    oidc: OIDCClient
    states: StateStore
    blobs: BlobStore
    learning: Any
    submit: SubmitAssignmentUseCase
    learner_dashboard: LearnerDashboardUseCase
    content: ContentService
    grading: GradingService
    progress: ProgressService
    instructor_dashboard: InstructorDashboardService
    admin: AdminService


def oidc_config_from(settings: AppSettings) -> OIDCConfig:
    return OIDCConfig(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_callback_url,
    )


def build_services(
    settings: AppSettings,
    *,
    users: UserRepoProtocol,
    session_store: SessionStoreProtocol,
    learning_repo: Any,
    teaching_repo: Any,
    admin_repo: Any,
    blobs: Optional[BlobStore] = None,
    hasher: Optional[PasswordHasher] = None,
    oidc: Optional[OIDCClient] = None,
) -> AppServices:
    blob_store = blobs or LocalDiskBlobStore(settings.upload_dir, max_bytes=settings.max_upload_bytes)
    content = ContentService(teaching_repo, blob_store)
    return AppServices(
        settings=settings,
        users=users,
        sessions=SessionManager(session_store, users),
        resolver=IdentityResolver(users, hasher),
        oidc=oidc or OIDCClient(oidc_config_from(settings)),
        states=StateStore(),
        blobs=blob_store,
        learning=learning_repo,
        submit=SubmitAssignmentUseCase(learning_repo, blob_store),
        learner_dashboard=LearnerDashboardUseCase(learning_repo),
        content=content,
        grading=GradingService(teaching_repo, strict_regrade=settings.strict_regrade),
        progress=ProgressService(teaching_repo, strict_bounds=settings.strict_progress_bounds),
        instructor_dashboard=InstructorDashboardService(teaching_repo),
        admin=AdminService(admin_repo, users, content),
    )


async def open_db_services(settings: AppSettings) -> tuple[AppServices, AsyncConnectionPool]:
    """Open the shared pool and build Postgres-backed services on top of it.

    The caller owns the returned pool and must close it on shutdown.
    """
    pool = await open_pool(settings.database_url)
    users = DBUserRepo(pool)
    if settings.sessions_backend == "db":
        session_store: SessionStoreProtocol = DBSessionStore(pool)
    else:
        session_store = SessionStore()
    logger.info("Session backend: %s", settings.sessions_backend)
    services = build_services(
        settings,
        users=users,
        session_store=session_store,
        learning_repo=DBLearningRepo(pool),
        teaching_repo=DBTeachingRepo(pool),
        admin_repo=DBAdminRepo(pool),
    )
    return services, pool


__all__ = ["AppServices", "build_services", "oidc_config_from", "open_db_services"]
