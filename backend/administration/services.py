"""Course administration use cases (admin role only).

Why:
    Signup always yields learners, so this is where instructors and admins
    come from. Role changes go through the closed `Role` enum; anything
    outside it is rejected before it reaches the store.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from backend.errors import NotFound
from backend.identity_access.domain import Role
from backend.identity_access.repo_db import UserRepoProtocol
from backend.storage.ports import Upload
from backend.teaching.services.content import ContentService, resolve_year, year_bounds
from backend.validation import optional_text, required_id, required_text

logger = logging.getLogger("learnhub.administration")


class AdminRepoProtocol(Protocol):
    async def create_course(self, *, title: str, description: Optional[str], created_by: int) -> dict:
        ...

    async def update_course(self, course_id: int, *, title: str, description: Optional[str]) -> Optional[dict]:
        ...

    async def delete_course(self, course_id: int) -> bool:
        ...

    async def assign_instructor(self, course_id: int, instructor_id: int) -> None:
        ...

    async def assign_learner(self, course_id: int, learner_id: int) -> None:
        ...

    async def list_courses(self) -> List[dict]:
        ...

    async def list_users(self) -> List[dict]:
        ...

    async def list_progress(self) -> List[dict]:
        ...

    async def attendance_by_week(self, start, end) -> List[dict]:
        ...


class AdminService:
    def __init__(self, repo: AdminRepoProtocol, users: UserRepoProtocol, content: ContentService) -> None:
        self._repo = repo
        self._users = users
        self._content = content

    async def create_course(self, *, admin_id: int, title: object, description: object = None) -> dict:
        course = await self._repo.create_course(
            title=required_text(title, "title_required"),
            description=optional_text(description, "invalid_description"),
            created_by=admin_id,
        )
        logger.info("Course %s created", course.get("id"))
        return course

    async def update_course(self, course_id: object, *, title: object, description: object = None) -> dict:
        updated = await self._repo.update_course(
            required_id(course_id, "invalid_course_id"),
            title=required_text(title, "title_required"),
            description=optional_text(description, "invalid_description"),
        )
        if updated is None:
            raise NotFound("course_not_found", "Course not found")
        return updated

    async def delete_course(self, course_id: object) -> None:
        if not await self._repo.delete_course(required_id(course_id, "invalid_course_id")):
            raise NotFound("course_not_found", "Course not found")

    async def assign_instructor(self, course_id: object, instructor_id: object) -> None:
        await self._repo.assign_instructor(
            required_id(course_id, "invalid_course_id"),
            required_id(instructor_id, "invalid_instructor_id"),
        )

    async def assign_learner(self, course_id: object, learner_id: object) -> None:
        await self._repo.assign_learner(
            required_id(course_id, "invalid_course_id"),
            required_id(learner_id, "invalid_learner_id"),
        )

    async def assign_role(self, user_id: object, role: object) -> Role:
        """Set a user's role. Accepts a role name or a legacy role id."""
        target = required_id(user_id, "invalid_user_id")
        parsed = Role.parse(role)
        if not await self._users.set_role(target, parsed):
            raise NotFound("user_not_found", "User not found")
        logger.info("User %s assigned role %s", target, parsed.value)
        return parsed

    async def create_material(
        self,
        *,
        admin_id: int,
        course_id: object,
        title: object,
        description: object = None,
        link: object = None,
        upload: Optional[Upload] = None,
    ) -> dict:
        return await self._content.create_material(
            instructor_id=admin_id,
            course_id=course_id,
            title=title,
            description=description,
            link=link,
            upload=upload,
        )

    async def dashboard(self) -> dict:
        users = await self._repo.list_users()
        for row in users:
            role = Role.from_role_id(row.get("role_id"))
            row["role"] = role.value if role else None
        return {
            "courses": await self._repo.list_courses(),
            "users": users,
            "progress": await self._repo.list_progress(),
        }

    async def attendance_for_year(self, year: object) -> List[dict]:
        start, end = year_bounds(resolve_year(year))
        return await self._repo.attendance_by_week(start, end)


__all__ = ["AdminRepoProtocol", "AdminService"]
