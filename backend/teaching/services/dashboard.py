"""Instructor dashboard read model."""

from __future__ import annotations

from typing import Dict, List, Protocol, Sequence


class InstructorDashboardRepoProtocol(Protocol):
    async def list_courses(self, instructor_id: int) -> List[dict]:
        ...

    async def learners_by_course(self, course_ids: Sequence[int]) -> Dict[int, List[dict]]:
        ...

    async def recent_attendance(self, instructor_id: int, limit: int = 500) -> List[dict]:
        ...

    async def list_materials(self, instructor_id: int) -> List[dict]:
        ...

    async def list_submissions(self, instructor_id: int) -> List[dict]:
        ...

    async def list_classes(self, instructor_id: int) -> List[dict]:
        ...


class InstructorDashboardService:
    def __init__(self, repo: InstructorDashboardRepoProtocol) -> None:
        self._repo = repo

    async def build(self, instructor_id: int) -> dict:
        """Courses the instructor is assigned to plus their rosters and recent activity.

        `learnersByCourse` maps course id to the enrolled learners, each with
        the current progress (0 when nothing was recorded yet).
        """
        courses = await self._repo.list_courses(instructor_id)
        learners = await self._repo.learners_by_course([c["id"] for c in courses])
        return {
            "courses": courses,
            "learnersByCourse": learners,
            "attendance": await self._repo.recent_attendance(instructor_id),
            "materials": await self._repo.list_materials(instructor_id),
            "submissions": await self._repo.list_submissions(instructor_id),
            "classes": await self._repo.list_classes(instructor_id),
        }


__all__ = ["InstructorDashboardService"]
