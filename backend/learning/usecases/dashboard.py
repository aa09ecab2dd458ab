"""Read-side use cases for the learner area (lists and the dashboard)."""

from __future__ import annotations

from typing import List, Protocol


class LearnerReadRepoProtocol(Protocol):
    async def list_assignments(self, learner_id: int) -> List[dict]:
        ...

    async def list_materials(self, learner_id: int) -> List[dict]:
        ...

    async def list_classes(self, learner_id: int) -> List[dict]:
        ...

    async def list_submissions(self, learner_id: int) -> List[dict]:
        ...

    async def list_progress(self, learner_id: int) -> List[dict]:
        ...


class LearnerDashboardUseCase:
    def __init__(self, repo: LearnerReadRepoProtocol) -> None:
        self._repo = repo

    async def execute(self, learner_id: int) -> dict:
        """Everything the learner home screen shows, in one payload.

        Content is visible through enrollment in the course or through a
        direct assignment to the learner. Progress lists one row per course
        the learner has a recorded value for.
        """
        return {
            "assignments": await self._repo.list_assignments(learner_id),
            "submissions": await self._repo.list_submissions(learner_id),
            "materials": await self._repo.list_materials(learner_id),
            "progress": await self._repo.list_progress(learner_id),
            "classes": await self._repo.list_classes(learner_id),
        }
