"""Progress service: one current percentage per (course, learner)."""

from __future__ import annotations

import logging
from typing import Protocol

from backend.errors import ValidationError
from backend.validation import fits_int32, is_number, required_id, round_half_up

logger = logging.getLogger("learnhub.teaching.progress")

PROGRESS_MESSAGE = "Progress must be a number 0-100"


class ProgressRepoProtocol(Protocol):
    async def upsert_progress(self, *, course_id: int, learner_id: int, progress: int) -> dict:
        ...


class ProgressService:
    """Upsert course progress.

    By default only the type is checked (any JSON number); with
    `strict_bounds` values outside 0..100 are rejected as well. Fractions are
    stored rounded half-up; values that do not fit the integer column are
    always rejected. The upsert overwrites the previous value and refreshes
    `updated_at`; no history is kept.
    """

    def __init__(self, repo: ProgressRepoProtocol, *, strict_bounds: bool = False) -> None:
        self._repo = repo
        self._strict = strict_bounds

    async def set_progress(self, *, course_id: object, learner_id: object, progress: object) -> dict:
        course = required_id(course_id, "invalid_course_id")
        learner = required_id(learner_id, "invalid_learner_id")
        if not is_number(progress):
            raise ValidationError("invalid_progress", PROGRESS_MESSAGE)
        if self._strict and not (0 <= progress <= 100):
            raise ValidationError("invalid_progress", PROGRESS_MESSAGE)
        value = round_half_up(progress)
        if not fits_int32(value):
            raise ValidationError("invalid_progress", PROGRESS_MESSAGE)
        row = await self._repo.upsert_progress(course_id=course, learner_id=learner, progress=value)
        logger.info("Progress for course %s learner %s set to %s", course, learner, value)
        return row


__all__ = ["PROGRESS_MESSAGE", "ProgressService"]
