"""Grading service: the submitted -> graded transition.

Why:
    Grade resolution has a fixed priority that must not drift between
    adapters, so it lives here as a pure function (`resolve_grade`) with the
    store interaction in `GradingService`.

Behavior:
    1) raw score and raw total both numeric and the total positive:
       both are rounded half-up and `percent = round(raw / total * 100)`;
    2) otherwise a numeric percent: `raw = percent`, `total = 100`;
    3) otherwise `ValidationError`.
    Grading always stamps `graded_at` and sets `locked`. Re-grading a locked
    submission overwrites it unless the service runs with `strict_regrade`.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional, Protocol

from backend.errors import ConflictError, NotFound, ValidationError
from backend.learning.domain import Submission
from backend.validation import fits_int32, is_number, optional_text, required_id, round_half_up

logger = logging.getLogger("learnhub.teaching.grading")

MISSING_GRADE_MESSAGE = "must provide grade or raw/total"
GRADE_RANGE_MESSAGE = "grade values are out of range"


class GradingRepoProtocol(Protocol):
    async def get_submission(self, submission_id: int) -> Optional[Submission]:
        ...

    async def save_grade(
        self,
        submission_id: int,
        *,
        grade: int,
        raw_score: int,
        raw_total: int,
        feedback: Optional[str],
        only_unlocked: bool = False,
    ) -> Optional[Submission]:
        ...


@dataclass(frozen=True)
class ResolvedGrade:
    percent: int
    raw_score: int
    raw_total: int


def _ensure_storable(*values: int) -> None:
    if not all(fits_int32(v) for v in values):
        raise ValidationError("invalid_grade", GRADE_RANGE_MESSAGE)


def resolve_grade(
    *, grade: object = None, raw_score: object = None, raw_total: object = None
) -> ResolvedGrade:
    if is_number(raw_score) and is_number(raw_total) and raw_total > 0:
        raw = round_half_up(raw_score)
        total = round_half_up(raw_total)
        if total > 0:
            _ensure_storable(raw, total)
            percent = round_half_up(raw / total * 100)
            _ensure_storable(percent)
            return ResolvedGrade(percent=percent, raw_score=raw, raw_total=total)
    if is_number(grade):
        percent = round_half_up(grade)
        _ensure_storable(percent)
        return ResolvedGrade(percent=percent, raw_score=percent, raw_total=100)
    raise ValidationError("invalid_grade", MISSING_GRADE_MESSAGE)


@dataclass
class GradeSubmissionInput:
    submission_id: object
    grade: object = None
    raw_score: object = None
    raw_total: object = None
    feedback: object = None


class GradingService:
    def __init__(self, repo: GradingRepoProtocol, *, strict_regrade: bool = False) -> None:
        self._repo = repo
        self._strict = strict_regrade

    @property
    def strict_regrade(self) -> bool:
        return self._strict

    async def grade(self, req: GradeSubmissionInput) -> Submission:
        submission_id = required_id(req.submission_id, "invalid_submission_id")
        resolved = resolve_grade(grade=req.grade, raw_score=req.raw_score, raw_total=req.raw_total)
        feedback = optional_text(req.feedback, "invalid_feedback")

        saved = await self._repo.save_grade(
            submission_id,
            grade=resolved.percent,
            raw_score=resolved.raw_score,
            raw_total=resolved.raw_total,
            feedback=feedback,
            only_unlocked=self._strict,
        )
        if saved is not None:
            logger.info("Submission %s graded (%s%%)", submission_id, resolved.percent)
            return saved

        # Nothing updated: unknown id, or (strict mode) already locked.
        existing = await self._repo.get_submission(submission_id)
        if existing is None:
            raise NotFound("submission_not_found", "Submission not found")
        raise ConflictError("submission_locked", "Submission is already graded")


__all__ = [
    "GRADE_RANGE_MESSAGE",
    "GradeSubmissionInput",
    "GradingService",
    "MISSING_GRADE_MESSAGE",
    "ResolvedGrade",
    "resolve_grade",
]
