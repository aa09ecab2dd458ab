"""Teaching content service layer (assignments, materials, classes, attendance).

Why:
    Encapsulates instructor write use cases so that web adapters remain
    framework-free and validation can be unit-tested without FastAPI.
"""

from __future__ import annotations

from datetime import date, datetime
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from backend.errors import ValidationError
from backend.storage.ports import BlobStore, Upload
from backend.validation import (
    optional_datetime,
    optional_id,
    optional_text,
    required_date,
    required_id,
    required_text,
)

logger = logging.getLogger("learnhub.teaching.content")


class ContentRepoProtocol(Protocol):
    async def create_assignment(
        self,
        *,
        course_id: int,
        instructor_id: int,
        title: str,
        description: Optional[str],
        file_path: Optional[str],
        due_date: Optional[datetime],
        assigned_learner_id: Optional[int],
    ) -> dict:
        ...

    async def create_material(
        self,
        *,
        course_id: int,
        instructor_id: int,
        title: str,
        description: Optional[str],
        file_path: Optional[str],
        link: Optional[str],
        assigned_learner_id: Optional[int],
    ) -> dict:
        ...

    async def create_class(
        self,
        *,
        course_id: int,
        instructor_id: int,
        learner_id: Optional[int],
        meet_link: str,
        scheduled_at: Optional[datetime],
    ) -> dict:
        ...

    async def list_classes(self, instructor_id: int) -> List[dict]:
        ...

    async def insert_attendance(
        self,
        *,
        course_id: int,
        instructor_id: int,
        learner_id: int,
        day: date,
        status: str,
        notes: Optional[str],
    ) -> None:
        ...

    async def attendance_by_week(self, instructor_id: int, start: date, end: date) -> List[dict]:
        ...


def resolve_year(value: object, *, today: Optional[date] = None) -> int:
    """Parse the `year` query parameter; anything unusable means the current year."""
    current = (today or date.today()).year
    if isinstance(value, int) and not isinstance(value, bool):
        year = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        year = int(value.strip())
    else:
        return current
    if not (1 <= year <= 9998):
        return current
    return year


def year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year + 1, 1, 1)


class ContentService:
    def __init__(self, repo: ContentRepoProtocol, blobs: BlobStore) -> None:
        self._repo = repo
        self._blobs = blobs

    async def _with_upload(
        self, upload: Optional[Upload], write: Callable[[Optional[str]], Awaitable[Any]]
    ) -> Any:
        """Store the optional file, then run `write`; drop the file if the write fails."""
        file_ref: Optional[str] = None
        if upload is not None:
            file_ref = await self._blobs.store(upload.stream, upload.filename)
        try:
            return await write(file_ref)
        except Exception:
            if file_ref:
                await self._blobs.discard(file_ref)
            raise

    async def create_assignment(
        self,
        *,
        instructor_id: int,
        course_id: object,
        title: object,
        description: object = None,
        due_date: object = None,
        assigned_learner_id: object = None,
        upload: Optional[Upload] = None,
    ) -> dict:
        course = required_id(course_id, "invalid_course_id")
        clean_title = required_text(title, "invalid_title")
        clean_description = optional_text(description, "invalid_description")
        due = optional_datetime(due_date, "invalid_due_date")
        learner = optional_id(assigned_learner_id, "invalid_learner_id")

        async def write(file_ref: Optional[str]) -> dict:
            return await self._repo.create_assignment(
                course_id=course,
                instructor_id=instructor_id,
                title=clean_title,
                description=clean_description,
                file_path=file_ref,
                due_date=due,
                assigned_learner_id=learner,
            )

        assignment = await self._with_upload(upload, write)
        logger.info("Assignment %s created in course %s", assignment.get("id"), course)
        return assignment

    async def create_material(
        self,
        *,
        instructor_id: int,
        course_id: object,
        title: object,
        description: object = None,
        link: object = None,
        assigned_learner_id: object = None,
        upload: Optional[Upload] = None,
    ) -> dict:
        """Create a material; `instructor_id` is the author (an admin for admin uploads)."""
        course = required_id(course_id, "invalid_course_id")
        clean_title = required_text(title, "invalid_title")
        clean_description = optional_text(description, "invalid_description")
        clean_link = optional_text(link, "invalid_link")
        learner = optional_id(assigned_learner_id, "invalid_learner_id")

        async def write(file_ref: Optional[str]) -> dict:
            return await self._repo.create_material(
                course_id=course,
                instructor_id=instructor_id,
                title=clean_title,
                description=clean_description,
                file_path=file_ref,
                link=clean_link,
                assigned_learner_id=learner,
            )

        return await self._with_upload(upload, write)

    async def create_class(
        self,
        *,
        instructor_id: int,
        course_id: object,
        meet_link: object,
        learner_id: object = None,
        scheduled_at: object = None,
    ) -> dict:
        if not course_id or not meet_link:
            raise ValidationError("missing_fields", "course_id and meet_link required")
        return await self._repo.create_class(
            course_id=required_id(course_id, "invalid_course_id"),
            instructor_id=instructor_id,
            learner_id=optional_id(learner_id, "invalid_learner_id"),
            meet_link=required_text(meet_link, "invalid_meet_link"),
            scheduled_at=optional_datetime(scheduled_at, "invalid_scheduled_at"),
        )

    async def list_classes(self, instructor_id: int) -> List[dict]:
        return await self._repo.list_classes(instructor_id)

    async def record_attendance(
        self, *, instructor_id: int, course_id: object, records: object
    ) -> int:
        """Write one attendance row per record and return how many were written.

        The whole batch is validated first. Rows are then inserted one by one
        without a surrounding transaction: a failure part-way leaves the rows
        already written in place.
        """
        if not isinstance(records, list):
            raise ValidationError("invalid_records", "Records must be array")
        course = required_id(course_id, "invalid_course_id")
        parsed = [self._parse_record(record) for record in records]
        for learner, day, status, notes in parsed:
            await self._repo.insert_attendance(
                course_id=course,
                instructor_id=instructor_id,
                learner_id=learner,
                day=day,
                status=status,
                notes=notes,
            )
        return len(parsed)

    @staticmethod
    def _parse_record(record: object) -> tuple[int, date, str, Optional[str]]:
        if not isinstance(record, dict):
            raise ValidationError("invalid_records", "Each record must be an object")
        return (
            required_id(record.get("learner_id"), "invalid_learner_id"),
            required_date(record.get("date"), "invalid_date"),
            required_text(record.get("status"), "invalid_status"),
            optional_text(record.get("notes"), "invalid_notes"),
        )

    async def attendance_for_year(self, instructor_id: int, year: object) -> List[dict]:
        start, end = year_bounds(resolve_year(year))
        return await self._repo.attendance_by_week(instructor_id, start, end)


__all__ = ["ContentService", "resolve_year", "year_bounds"]
