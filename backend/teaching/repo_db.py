"""Postgres-backed repository for the Teaching context (instructor writes, grading, progress)."""

from __future__ import annotations

from datetime import date, datetime
import logging
from typing import Any, Dict, List, Optional, Sequence

from psycopg import errors as pg_errors
from psycopg_pool import AsyncConnectionPool

from backend.db import fetch_all, fetch_one, store_errors
from backend.errors import InternalError, NotFound
from backend.learning.domain import SUBMISSION_COLUMNS, Submission, submission_from_row

logger = logging.getLogger("learnhub.teaching.repo")

_MATERIAL_DETAIL_SQL = """
    select m.*, c.title as course_title, u.username as assigned_username,
           ui.username as instructor_username
      from materials m
      left join courses c on c.id = m.course_id
      left join users u on u.id = m.assigned_learner_id
      left join users ui on ui.id = m.instructor_id
"""

_CLASS_DETAIL_SQL = """
    select cl.*, c.title as course_title, u.username as assigned_username,
           ui.username as instructor_username
      from classes cl
      left join courses c on c.id = cl.course_id
      left join users u on u.id = cl.learner_id
      left join users ui on ui.id = cl.instructor_id
"""


class DBTeachingRepo:
    """Persistence adapter used by Teaching services."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def _insert_returning(self, operation: str, query: str, params: Sequence[Any]) -> dict:
        async with store_errors(operation):
            try:
                async with self._pool.connection() as conn:
                    cur = await conn.execute(query, params)
                    row = await cur.fetchone()
            except pg_errors.ForeignKeyViolation as exc:
                # Unknown course or user id in the payload.
                raise NotFound("reference_not_found", "Referenced course or user not found") from exc
        if not row:
            raise InternalError()
        return row

    # --- content --------------------------------------------------------------

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
        return await self._insert_returning(
            "assignments.create",
            """
            insert into assignments
                (course_id, instructor_id, title, description, file_path, due_date, assigned_learner_id)
            values (%s, %s, %s, %s, %s, %s, %s)
            returning *
            """,
            (course_id, instructor_id, title, description, file_path, due_date, assigned_learner_id),
        )

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
        """Insert a material and return it joined with course/user names."""
        row = await self._insert_returning(
            "materials.create",
            """
            insert into materials
                (course_id, instructor_id, title, description, file_path, link, assigned_learner_id)
            values (%s, %s, %s, %s, %s, %s, %s)
            returning id
            """,
            (course_id, instructor_id, title, description, file_path, link, assigned_learner_id),
        )
        detail = await fetch_one(
            self._pool, "materials.detail", _MATERIAL_DETAIL_SQL + " where m.id = %s", (row["id"],)
        )
        if not detail:
            raise InternalError()
        return detail

    async def create_class(
        self,
        *,
        course_id: int,
        instructor_id: int,
        learner_id: Optional[int],
        meet_link: str,
        scheduled_at: Optional[datetime],
    ) -> dict:
        row = await self._insert_returning(
            "classes.create",
            """
            insert into classes (course_id, instructor_id, learner_id, meet_link, scheduled_at)
            values (%s, %s, %s, %s, %s)
            returning id
            """,
            (course_id, instructor_id, learner_id, meet_link, scheduled_at),
        )
        detail = await fetch_one(
            self._pool, "classes.detail", _CLASS_DETAIL_SQL + " where cl.id = %s", (row["id"],)
        )
        if not detail:
            raise InternalError()
        return detail

    async def list_classes(self, instructor_id: int) -> List[dict]:
        return await fetch_all(
            self._pool,
            "classes.list",
            _CLASS_DETAIL_SQL
            + " where cl.instructor_id = %s order by cl.scheduled_at desc nulls last, cl.created_at desc",
            (instructor_id,),
        )

    async def list_materials(self, instructor_id: int) -> List[dict]:
        return await fetch_all(
            self._pool,
            "materials.list",
            _MATERIAL_DETAIL_SQL + " where m.instructor_id = %s order by m.created_at desc",
            (instructor_id,),
        )

    # --- attendance -----------------------------------------------------------

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
        await self._insert_returning(
            "attendance.insert",
            """
            insert into attendance (course_id, instructor_id, learner_id, date, status, notes)
            values (%s, %s, %s, %s, %s, %s)
            returning id
            """,
            (course_id, instructor_id, learner_id, day, status, notes),
        )

    async def attendance_by_week(self, instructor_id: int, start: date, end: date) -> List[dict]:
        return await fetch_all(
            self._pool,
            "attendance.by_week",
            """
            select date_trunc('week', date) as week_start, learner_id, status, count(*) as count
              from attendance
             where instructor_id = %s and date >= %s and date < %s
             group by week_start, learner_id, status
             order by week_start desc
            """,
            (instructor_id, start, end),
        )

    async def recent_attendance(self, instructor_id: int, limit: int = 500) -> List[dict]:
        return await fetch_all(
            self._pool,
            "attendance.recent",
            "select * from attendance where instructor_id = %s order by date desc limit %s",
            (instructor_id, limit),
        )

    # --- grading --------------------------------------------------------------

    async def get_submission(self, submission_id: int) -> Optional[Submission]:
        row = await fetch_one(
            self._pool,
            "submissions.get",
            f"select {SUBMISSION_COLUMNS} from submissions where id = %s",
            (submission_id,),
        )
        return submission_from_row(row) if row else None

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
        """Write the grade and lock the submission.

        With `only_unlocked`, an already locked row is left untouched and
        None is returned, same as for an unknown id.
        """
        row = await fetch_one(
            self._pool,
            "submissions.grade",
            f"""
            update submissions
               set grade = %s, raw_score = %s, raw_total = %s, feedback = %s,
                   graded_at = now(), locked = true
             where id = %s and (%s = false or locked = false)
            returning {SUBMISSION_COLUMNS}
            """,
            (grade, raw_score, raw_total, feedback, submission_id, only_unlocked),
        )
        return submission_from_row(row) if row else None

    async def list_submissions(self, instructor_id: int) -> List[dict]:
        return await fetch_all(
            self._pool,
            "submissions.list_for_instructor",
            """
            select s.*, a.title as assignment_title
              from submissions s
              join assignments a on a.id = s.assignment_id
             where a.instructor_id = %s
             order by s.submitted_at desc
            """,
            (instructor_id,),
        )

    # --- progress -------------------------------------------------------------

    async def upsert_progress(self, *, course_id: int, learner_id: int, progress: int) -> dict:
        return await self._insert_returning(
            "progress.upsert",
            """
            insert into course_progress (course_id, learner_id, progress, updated_at)
            values (%s, %s, %s, now())
            on conflict (course_id, learner_id)
            do update set progress = excluded.progress, updated_at = now()
            returning course_id, learner_id, progress, updated_at
            """,
            (course_id, learner_id, progress),
        )

    # --- dashboard ------------------------------------------------------------

    async def list_courses(self, instructor_id: int) -> List[dict]:
        return await fetch_all(
            self._pool,
            "courses.list_for_instructor",
            """
            select c.*
              from courses c
              join course_instructors ci on ci.course_id = c.id
             where ci.instructor_id = %s
             order by c.id
            """,
            (instructor_id,),
        )

    async def learners_by_course(self, course_ids: Sequence[int]) -> Dict[int, List[dict]]:
        """Roster per course with each learner's progress (0 when none recorded)."""
        grouped: Dict[int, List[dict]] = {}
        if not course_ids:
            return grouped
        rows = await fetch_all(
            self._pool,
            "courses.learners",
            """
            select cl.course_id, u.id as learner_id, u.username, u.email, cp.progress
              from course_learners cl
              join users u on u.id = cl.learner_id
              left join course_progress cp
                on cp.course_id = cl.course_id and cp.learner_id = u.id
             where cl.course_id = any(%s)
             order by cl.course_id, u.id
            """,
            (list(course_ids),),
        )
        for row in rows:
            grouped.setdefault(row["course_id"], []).append(
                {
                    "learner_id": row["learner_id"],
                    "username": row["username"],
                    "email": row["email"],
                    "progress": row["progress"] or 0,
                }
            )
        return grouped


__all__ = ["DBTeachingRepo"]
