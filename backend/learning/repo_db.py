"""Postgres-backed repository for the Learning context (learner-facing reads and submissions)."""

from __future__ import annotations

import logging
from typing import List, Optional

from psycopg import errors as pg_errors
from psycopg_pool import AsyncConnectionPool

from backend.db import fetch_all, store_errors
from backend.errors import DuplicateSubmission, InternalError, NotFound
from backend.learning.domain import SUBMISSION_COLUMNS, Submission, submission_from_row

logger = logging.getLogger("learnhub.learning.repo")

# A learner sees course content through enrollment or a direct assignment.
_LEARNER_ASSIGNMENTS_SQL = """
    select distinct a.*
      from assignments a
      left join course_learners cl on cl.course_id = a.course_id
     where cl.learner_id = %s or a.assigned_learner_id = %s
     order by a.due_date asc nulls last, a.id asc
"""

_LEARNER_MATERIALS_SQL = """
    select distinct m.*, c.title as course_title, ui.username as instructor_name,
           u.username as assigned_username
      from materials m
      left join courses c on c.id = m.course_id
      left join users ui on ui.id = m.instructor_id
      left join users u on u.id = m.assigned_learner_id
      left join course_learners cl on cl.course_id = m.course_id
     where m.assigned_learner_id = %s or cl.learner_id = %s
     order by m.created_at desc
"""

_LEARNER_CLASSES_SQL = """
    select distinct cl.*, c.title as course_title, ui.username as instructor_name
      from classes cl
      left join courses c on c.id = cl.course_id
      left join users ui on ui.id = cl.instructor_id
      left join course_learners cln on cln.course_id = cl.course_id
     where cl.learner_id = %s or cln.learner_id = %s
     order by cl.scheduled_at desc nulls last, cl.created_at desc
"""


class DBLearningRepo:
    """Persistence adapter used by Learning use cases."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def create_submission(
        self, *, assignment_id: int, learner_id: int, file_path: Optional[str]
    ) -> Submission:
        """Insert the (assignment, learner) submission.

        The unique index on (assignment_id, learner_id) decides races: the
        loser gets `DuplicateSubmission` and no row is written.
        """
        async with store_errors("submissions.create"):
            try:
                async with self._pool.connection() as conn:
                    cur = await conn.execute(
                        f"""
                        insert into submissions (assignment_id, learner_id, file_path)
                        values (%s, %s, %s)
                        returning {SUBMISSION_COLUMNS}
                        """,
                        (assignment_id, learner_id, file_path),
                    )
                    row = await cur.fetchone()
            except pg_errors.UniqueViolation as exc:
                raise DuplicateSubmission(
                    "duplicate_submission",
                    "You have already submitted this assignment and cannot submit again.",
                ) from exc
            except pg_errors.ForeignKeyViolation as exc:
                raise NotFound("assignment_not_found", "Assignment not found") from exc
        if not row:
            raise InternalError()
        return submission_from_row(row)

    async def list_assignments(self, learner_id: int) -> List[dict]:
        return await fetch_all(
            self._pool, "learning.assignments", _LEARNER_ASSIGNMENTS_SQL, (learner_id, learner_id)
        )

    async def list_materials(self, learner_id: int) -> List[dict]:
        return await fetch_all(
            self._pool, "learning.materials", _LEARNER_MATERIALS_SQL, (learner_id, learner_id)
        )

    async def list_classes(self, learner_id: int) -> List[dict]:
        return await fetch_all(
            self._pool, "learning.classes", _LEARNER_CLASSES_SQL, (learner_id, learner_id)
        )

    async def list_submissions(self, learner_id: int) -> List[dict]:
        return await fetch_all(
            self._pool,
            "learning.submissions",
            """
            select s.*, a.title as assignment_title, a.course_id
              from submissions s
              left join assignments a on a.id = s.assignment_id
             where s.learner_id = %s
             order by s.submitted_at desc
            """,
            (learner_id,),
        )

    async def list_progress(self, learner_id: int) -> List[dict]:
        return await fetch_all(
            self._pool,
            "learning.progress",
            """
            select cp.course_id, cp.progress, cp.updated_at, c.title as course_title
              from course_progress cp
              left join courses c on c.id = cp.course_id
             where cp.learner_id = %s
            """,
            (learner_id,),
        )


__all__ = ["DBLearningRepo"]
