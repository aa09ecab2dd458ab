"""Postgres-backed repository for course administration."""

from __future__ import annotations

from datetime import date
import logging
from typing import List, Optional

from psycopg import errors as pg_errors
from psycopg_pool import AsyncConnectionPool

from backend.db import fetch_all, fetch_one, store_errors
from backend.errors import InternalError, NotFound

logger = logging.getLogger("learnhub.administration.repo")


class DBAdminRepo:
    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def create_course(self, *, title: str, description: Optional[str], created_by: int) -> dict:
        row = await fetch_one(
            self._pool,
            "courses.create",
            "insert into courses (title, description, created_by) values (%s, %s, %s) returning *",
            (title, description, created_by),
        )
        if not row:
            raise InternalError()
        return row

    async def update_course(self, course_id: int, *, title: str, description: Optional[str]) -> Optional[dict]:
        return await fetch_one(
            self._pool,
            "courses.update",
            "update courses set title = %s, description = %s where id = %s returning *",
            (title, description, course_id),
        )

    async def delete_course(self, course_id: int) -> bool:
        async with store_errors("courses.delete"):
            async with self._pool.connection() as conn:
                cur = await conn.execute("delete from courses where id = %s", (course_id,))
                return (cur.rowcount or 0) > 0

    async def _add_member(self, operation: str, query: str, course_id: int, user_id: int) -> None:
        async with store_errors(operation):
            try:
                async with self._pool.connection() as conn:
                    await conn.execute(query, (course_id, user_id))
            except pg_errors.ForeignKeyViolation as exc:
                raise NotFound("reference_not_found", "Course or user not found") from exc

    async def assign_instructor(self, course_id: int, instructor_id: int) -> None:
        await self._add_member(
            "courses.assign_instructor",
            "insert into course_instructors (course_id, instructor_id) values (%s, %s) on conflict do nothing",
            course_id,
            instructor_id,
        )

    async def assign_learner(self, course_id: int, learner_id: int) -> None:
        await self._add_member(
            "courses.assign_learner",
            "insert into course_learners (course_id, learner_id) values (%s, %s) on conflict do nothing",
            course_id,
            learner_id,
        )

    async def list_courses(self) -> List[dict]:
        return await fetch_all(self._pool, "courses.list", "select * from courses order by created_at desc")

    async def list_users(self) -> List[dict]:
        return await fetch_all(
            self._pool,
            "users.list",
            "select id, username, email, role_id from users order by created_at desc",
        )

    async def list_progress(self) -> List[dict]:
        return await fetch_all(
            self._pool,
            "progress.list",
            """
            select cp.course_id, cp.learner_id, cp.progress, cp.updated_at,
                   c.title as course_title, u.username, u.email
              from course_progress cp
              left join courses c on c.id = cp.course_id
              left join users u on u.id = cp.learner_id
             order by cp.updated_at desc
            """,
        )

    async def attendance_by_week(self, start: date, end: date) -> List[dict]:
        return await fetch_all(
            self._pool,
            "attendance.by_week_all",
            """
            select date_trunc('week', date) as week_start, course_id, instructor_id,
                   learner_id, status, count(*) as count
              from attendance
             where date >= %s and date < %s
             group by week_start, course_id, instructor_id, learner_id, status
             order by week_start desc
            """,
            (start, end),
        )


__all__ = ["DBAdminRepo"]
