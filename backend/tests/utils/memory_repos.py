"""
In-memory repositories implementing the store protocols for unit/API tests.

All repos share one `MemoryDB` so cross-context flows (admin creates a
course, instructor posts an assignment, learner submits) behave like they do
against Postgres, including the uniqueness rules the code relies on.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
import itertools
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from backend.errors import ConflictError, DuplicateSubmission, NotFound
from backend.identity_access.domain import Role, User
from backend.learning.domain import Submission


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FakeClock:
    """Settable clock usable wherever `time.time` is accepted."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class MemoryDB:
    users: Dict[int, User] = field(default_factory=dict)
    courses: Dict[int, dict] = field(default_factory=dict)
    course_instructors: set = field(default_factory=set)
    course_learners: set = field(default_factory=set)
    assignments: Dict[int, dict] = field(default_factory=dict)
    materials: Dict[int, dict] = field(default_factory=dict)
    classes: Dict[int, dict] = field(default_factory=dict)
    attendance: List[dict] = field(default_factory=list)
    submissions: Dict[int, Submission] = field(default_factory=dict)
    progress: Dict[Tuple[int, int], dict] = field(default_factory=dict)
    now: Callable[[], datetime] = _utcnow
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def next_id(self) -> int:
        return next(self._ids)

    def username(self, user_id: Optional[int]) -> Optional[str]:
        user = self.users.get(user_id) if user_id is not None else None
        return user.username if user else None

    def course_title(self, course_id: Optional[int]) -> Optional[str]:
        course = self.courses.get(course_id) if course_id is not None else None
        return course["title"] if course else None

    def require_course(self, course_id: int) -> None:
        if course_id not in self.courses:
            raise NotFound("reference_not_found", "Referenced course or user not found")

    def enrolled(self, learner_id: int) -> set:
        return {c for (c, l) in self.course_learners if l == learner_id}


class InMemoryUserRepo:
    def __init__(self, db: Optional[MemoryDB] = None) -> None:
        self.db = db or MemoryDB()
        self.attach_calls = 0

    async def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.users.get(user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.db.users.values() if u.email == email), None)

    async def find_by_google_id_or_email(self, google_id: str, email: str) -> Optional[User]:
        by_google = [u for u in self.db.users.values() if u.google_id == google_id]
        if by_google:
            return by_google[0]
        return await self.get_by_email(email)

    async def create_user(
        self,
        *,
        username: str,
        email: str,
        role: Role,
        password_hash: Optional[str] = None,
        google_id: Optional[str] = None,
    ) -> User:
        for existing in self.db.users.values():
            if existing.email == email or (google_id and existing.google_id == google_id):
                raise ConflictError("user_exists", "User already exists")
        user = User(
            id=self.db.next_id(),
            username=username,
            email=email,
            role=role,
            password_hash=password_hash,
            google_id=google_id,
            created_at=self.db.now(),
        )
        self.db.users[user.id] = user
        return user

    async def attach_google_id(self, user_id: int, google_id: str) -> None:
        self.attach_calls += 1
        user = self.db.users.get(user_id)
        if user is not None and user.google_id is None:
            user.google_id = google_id

    async def set_role(self, user_id: int, role: Role) -> bool:
        user = self.db.users.get(user_id)
        if user is None:
            return False
        user.role = role
        return True


class InMemoryLearningRepo:
    def __init__(self, db: MemoryDB) -> None:
        self.db = db

    async def create_submission(
        self, *, assignment_id: int, learner_id: int, file_path: Optional[str]
    ) -> Submission:
        if assignment_id not in self.db.assignments:
            raise NotFound("assignment_not_found", "Assignment not found")
        for sub in self.db.submissions.values():
            if sub.assignment_id == assignment_id and sub.learner_id == learner_id:
                raise DuplicateSubmission(
                    "duplicate_submission",
                    "You have already submitted this assignment and cannot submit again.",
                )
        sub = Submission(
            id=self.db.next_id(),
            assignment_id=assignment_id,
            learner_id=learner_id,
            file_path=file_path,
            submitted_at=self.db.now(),
        )
        self.db.submissions[sub.id] = sub
        return sub

    def _visible(self, row: dict, learner_id: int, learner_key: str) -> bool:
        return row.get(learner_key) == learner_id or row["course_id"] in self.db.enrolled(learner_id)

    async def list_assignments(self, learner_id: int) -> List[dict]:
        return [dict(a) for a in self.db.assignments.values() if self._visible(a, learner_id, "assigned_learner_id")]

    async def list_materials(self, learner_id: int) -> List[dict]:
        return [
            dict(m, course_title=self.db.course_title(m["course_id"]), instructor_name=self.db.username(m["instructor_id"]))
            for m in self.db.materials.values()
            if self._visible(m, learner_id, "assigned_learner_id")
        ]

    async def list_classes(self, learner_id: int) -> List[dict]:
        return [
            dict(c, course_title=self.db.course_title(c["course_id"]), instructor_name=self.db.username(c["instructor_id"]))
            for c in self.db.classes.values()
            if self._visible(c, learner_id, "learner_id")
        ]

    async def list_submissions(self, learner_id: int) -> List[dict]:
        rows = []
        for sub in self.db.submissions.values():
            if sub.learner_id != learner_id:
                continue
            assignment = self.db.assignments.get(sub.assignment_id, {})
            rows.append(dict(sub.to_dict(), assignment_title=assignment.get("title"), course_id=assignment.get("course_id")))
        return rows

    async def list_progress(self, learner_id: int) -> List[dict]:
        return [
            dict(row, course_title=self.db.course_title(row["course_id"]))
            for (course_id, lid), row in self.db.progress.items()
            if lid == learner_id
        ]


class InMemoryTeachingRepo:
    def __init__(self, db: MemoryDB) -> None:
        self.db = db
        self.fail_attendance_after: Optional[int] = None

    async def create_assignment(self, **fields) -> dict:
        self.db.require_course(fields["course_id"])
        row = dict(fields, id=self.db.next_id(), created_at=self.db.now())
        self.db.assignments[row["id"]] = row
        return dict(row)

    def _material_detail(self, row: dict) -> dict:
        return dict(
            row,
            course_title=self.db.course_title(row["course_id"]),
            assigned_username=self.db.username(row.get("assigned_learner_id")),
            instructor_username=self.db.username(row["instructor_id"]),
        )

    async def create_material(self, **fields) -> dict:
        self.db.require_course(fields["course_id"])
        row = dict(fields, id=self.db.next_id(), created_at=self.db.now())
        self.db.materials[row["id"]] = row
        return self._material_detail(row)

    def _class_detail(self, row: dict) -> dict:
        return dict(
            row,
            course_title=self.db.course_title(row["course_id"]),
            assigned_username=self.db.username(row.get("learner_id")),
            instructor_username=self.db.username(row["instructor_id"]),
        )

    async def create_class(self, **fields) -> dict:
        self.db.require_course(fields["course_id"])
        row = dict(fields, id=self.db.next_id(), created_at=self.db.now())
        self.db.classes[row["id"]] = row
        return self._class_detail(row)

    async def list_classes(self, instructor_id: int) -> List[dict]:
        return [self._class_detail(c) for c in self.db.classes.values() if c["instructor_id"] == instructor_id]

    async def list_materials(self, instructor_id: int) -> List[dict]:
        return [self._material_detail(m) for m in self.db.materials.values() if m["instructor_id"] == instructor_id]

    async def insert_attendance(self, *, course_id, instructor_id, learner_id, day, status, notes) -> None:
        if self.fail_attendance_after is not None and len(self.db.attendance) >= self.fail_attendance_after:
            raise RuntimeError("store went away")
        self.db.attendance.append(
            {
                "id": self.db.next_id(),
                "course_id": course_id,
                "instructor_id": instructor_id,
                "learner_id": learner_id,
                "date": day,
                "status": status,
                "notes": notes,
            }
        )

    async def attendance_by_week(self, instructor_id: int, start: date, end: date) -> List[dict]:
        counts: Dict[tuple, int] = {}
        for row in self.db.attendance:
            if row["instructor_id"] != instructor_id or not (start <= row["date"] < end):
                continue
            week = row["date"].toordinal() - row["date"].weekday()
            key = (date.fromordinal(week), row["learner_id"], row["status"])
            counts[key] = counts.get(key, 0) + 1
        return [
            {"week_start": k[0], "learner_id": k[1], "status": k[2], "count": v}
            for k, v in sorted(counts.items(), key=lambda kv: kv[0][0], reverse=True)
        ]

    async def recent_attendance(self, instructor_id: int, limit: int = 500) -> List[dict]:
        rows = [dict(r) for r in self.db.attendance if r["instructor_id"] == instructor_id]
        return sorted(rows, key=lambda r: r["date"], reverse=True)[:limit]

    async def get_submission(self, submission_id: int) -> Optional[Submission]:
        return self.db.submissions.get(submission_id)

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
        sub = self.db.submissions.get(submission_id)
        if sub is None or (only_unlocked and sub.locked):
            return None
        sub.grade = grade
        sub.raw_score = raw_score
        sub.raw_total = raw_total
        sub.feedback = feedback
        sub.graded_at = self.db.now()
        sub.locked = True
        return sub

    async def list_submissions(self, instructor_id: int) -> List[dict]:
        rows = []
        for sub in self.db.submissions.values():
            assignment = self.db.assignments.get(sub.assignment_id)
            if assignment and assignment["instructor_id"] == instructor_id:
                rows.append(dict(sub.to_dict(), assignment_title=assignment["title"]))
        return rows

    async def upsert_progress(self, *, course_id: int, learner_id: int, progress: int) -> dict:
        self.db.require_course(course_id)
        row = {"course_id": course_id, "learner_id": learner_id, "progress": progress, "updated_at": self.db.now()}
        self.db.progress[(course_id, learner_id)] = row
        return dict(row)

    async def list_courses(self, instructor_id: int) -> List[dict]:
        return [dict(self.db.courses[c]) for (c, i) in sorted(self.db.course_instructors) if i == instructor_id]

    async def learners_by_course(self, course_ids: Sequence[int]) -> Dict[int, List[dict]]:
        grouped: Dict[int, List[dict]] = {}
        for course_id, learner_id in sorted(self.db.course_learners):
            if course_id not in course_ids:
                continue
            user = self.db.users[learner_id]
            row = self.db.progress.get((course_id, learner_id))
            grouped.setdefault(course_id, []).append(
                {
                    "learner_id": learner_id,
                    "username": user.username,
                    "email": user.email,
                    "progress": row["progress"] if row else 0,
                }
            )
        return grouped


class InMemoryAdminRepo:
    def __init__(self, db: MemoryDB) -> None:
        self.db = db

    async def create_course(self, *, title: str, description: Optional[str], created_by: int) -> dict:
        row = {
            "id": self.db.next_id(),
            "title": title,
            "description": description,
            "created_by": created_by,
            "created_at": self.db.now(),
        }
        self.db.courses[row["id"]] = row
        return dict(row)

    async def update_course(self, course_id: int, *, title: str, description: Optional[str]) -> Optional[dict]:
        row = self.db.courses.get(course_id)
        if row is None:
            return None
        row.update(title=title, description=description)
        return dict(row)

    async def delete_course(self, course_id: int) -> bool:
        return self.db.courses.pop(course_id, None) is not None

    def _require(self, course_id: int, user_id: int) -> None:
        if course_id not in self.db.courses or user_id not in self.db.users:
            raise NotFound("reference_not_found", "Course or user not found")

    async def assign_instructor(self, course_id: int, instructor_id: int) -> None:
        self._require(course_id, instructor_id)
        self.db.course_instructors.add((course_id, instructor_id))

    async def assign_learner(self, course_id: int, learner_id: int) -> None:
        self._require(course_id, learner_id)
        self.db.course_learners.add((course_id, learner_id))

    async def list_courses(self) -> List[dict]:
        return [dict(c) for c in self.db.courses.values()]

    async def list_users(self) -> List[dict]:
        return [
            {"id": u.id, "username": u.username, "email": u.email, "role_id": u.role.role_id if u.role else None}
            for u in self.db.users.values()
        ]

    async def list_progress(self) -> List[dict]:
        return [dict(row) for row in self.db.progress.values()]

    async def attendance_by_week(self, start: date, end: date) -> List[dict]:
        return [dict(r) for r in self.db.attendance if start <= r["date"] < end]


class MemoryBlobStore:
    """BlobStore fake that keeps uploaded bytes in a dict."""

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.discarded: List[str] = []

    async def store(self, stream, filename: str) -> str:
        ref = f"uploads/{len(self.files) + 1}_{filename}"
        self.files[ref] = stream.read()
        return ref

    async def discard(self, file_ref: str) -> None:
        self.discarded.append(file_ref)
        self.files.pop(file_ref, None)


__all__ = [
    "FakeClock",
    "InMemoryAdminRepo",
    "InMemoryLearningRepo",
    "InMemoryTeachingRepo",
    "InMemoryUserRepo",
    "MemoryBlobStore",
    "MemoryDB",
]
