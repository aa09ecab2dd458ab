"""
Submission tests: the one-submission-per-learner rule at the use case and at
the Postgres adapter (unique-violation mapping).
"""
from __future__ import annotations

import io

import pytest
from psycopg import errors as pg_errors

from backend.errors import DuplicateSubmission, InternalError, NotFound, ValidationError
from backend.learning.repo_db import DBLearningRepo
from backend.learning.usecases import SubmitAssignmentInput, SubmitAssignmentUseCase
from backend.storage.ports import Upload
from utils.fake_pool import FakeAsyncPool
from utils.memory_repos import InMemoryLearningRepo, MemoryBlobStore, MemoryDB


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def db() -> MemoryDB:
    db = MemoryDB()
    db.courses[1] = {"id": 1, "title": "Algebra"}
    db.assignments[2] = {"id": 2, "course_id": 1, "instructor_id": 50, "title": "HW1"}
    return db


@pytest.mark.anyio
async def test_first_submission_is_ungraded_and_unlocked(db):
    blobs = MemoryBlobStore()
    uc = SubmitAssignmentUseCase(InMemoryLearningRepo(db), blobs)

    sub = await uc.execute(
        SubmitAssignmentInput(
            assignment_id="2", learner_id=9, upload=Upload(stream=io.BytesIO(b"answer"), filename="hw.pdf")
        )
    )

    assert sub.grade is None and sub.locked is False and sub.graded_at is None
    assert sub.file_path in blobs.files
    assert blobs.files[sub.file_path] == b"answer"


@pytest.mark.anyio
async def test_second_submission_is_rejected_and_its_file_dropped(db):
    blobs = MemoryBlobStore()
    uc = SubmitAssignmentUseCase(InMemoryLearningRepo(db), blobs)
    first = await uc.execute(SubmitAssignmentInput(assignment_id=2, learner_id=9))

    with pytest.raises(DuplicateSubmission) as exc:
        await uc.execute(
            SubmitAssignmentInput(
                assignment_id=2, learner_id=9, upload=Upload(stream=io.BytesIO(b"v2"), filename="v2.pdf")
            )
        )

    assert exc.value.status_code == 409
    assert exc.value.code == "duplicate_submission"
    assert list(db.submissions) == [first.id]
    assert len(blobs.discarded) == 1
    assert blobs.files == {}


@pytest.mark.anyio
async def test_unknown_assignment_drops_the_uploaded_file(db):
    blobs = MemoryBlobStore()
    uc = SubmitAssignmentUseCase(InMemoryLearningRepo(db), blobs)

    with pytest.raises(NotFound):
        await uc.execute(
            SubmitAssignmentInput(
                assignment_id=999, learner_id=9, upload=Upload(stream=io.BytesIO(b"hw"), filename="hw.pdf")
            )
        )

    assert blobs.files == {}
    assert len(blobs.discarded) == 1
    assert db.submissions == {}


@pytest.mark.anyio
async def test_store_failure_drops_the_uploaded_file(db):
    class FailingRepo(InMemoryLearningRepo):
        async def create_submission(self, **kwargs):
            raise InternalError("submission_store_failed", "Could not save submission")

    blobs = MemoryBlobStore()
    uc = SubmitAssignmentUseCase(FailingRepo(db), blobs)

    with pytest.raises(InternalError):
        await uc.execute(
            SubmitAssignmentInput(
                assignment_id=2, learner_id=9, upload=Upload(stream=io.BytesIO(b"hw"), filename="hw.pdf")
            )
        )

    assert blobs.files == {}


@pytest.mark.anyio
async def test_other_learner_may_submit_same_assignment(db):
    uc = SubmitAssignmentUseCase(InMemoryLearningRepo(db), MemoryBlobStore())
    await uc.execute(SubmitAssignmentInput(assignment_id=2, learner_id=9))
    await uc.execute(SubmitAssignmentInput(assignment_id=2, learner_id=10))
    assert len(db.submissions) == 2


@pytest.mark.anyio
@pytest.mark.parametrize("assignment_id", [None, "", "abc", 0, -3, True])
async def test_invalid_assignment_id(db, assignment_id):
    uc = SubmitAssignmentUseCase(InMemoryLearningRepo(db), MemoryBlobStore())
    with pytest.raises(ValidationError) as exc:
        await uc.execute(SubmitAssignmentInput(assignment_id=assignment_id, learner_id=9))
    assert exc.value.code == "invalid_assignment_id"


_ROW = {
    "id": 11,
    "assignment_id": 2,
    "learner_id": 9,
    "file_path": "uploads/1_hw.pdf",
    "grade": None,
    "raw_score": None,
    "raw_total": None,
    "feedback": None,
    "submitted_at": None,
    "graded_at": None,
    "locked": False,
}


@pytest.mark.anyio
async def test_db_repo_maps_inserted_row():
    pool = FakeAsyncPool(lambda sql, params: [dict(_ROW)])
    sub = await DBLearningRepo(pool).create_submission(assignment_id=2, learner_id=9, file_path="uploads/1_hw.pdf")

    assert sub.id == 11 and sub.locked is False
    sql, params = pool.calls[0]
    assert sql.startswith("insert into submissions")
    assert params == (2, 9, "uploads/1_hw.pdf")


@pytest.mark.anyio
async def test_db_repo_unique_violation_is_duplicate_submission():
    def handler(sql, params):
        raise pg_errors.UniqueViolation("duplicate key value violates unique constraint")

    with pytest.raises(DuplicateSubmission):
        await DBLearningRepo(FakeAsyncPool(handler)).create_submission(assignment_id=2, learner_id=9, file_path=None)


@pytest.mark.anyio
async def test_db_repo_unknown_assignment_is_not_found():
    def handler(sql, params):
        raise pg_errors.ForeignKeyViolation("insert violates foreign key constraint")

    with pytest.raises(NotFound):
        await DBLearningRepo(FakeAsyncPool(handler)).create_submission(assignment_id=2, learner_id=9, file_path=None)


@pytest.mark.anyio
async def test_db_repo_other_driver_errors_are_internal():
    def handler(sql, params):
        raise pg_errors.OperationalError("connection lost")

    with pytest.raises(InternalError):
        await DBLearningRepo(FakeAsyncPool(handler)).create_submission(assignment_id=2, learner_id=9, file_path=None)


@pytest.mark.anyio
async def test_db_repo_learner_reads_bind_learner_twice():
    pool = FakeAsyncPool(lambda sql, params: [])
    repo = DBLearningRepo(pool)

    await repo.list_assignments(9)
    await repo.list_materials(9)
    await repo.list_classes(9)

    assert [params for _, params in pool.calls] == [(9, 9)] * 3
    assert all("distinct" in sql for sql, _ in pool.calls)
