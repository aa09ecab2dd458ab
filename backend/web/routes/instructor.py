"""
Instructor API routes: content, attendance, progress, grading, dashboard.

Permissions:
    Every route requires an authenticated user with role `instructor`.
    Grading does not check that the assignment belongs to the caller; any
    instructor may grade any submission.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from backend.identity_access.domain import User
from backend.teaching.services.grading import GradeSubmissionInput
from backend.web.deps import get_services, require_instructor, upload_from
from backend.web.responses import json_private
from backend.web.wiring import AppServices

instructor_router = APIRouter(
    prefix="/instructor", tags=["Instructor"], dependencies=[Depends(require_instructor)]
)


class ClassPayload(BaseModel):
    course_id: Any = None
    learner_id: Any = None
    meet_link: Any = None
    scheduled_at: Any = None


class AttendancePayload(BaseModel):
    course_id: Any = None
    records: Any = None


class ProgressPayload(BaseModel):
    learner_id: Any = None
    progress: Any = None


class GradePayload(BaseModel):
    grade: Any = None
    feedback: Any = None
    raw_score: Any = None
    raw_total: Any = None
    # Older clients send the raw values under these names.
    grade_raw: Any = None
    grade_total: Any = None


@instructor_router.post("/assignments")
async def create_assignment(
    course_id: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    due_date: Optional[str] = Form(None),
    assigned_learner_id: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: User = Depends(require_instructor),
    services: AppServices = Depends(get_services),
):
    assignment = await services.content.create_assignment(
        instructor_id=user.id,
        course_id=course_id,
        title=title,
        description=description,
        due_date=due_date,
        assigned_learner_id=assigned_learner_id,
        upload=upload_from(file),
    )
    return json_private({"assignment": assignment})


@instructor_router.post("/materials")
async def create_material(
    course_id: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    link: Optional[str] = Form(None),
    assigned_learner_id: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: User = Depends(require_instructor),
    services: AppServices = Depends(get_services),
):
    """Create a material; the response includes course title and usernames."""
    material = await services.content.create_material(
        instructor_id=user.id,
        course_id=course_id,
        title=title,
        description=description,
        link=link,
        assigned_learner_id=assigned_learner_id,
        upload=upload_from(file),
    )
    return json_private({"material": material})


@instructor_router.post("/classes")
async def create_class(
    payload: ClassPayload,
    user: User = Depends(require_instructor),
    services: AppServices = Depends(get_services),
):
    cls = await services.content.create_class(
        instructor_id=user.id,
        course_id=payload.course_id,
        meet_link=payload.meet_link,
        learner_id=payload.learner_id,
        scheduled_at=payload.scheduled_at,
    )
    return json_private({"class": cls})


@instructor_router.get("/classes")
async def list_classes(user: User = Depends(require_instructor), services: AppServices = Depends(get_services)):
    return json_private({"classes": await services.content.list_classes(user.id)})


@instructor_router.post("/attendance")
async def record_attendance(
    payload: AttendancePayload,
    user: User = Depends(require_instructor),
    services: AppServices = Depends(get_services),
):
    written = await services.content.record_attendance(
        instructor_id=user.id, course_id=payload.course_id, records=payload.records
    )
    return json_private({"ok": True, "count": written})


@instructor_router.get("/attendance")
async def attendance(
    year: Optional[str] = None,
    user: User = Depends(require_instructor),
    services: AppServices = Depends(get_services),
):
    return json_private({"rows": await services.content.attendance_for_year(user.id, year)})


@instructor_router.post("/courses/{course_id}/progress")
async def set_progress(
    course_id: str, payload: ProgressPayload, services: AppServices = Depends(get_services)
):
    row = await services.progress.set_progress(
        course_id=course_id, learner_id=payload.learner_id, progress=payload.progress
    )
    return json_private({"ok": True, "progress": row})


@instructor_router.post("/submissions/{submission_id}/grade")
async def grade_submission(
    submission_id: str, payload: GradePayload, services: AppServices = Depends(get_services)
):
    submission = await services.grading.grade(
        GradeSubmissionInput(
            submission_id=submission_id,
            grade=payload.grade,
            raw_score=payload.raw_score if payload.raw_score is not None else payload.grade_raw,
            raw_total=payload.raw_total if payload.raw_total is not None else payload.grade_total,
            feedback=payload.feedback,
        )
    )
    return json_private({"submission": submission.to_dict()})


@instructor_router.get("/dashboard")
async def dashboard(user: User = Depends(require_instructor), services: AppServices = Depends(get_services)):
    return json_private(await services.instructor_dashboard.build(user.id))


__all__ = ["instructor_router"]
