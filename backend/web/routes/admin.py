"""
Admin API routes: courses, memberships, role assignment, materials, reports.

Permissions:
    Every route requires an authenticated user with role `admin`
    (router-level dependency; 401 without session, 403 otherwise).
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from backend.identity_access.domain import User
from backend.web.deps import get_services, require_admin, upload_from
from backend.web.responses import json_private
from backend.web.wiring import AppServices

admin_router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


class CoursePayload(BaseModel):
    title: Any = None
    description: Any = None


class AssignInstructorPayload(BaseModel):
    instructor_id: Any = None


class AssignLearnerPayload(BaseModel):
    learner_id: Any = None


class AssignRolePayload(BaseModel):
    role: Any = None
    role_id: Any = None


@admin_router.post("/courses")
async def create_course(
    payload: CoursePayload,
    user: User = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    course = await services.admin.create_course(
        admin_id=user.id, title=payload.title, description=payload.description
    )
    return json_private({"course": course})


@admin_router.put("/courses/{course_id}")
async def update_course(
    course_id: str, payload: CoursePayload, services: AppServices = Depends(get_services)
):
    course = await services.admin.update_course(
        course_id, title=payload.title, description=payload.description
    )
    return json_private({"course": course})


@admin_router.delete("/courses/{course_id}")
async def delete_course(course_id: str, services: AppServices = Depends(get_services)):
    await services.admin.delete_course(course_id)
    return json_private({"ok": True})


@admin_router.post("/courses/{course_id}/assign-instructor")
async def assign_instructor(
    course_id: str, payload: AssignInstructorPayload, services: AppServices = Depends(get_services)
):
    await services.admin.assign_instructor(course_id, payload.instructor_id)
    return json_private({"ok": True})


@admin_router.post("/courses/{course_id}/assign-learner")
async def assign_learner(
    course_id: str, payload: AssignLearnerPayload, services: AppServices = Depends(get_services)
):
    await services.admin.assign_learner(course_id, payload.learner_id)
    return json_private({"ok": True})


@admin_router.post("/users/{user_id}/assign-role")
async def assign_role(
    user_id: str, payload: AssignRolePayload, services: AppServices = Depends(get_services)
):
    """Body: `{"role": "instructor"}` or the legacy `{"role_id": 2}`."""
    role = await services.admin.assign_role(
        user_id, payload.role if payload.role is not None else payload.role_id
    )
    return json_private({"ok": True, "role": role.value, "role_id": role.role_id})


@admin_router.post("/materials")
async def create_material(
    course_id: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    link: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: User = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    material = await services.admin.create_material(
        admin_id=user.id,
        course_id=course_id,
        title=title,
        description=description,
        link=link,
        upload=upload_from(file),
    )
    return json_private({"material": material})


@admin_router.get("/dashboard")
async def dashboard(services: AppServices = Depends(get_services)):
    return json_private(await services.admin.dashboard())


@admin_router.get("/attendance")
async def attendance(year: Optional[str] = None, services: AppServices = Depends(get_services)):
    """Weekly attendance counts across all instructors for `year` (default: current year)."""
    return json_private({"rows": await services.admin.attendance_for_year(year)})


__all__ = ["admin_router"]
