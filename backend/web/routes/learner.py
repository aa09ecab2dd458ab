"""
Learner API routes: submit work and read course content.

Permissions:
    Every route requires an authenticated user with role `learner`. Content is
    visible through course enrollment or a direct assignment to the learner.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from backend.identity_access.domain import User
from backend.learning.usecases import SubmitAssignmentInput
from backend.web.deps import get_services, require_learner, upload_from
from backend.web.responses import json_private
from backend.web.wiring import AppServices

learner_router = APIRouter(prefix="/learner", tags=["Learner"], dependencies=[Depends(require_learner)])


@learner_router.post("/submissions")
async def submit(
    assignment_id: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: User = Depends(require_learner),
    services: AppServices = Depends(get_services),
):
    """Submit an assignment once. A second attempt answers 409 `duplicate_submission`."""
    submission = await services.submit.execute(
        SubmitAssignmentInput(assignment_id=assignment_id, learner_id=user.id, upload=upload_from(file))
    )
    return json_private({"submission": submission.to_dict()})


@learner_router.get("/assignments")
async def assignments(user: User = Depends(require_learner), services: AppServices = Depends(get_services)):
    return json_private({"assignments": await services.learning.list_assignments(user.id)})


@learner_router.get("/materials")
async def materials(user: User = Depends(require_learner), services: AppServices = Depends(get_services)):
    return json_private({"materials": await services.learning.list_materials(user.id)})


@learner_router.get("/classes")
async def classes(user: User = Depends(require_learner), services: AppServices = Depends(get_services)):
    return json_private({"classes": await services.learning.list_classes(user.id)})


@learner_router.get("/dashboard")
async def dashboard(user: User = Depends(require_learner), services: AppServices = Depends(get_services)):
    return json_private(await services.learner_dashboard.execute(user.id))


__all__ = ["learner_router"]
