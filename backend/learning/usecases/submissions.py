from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional, Protocol

from backend.errors import DuplicateSubmission
from backend.learning.domain import Submission
from backend.storage.ports import BlobStore, Upload
from backend.validation import required_id

logger = logging.getLogger("learnhub.learning.submissions")


class LearningSubmissionRepoProtocol(Protocol):
    async def create_submission(
        self, *, assignment_id: int, learner_id: int, file_path: Optional[str]
    ) -> Submission:
        ...

    async def list_submissions(self, learner_id: int) -> List[dict]:
        ...


@dataclass
class SubmitAssignmentInput:
    assignment_id: object
    learner_id: int
    upload: Optional[Upload] = None


class SubmitAssignmentUseCase:
    def __init__(self, repo: LearningSubmissionRepoProtocol, blobs: BlobStore) -> None:
        self._repo = repo
        self._blobs = blobs

    async def execute(self, req: SubmitAssignmentInput) -> Submission:
        """Record the learner's one and only submission for an assignment.

        Intent:
            Keep the web adapter thin: validate the id, persist the optional
            file, then insert the row.

        Behavior:
            - `assignment_id` must be a positive integer (form fields arrive
              as strings), else `ValidationError("invalid_assignment_id")`.
            - The store's unique index is the sole arbiter of "already
              submitted"; a second attempt raises `DuplicateSubmission` and no
              row is written.
            - Whenever the insert fails the stored file is discarded again.
            - Never retried: callers see the first outcome.
        """
        assignment_id = required_id(req.assignment_id, "invalid_assignment_id")
        file_ref: Optional[str] = None
        if req.upload is not None:
            file_ref = await self._blobs.store(req.upload.stream, req.upload.filename)
        try:
            return await self._repo.create_submission(
                assignment_id=assignment_id, learner_id=req.learner_id, file_path=file_ref
            )
        except DuplicateSubmission:
            logger.info("Duplicate submission for assignment %s rejected", assignment_id)
            await self._discard(file_ref)
            raise
        except Exception:
            await self._discard(file_ref)
            raise

    async def _discard(self, file_ref: Optional[str]) -> None:
        if file_ref:
            await self._blobs.discard(file_ref)
