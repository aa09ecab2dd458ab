"""
Submission record shared by the learning (submit) and teaching (grade) sides.

State machine:
    unsubmitted -> submitted (row created, `locked=False`)
    submitted   -> graded    (grade/raw/total/feedback set, `graded_at` set,
                              `locked=True`)
At most one submission exists per (assignment, learner); the store's unique
index guarantees it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass
class Submission:
    id: int
    assignment_id: int
    learner_id: int
    file_path: Optional[str] = None
    grade: Optional[int] = None
    raw_score: Optional[int] = None
    raw_total: Optional[int] = None
    feedback: Optional[str] = None
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None
    locked: bool = False

    @property
    def graded(self) -> bool:
        return self.graded_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "assignment_id": self.assignment_id,
            "learner_id": self.learner_id,
            "file_path": self.file_path,
            "grade": self.grade,
            "raw_score": self.raw_score,
            "raw_total": self.raw_total,
            "feedback": self.feedback,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
            "locked": self.locked,
        }


def submission_from_row(row: Mapping[str, Any]) -> Submission:
    return Submission(
        id=row["id"],
        assignment_id=row["assignment_id"],
        learner_id=row["learner_id"],
        file_path=row.get("file_path"),
        grade=row.get("grade"),
        raw_score=row.get("raw_score"),
        raw_total=row.get("raw_total"),
        feedback=row.get("feedback"),
        submitted_at=row.get("submitted_at"),
        graded_at=row.get("graded_at"),
        locked=bool(row.get("locked")),
    )


SUBMISSION_COLUMNS = (
    "id, assignment_id, learner_id, file_path, grade, raw_score, raw_total, "
    "feedback, submitted_at, graded_at, locked"
)


__all__ = ["SUBMISSION_COLUMNS", "Submission", "submission_from_row"]
