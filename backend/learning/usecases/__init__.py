"""Use case layer for the Learning context.

Re-export common use cases for convenient imports in tests.
"""

from .dashboard import LearnerDashboardUseCase
from .submissions import SubmitAssignmentInput, SubmitAssignmentUseCase

__all__ = [
    "LearnerDashboardUseCase",
    "SubmitAssignmentInput",
    "SubmitAssignmentUseCase",
]
