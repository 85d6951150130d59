"""Built-in workflows and validators."""

from work_kernel.domain.workflows.base import WorkTypeWorkflow
from work_kernel.domain.workflows.scheduled_job import (
    ACTIVITY_WORKFLOW,
    SCHEDULED_JOB_WORK_WORKFLOW,
    SCHEDULED_JOB_WORKFLOW,
)
from work_kernel.domain.workflows.validators import (
    CHILD_TYPE_NOT_PERMITTED,
    ILLEGAL_TRANSITION,
    DefaultWorkValidation,
    ReviewCommentRequiredValidation,
    ValidationContext,
    WorkTypeValidation,
)

__all__ = [
    "ACTIVITY_WORKFLOW",
    "CHILD_TYPE_NOT_PERMITTED",
    "DefaultWorkValidation",
    "ILLEGAL_TRANSITION",
    "ReviewCommentRequiredValidation",
    "SCHEDULED_JOB_WORKFLOW",
    "SCHEDULED_JOB_WORK_WORKFLOW",
    "ValidationContext",
    "WorkTypeValidation",
    "WorkTypeWorkflow",
]
