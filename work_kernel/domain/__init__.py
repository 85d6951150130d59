"""
Pure domain layer.

Value objects and decision logic with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through an injected ``Clock``.
"""

from work_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from work_kernel.domain.dtos import (
    ActivityStatusChange,
    ActivityTypeInfo,
    ActivityView,
    CheckResult,
    CustomFieldDefinition,
    CustomFieldInput,
    CustomFieldValue,
    NewActivity,
    NewWork,
    ReviewWork,
    StatusTransition,
    UpdateWork,
    ValidationError,
    ValidationResult,
    WorkTypeInfo,
    WorkTypeStatusStatistics,
    WorkView,
)
from work_kernel.domain.values import (
    ActivityStatus,
    ActivityTypeSubtype,
    EntityKind,
    ValueType,
    WorkStatus,
)
from work_kernel.domain.workflow import (
    DecisionKind,
    Transition,
    TransitionDecision,
    Workflow,
    WorkflowEvent,
)
from work_kernel.domain.workflow_registry import WorkflowBinding, WorkflowRegistry

__all__ = [
    "ActivityStatus",
    "ActivityStatusChange",
    "ActivityTypeInfo",
    "ActivityTypeSubtype",
    "ActivityView",
    "CheckResult",
    "Clock",
    "CustomFieldDefinition",
    "CustomFieldInput",
    "CustomFieldValue",
    "DecisionKind",
    "DeterministicClock",
    "EntityKind",
    "NewActivity",
    "NewWork",
    "ReviewWork",
    "StatusTransition",
    "SystemClock",
    "Transition",
    "TransitionDecision",
    "UpdateWork",
    "ValidationError",
    "ValidationResult",
    "ValueType",
    "WorkStatus",
    "WorkTypeInfo",
    "WorkTypeStatusStatistics",
    "WorkView",
    "Workflow",
    "WorkflowBinding",
    "WorkflowEvent",
    "WorkflowRegistry",
]
