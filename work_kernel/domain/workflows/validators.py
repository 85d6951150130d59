"""
Work-type validators.

A work-type names its validator; the name resolves (through
``WorkflowRegistry``) to a ``WorkTypeValidation``.  Validators are pure: the
orchestrator loads everything they need into a ``ValidationContext`` and
they return a ``ValidationResult`` holding every failing check.

Error codes the orchestrator escalates to dedicated exceptions:
    ILLEGAL_TRANSITION        -> IllegalTransitionError
    CHILD_TYPE_NOT_PERMITTED  -> ChildTypeNotPermittedError
Everything else surfaces as ValidationFailedError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Union

from work_kernel.domain.dtos import (
    ActivityStatusChange,
    ActivityTypeInfo,
    CheckResult,
    NewActivity,
    NewWork,
    ReviewWork,
    UpdateWork,
    ValidationResult,
    WorkTypeInfo,
)
from work_kernel.domain.validation import check_custom_fields, check_string_field
from work_kernel.domain.values import EntityKind
from work_kernel.domain.workflow import WorkflowEvent
from work_kernel.domain.workflows.base import WorkTypeWorkflow

ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
CHILD_TYPE_NOT_PERMITTED = "CHILD_TYPE_NOT_PERMITTED"

Command = Union[NewWork, UpdateWork, NewActivity, ActivityStatusChange, ReviewWork]


@dataclass(frozen=True)
class ValidationContext:
    """Everything a validator may look at for one command.

    ``work_state`` is the owning work's current status (None on creation);
    ``activity_state`` is set for activity status changes.
    """

    command: Command
    work_type: WorkTypeInfo
    workflow: WorkTypeWorkflow
    work_state: str | None = None
    activity_state: str | None = None
    activity_type: ActivityTypeInfo | None = None
    parent_work_type: WorkTypeInfo | None = None


class WorkTypeValidation(ABC):
    """Base class of the per-work-type validators."""

    name: ClassVar[str]

    def validate(self, ctx: ValidationContext) -> ValidationResult:
        command = ctx.command
        if isinstance(command, NewWork):
            return self.check_new_work(ctx)
        if isinstance(command, UpdateWork):
            return self.check_update_work(ctx)
        if isinstance(command, NewActivity):
            return self.check_new_activity(ctx)
        if isinstance(command, ActivityStatusChange):
            return self.check_activity_status(ctx)
        if isinstance(command, ReviewWork):
            return self.check_review(ctx)
        raise TypeError(f"Unsupported command {type(command).__name__}")

    @abstractmethod
    def check_new_work(self, ctx: ValidationContext) -> ValidationResult:
        ...

    @abstractmethod
    def check_update_work(self, ctx: ValidationContext) -> ValidationResult:
        ...

    @abstractmethod
    def check_new_activity(self, ctx: ValidationContext) -> ValidationResult:
        ...

    def check_activity_status(self, ctx: ValidationContext) -> ValidationResult:
        command = ctx.command
        return ValidationResult.from_checks(
            self._check_transition(
                ctx, EntityKind.ACTIVITY, ctx.activity_state,
                WorkflowEvent.SET_STATUS, command.new_status,
            ),
            self._check_work_open(ctx),
        )

    def check_review(self, ctx: ValidationContext) -> ValidationResult:
        return ValidationResult.from_checks(
            self._check_transition(ctx, EntityKind.WORK, ctx.work_state, WorkflowEvent.REVIEW),
        )

    # ------------------------------------------------------------------
    # Shared checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_transition(
        ctx: ValidationContext,
        kind: EntityKind,
        state: str | None,
        event: WorkflowEvent,
        target: str | None = None,
    ) -> CheckResult[str]:
        decision = ctx.workflow.evaluate_transition(kind, state or "", event, target)
        if not decision.accepted:
            return CheckResult.failure(
                f"The {kind.value} status cannot change: {decision.reason}",
                field="status",
                code=ILLEGAL_TRANSITION,
                details={
                    "entity_type": kind.value,
                    "from_state": state,
                    "requested": target or event.value,
                },
            )
        return CheckResult.success(decision.to_state)

    @staticmethod
    def _check_work_open(ctx: ValidationContext) -> CheckResult[str]:
        if ctx.work_state is not None and ctx.workflow.is_closed(ctx.work_state):
            return CheckResult.failure(
                f"The work is {ctx.work_state} and can no longer change",
                field="status",
                code=ILLEGAL_TRANSITION,
                details={"entity_type": EntityKind.WORK.value, "from_state": ctx.work_state},
            )
        return CheckResult.success(ctx.work_state)

    @staticmethod
    def _check_child_work_type(ctx: ValidationContext) -> CheckResult:
        if ctx.parent_work_type is None:
            return CheckResult.success()
        if ctx.work_type.id not in ctx.parent_work_type.child_work_type_ids:
            return CheckResult.failure(
                f"The work type '{ctx.work_type.title}' is not permitted as a child of "
                f"'{ctx.parent_work_type.title}'",
                field="parent_work_id",
                code=CHILD_TYPE_NOT_PERMITTED,
                details={
                    "parent_type_id": str(ctx.parent_work_type.id),
                    "child_type_id": str(ctx.work_type.id),
                },
            )
        return CheckResult.success()

    @staticmethod
    def _check_activity_type_permitted(ctx: ValidationContext) -> CheckResult:
        activity_type = ctx.activity_type
        if activity_type is None or activity_type.id not in ctx.work_type.activity_type_ids:
            type_id = ctx.command.activity_type_id
            return CheckResult.failure(
                f"The activity type '{activity_type.title if activity_type else type_id}' "
                f"is not permitted for work type '{ctx.work_type.title}'",
                field="activity_type_id",
                code=CHILD_TYPE_NOT_PERMITTED,
                details={
                    "parent_type_id": str(ctx.work_type.id),
                    "child_type_id": str(type_id),
                },
            )
        return CheckResult.success(activity_type)


class DefaultWorkValidation(WorkTypeValidation):
    """Title, description, custom fields and structural checks."""

    name = "DefaultWorkValidation"

    def check_new_work(self, ctx: ValidationContext) -> ValidationResult:
        command = ctx.command
        return ValidationResult.from_checks(
            check_string_field(command.title, "title"),
            check_string_field(command.description, "description"),
            check_custom_fields(ctx.work_type.custom_fields, command.custom_fields),
            self._check_child_work_type(ctx),
        )

    def check_update_work(self, ctx: ValidationContext) -> ValidationResult:
        command = ctx.command
        checks: list = []
        if ctx.work_state is not None and ctx.workflow.is_closed(ctx.work_state):
            checks.append(
                CheckResult.failure(
                    f"The work is {ctx.work_state} and cannot be updated",
                    field="status",
                    code="WORK_CLOSED",
                )
            )
        if command.title is not None:
            checks.append(check_string_field(command.title, "title"))
        if command.description is not None:
            checks.append(check_string_field(command.description, "description"))
        if command.custom_fields is not None:
            checks.append(check_custom_fields(ctx.work_type.custom_fields, command.custom_fields))
        return ValidationResult.from_checks(*checks)

    def check_new_activity(self, ctx: ValidationContext) -> ValidationResult:
        command = ctx.command
        checks: list = [
            check_string_field(command.title, "title"),
            check_string_field(command.description, "description"),
            self._check_activity_type_permitted(ctx),
        ]
        if ctx.activity_type is not None:
            checks.append(
                check_custom_fields(ctx.activity_type.custom_fields, command.custom_fields)
            )
        if ctx.work_state is None or not ctx.workflow.accepts_new_activity(ctx.work_state):
            checks.append(
                CheckResult.failure(
                    f"Activities cannot be added to a work in state {ctx.work_state}",
                    field="work_id",
                    code=ILLEGAL_TRANSITION,
                    details={
                        "entity_type": EntityKind.WORK.value,
                        "from_state": ctx.work_state,
                        "requested": WorkflowEvent.ACTIVITY_CREATED.value,
                    },
                )
            )
        return ValidationResult.from_checks(*checks)


class ReviewCommentRequiredValidation(DefaultWorkValidation):
    """Default checks, plus a mandatory follow-up description on review."""

    name = "ReviewCommentRequiredValidation"

    def check_review(self, ctx: ValidationContext) -> ValidationResult:
        return ValidationResult.from_checks(
            super().check_review(ctx),
            check_string_field(ctx.command.followup_description, "followup_description"),
        )
