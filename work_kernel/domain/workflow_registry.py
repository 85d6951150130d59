"""WorkflowRegistry -- workflow id / validator name to implementation dispatch."""

from __future__ import annotations

from dataclasses import dataclass

from work_kernel.domain.dtos import ValidationResult, WorkTypeInfo
from work_kernel.domain.values import EntityKind
from work_kernel.domain.workflow import TransitionDecision, WorkflowEvent
from work_kernel.domain.workflows.base import WorkTypeWorkflow
from work_kernel.domain.workflows.scheduled_job import SCHEDULED_JOB_WORKFLOW
from work_kernel.domain.workflows.validators import (
    DefaultWorkValidation,
    ReviewCommentRequiredValidation,
    ValidationContext,
    WorkTypeValidation,
)
from work_kernel.exceptions import ValidatorNotFoundError, WorkflowNotFoundError


@dataclass(frozen=True)
class WorkflowBinding:
    """The workflow and validator a work-type resolves to."""

    work_type: WorkTypeInfo
    workflow: WorkTypeWorkflow
    validator: WorkTypeValidation

    def evaluate_transition(
        self,
        kind: EntityKind,
        state: str,
        event: WorkflowEvent,
        target: str | None = None,
    ) -> TransitionDecision:
        return self.workflow.evaluate_transition(kind, state, event, target)

    def validate(self, ctx: ValidationContext) -> ValidationResult:
        return self.validator.validate(ctx)


class WorkflowRegistry:
    """Map from string keys stored on work-types to implementations.

    Keys are resolved at lookup time against what was registered up front;
    nothing is imported or instantiated by name.
    """

    def __init__(self) -> None:
        self._workflows: dict[str, WorkTypeWorkflow] = {}
        self._validators: dict[str, WorkTypeValidation] = {}

    @classmethod
    def default(cls) -> WorkflowRegistry:
        """Registry holding the built-in workflows and validators."""
        registry = cls()
        registry.register_workflow(SCHEDULED_JOB_WORKFLOW)
        registry.register_validator(DefaultWorkValidation())
        registry.register_validator(ReviewCommentRequiredValidation())
        return registry

    def register_workflow(self, workflow: WorkTypeWorkflow) -> None:
        if workflow.workflow_id in self._workflows:
            raise ValueError(f"Workflow already registered: {workflow.workflow_id}")
        self._workflows[workflow.workflow_id] = workflow

    def register_validator(self, validator: WorkTypeValidation) -> None:
        if validator.name in self._validators:
            raise ValueError(f"Validator already registered: {validator.name}")
        self._validators[validator.name] = validator

    def get_workflow(self, workflow_id: str) -> WorkTypeWorkflow:
        try:
            return self._workflows[workflow_id]
        except KeyError:
            raise WorkflowNotFoundError(workflow_id, list(self._workflows)) from None

    def get_validator(self, validator_name: str) -> WorkTypeValidation:
        try:
            return self._validators[validator_name]
        except KeyError:
            raise ValidatorNotFoundError(validator_name, list(self._validators)) from None

    def has_workflow(self, workflow_id: str) -> bool:
        return workflow_id in self._workflows

    def has_validator(self, validator_name: str) -> bool:
        return validator_name in self._validators

    def list_workflows(self) -> list[str]:
        return sorted(self._workflows)

    def list_validators(self) -> list[str]:
        return sorted(self._validators)

    def bind(self, work_type: WorkTypeInfo) -> WorkflowBinding:
        return WorkflowBinding(
            work_type=work_type,
            workflow=self.get_workflow(work_type.workflow_id),
            validator=self.get_validator(work_type.validator_name),
        )
