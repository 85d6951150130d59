"""Reference lifecycle: New -> ScheduledJob -> Review -> Closed."""

from work_kernel.domain.values import ActivityStatus, EntityKind, WorkStatus
from work_kernel.domain.workflow import Transition, Workflow, WorkflowEvent
from work_kernel.domain.workflows.base import WorkTypeWorkflow

ACTIVITY_WORKFLOW = Workflow(
    name="ActivityWorkflow",
    entity_kind=EntityKind.ACTIVITY,
    initial_state=ActivityStatus.NEW.value,
    states=(ActivityStatus.NEW.value, ActivityStatus.COMPLETED.value),
    transitions=(
        Transition(
            ActivityStatus.NEW.value,
            ActivityStatus.COMPLETED.value,
            WorkflowEvent.SET_STATUS,
            "activity completed",
        ),
    ),
    terminal_states=(ActivityStatus.COMPLETED.value,),
)

SCHEDULED_JOB_WORK_WORKFLOW = Workflow(
    name="ScheduledJobWorkflow",
    entity_kind=EntityKind.WORK,
    initial_state=WorkStatus.NEW.value,
    states=tuple(s.value for s in WorkStatus),
    transitions=(
        Transition(
            WorkStatus.NEW.value,
            WorkStatus.SCHEDULED_JOB.value,
            WorkflowEvent.ACTIVITY_CREATED,
            "first activity attached",
        ),
        Transition(
            WorkStatus.SCHEDULED_JOB.value,
            WorkStatus.REVIEW.value,
            WorkflowEvent.ACTIVITIES_COMPLETED,
            "every activity completed",
        ),
        Transition(
            WorkStatus.REVIEW.value,
            WorkStatus.CLOSED.value,
            WorkflowEvent.REVIEW,
            "reviewed and closed",
        ),
    ),
    terminal_states=(WorkStatus.CLOSED.value,),
)

SCHEDULED_JOB_WORKFLOW = WorkTypeWorkflow(
    workflow_id="ScheduledJobWorkflow",
    description="Work is scheduled by its first activity, reviewed once all "
    "activities are completed, and closed by an explicit review.",
    work=SCHEDULED_JOB_WORK_WORKFLOW,
    activity=ACTIVITY_WORKFLOW,
    activity_creation_states=frozenset(
        {WorkStatus.NEW.value, WorkStatus.SCHEDULED_JOB.value}
    ),
)
