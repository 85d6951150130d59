"""
Tests for the pure workflow state machines.

Covers:
- Workflow definition checks
- Explicit events: move or reject
- Automatic events: move or stay
- The scheduled-job lifecycle and its aggregate rule
"""

import pytest

from work_kernel.domain.values import ActivityStatus, EntityKind, WorkStatus
from work_kernel.domain.workflow import (
    DecisionKind,
    Transition,
    Workflow,
    WorkflowEvent,
)
from work_kernel.domain.workflows.base import WorkTypeWorkflow
from work_kernel.domain.workflows.scheduled_job import (
    ACTIVITY_WORKFLOW,
    SCHEDULED_JOB_WORK_WORKFLOW,
    SCHEDULED_JOB_WORKFLOW,
)

NEW = WorkStatus.NEW.value
SCHEDULED = WorkStatus.SCHEDULED_JOB.value
REVIEW = WorkStatus.REVIEW.value
CLOSED = WorkStatus.CLOSED.value
COMPLETED = ActivityStatus.COMPLETED.value


class TestWorkflowDefinition:
    def test_initial_state_must_be_a_state(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow(
                name="broken",
                entity_kind=EntityKind.WORK,
                initial_state="Nowhere",
                states=("A",),
                transitions=(),
            )

    def test_transition_must_reference_known_states(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="broken",
                entity_kind=EntityKind.WORK,
                initial_state="A",
                states=("A",),
                transitions=(Transition("A", "B", WorkflowEvent.REVIEW),),
            )

    def test_terminal_state_cannot_have_outgoing_transition(self):
        with pytest.raises(ValueError, match="terminal"):
            Workflow(
                name="broken",
                entity_kind=EntityKind.WORK,
                initial_state="A",
                states=("A", "B"),
                transitions=(Transition("B", "A", WorkflowEvent.REVIEW),),
                terminal_states=("B",),
            )

    def test_work_type_workflow_checks_entity_kinds(self):
        with pytest.raises(ValueError, match="wrong entity kind"):
            WorkTypeWorkflow(
                workflow_id="swapped",
                description="",
                work=ACTIVITY_WORKFLOW,
                activity=SCHEDULED_JOB_WORK_WORKFLOW,
                activity_creation_states=frozenset(),
            )

    def test_work_type_workflow_checks_creation_states(self):
        with pytest.raises(ValueError, match="unknown creation states"):
            WorkTypeWorkflow(
                workflow_id="bad",
                description="",
                work=SCHEDULED_JOB_WORK_WORKFLOW,
                activity=ACTIVITY_WORKFLOW,
                activity_creation_states=frozenset({"Archived"}),
            )


class TestEvaluate:
    """Workflow.evaluate over the reference work lifecycle."""

    def test_activity_created_moves_new_to_scheduled(self):
        decision = SCHEDULED_JOB_WORK_WORKFLOW.evaluate(NEW, WorkflowEvent.ACTIVITY_CREATED)
        assert decision.kind is DecisionKind.MOVE
        assert decision.changed
        assert decision.to_state == SCHEDULED

    def test_activity_created_while_scheduled_stays(self):
        decision = SCHEDULED_JOB_WORK_WORKFLOW.evaluate(
            SCHEDULED, WorkflowEvent.ACTIVITY_CREATED
        )
        assert decision.kind is DecisionKind.STAY
        assert decision.accepted
        assert not decision.changed
        assert decision.to_state == SCHEDULED

    def test_activities_completed_moves_scheduled_to_review(self):
        decision = SCHEDULED_JOB_WORK_WORKFLOW.evaluate(
            SCHEDULED, WorkflowEvent.ACTIVITIES_COMPLETED
        )
        assert decision.to_state == REVIEW

    def test_review_closes_a_work_in_review(self):
        decision = SCHEDULED_JOB_WORK_WORKFLOW.evaluate(REVIEW, WorkflowEvent.REVIEW)
        assert decision.to_state == CLOSED

    @pytest.mark.parametrize("state", [NEW, SCHEDULED])
    def test_review_before_review_state_is_rejected(self, state):
        decision = SCHEDULED_JOB_WORK_WORKFLOW.evaluate(state, WorkflowEvent.REVIEW)
        assert decision.kind is DecisionKind.REJECT
        assert not decision.accepted
        assert "not reachable" in decision.reason

    def test_review_of_closed_work_names_terminal_state(self):
        decision = SCHEDULED_JOB_WORK_WORKFLOW.evaluate(CLOSED, WorkflowEvent.REVIEW)
        assert decision.kind is DecisionKind.REJECT
        assert "terminal" in decision.reason

    def test_unknown_state_is_rejected(self):
        decision = SCHEDULED_JOB_WORK_WORKFLOW.evaluate("Archived", WorkflowEvent.REVIEW)
        assert decision.kind is DecisionKind.REJECT

    def test_set_status_requires_target(self):
        with pytest.raises(ValueError, match="target"):
            ACTIVITY_WORKFLOW.evaluate(ActivityStatus.NEW.value, WorkflowEvent.SET_STATUS)

    def test_set_status_to_reachable_target(self):
        decision = ACTIVITY_WORKFLOW.evaluate(
            ActivityStatus.NEW.value, WorkflowEvent.SET_STATUS, COMPLETED
        )
        assert decision.to_state == COMPLETED

    def test_set_status_to_unreachable_target_is_rejected(self):
        decision = ACTIVITY_WORKFLOW.evaluate(
            ActivityStatus.NEW.value, WorkflowEvent.SET_STATUS, "Cancelled"
        )
        assert decision.kind is DecisionKind.REJECT

    def test_completed_activity_cannot_change_again(self):
        decision = ACTIVITY_WORKFLOW.evaluate(COMPLETED, WorkflowEvent.SET_STATUS, COMPLETED)
        assert decision.kind is DecisionKind.REJECT

    def test_allowed_targets(self):
        assert SCHEDULED_JOB_WORK_WORKFLOW.allowed_targets(NEW) == (SCHEDULED,)
        assert SCHEDULED_JOB_WORK_WORKFLOW.allowed_targets(CLOSED) == ()
        assert SCHEDULED_JOB_WORK_WORKFLOW.allowed_targets(
            REVIEW, WorkflowEvent.ACTIVITY_CREATED
        ) == ()


class TestScheduledJobWorkflow:
    def test_initial_states(self):
        assert SCHEDULED_JOB_WORKFLOW.initial_state(EntityKind.WORK) == NEW
        assert SCHEDULED_JOB_WORKFLOW.initial_state(EntityKind.ACTIVITY) == ActivityStatus.NEW.value

    @pytest.mark.parametrize(
        "state,accepts",
        [(NEW, True), (SCHEDULED, True), (REVIEW, False), (CLOSED, False)],
    )
    def test_accepts_new_activity(self, state, accepts):
        assert SCHEDULED_JOB_WORKFLOW.accepts_new_activity(state) is accepts

    def test_only_closed_is_closed(self):
        assert SCHEDULED_JOB_WORKFLOW.is_closed(CLOSED)
        assert not SCHEDULED_JOB_WORKFLOW.is_closed(REVIEW)

    def test_no_activities_raises_nothing(self):
        assert SCHEDULED_JOB_WORKFLOW.aggregate_event([]) is None

    def test_any_open_activity_raises_nothing(self):
        states = [COMPLETED, ActivityStatus.NEW.value, COMPLETED]
        assert SCHEDULED_JOB_WORKFLOW.aggregate_event(states) is None

    def test_all_completed_raises_activities_completed(self):
        assert (
            SCHEDULED_JOB_WORKFLOW.aggregate_event([COMPLETED, COMPLETED])
            is WorkflowEvent.ACTIVITIES_COMPLETED
        )

    def test_events_are_classified(self):
        assert WorkflowEvent.ACTIVITY_CREATED.is_automatic
        assert WorkflowEvent.ACTIVITIES_COMPLETED.is_automatic
        assert not WorkflowEvent.REVIEW.is_automatic
        assert not WorkflowEvent.SET_STATUS.is_automatic
