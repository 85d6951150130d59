"""
WorkTypeWorkflow -- the lifecycle bound to a work-type.

A work-type names its workflow by id; the id resolves (through
``WorkflowRegistry``) to one of these objects, which pairs the work state
machine with the state machine of the activities beneath the work and
decides when activity changes promote the work.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from work_kernel.domain.values import EntityKind
from work_kernel.domain.workflow import TransitionDecision, Workflow, WorkflowEvent


@dataclass(frozen=True)
class WorkTypeWorkflow:
    """Work + activity state machines for one workflow id.

    ``activity_creation_states`` lists the work states in which new
    activities may be attached.
    """

    workflow_id: str
    description: str
    work: Workflow
    activity: Workflow
    activity_creation_states: frozenset[str]

    def __post_init__(self) -> None:
        if self.work.entity_kind is not EntityKind.WORK:
            raise ValueError(f"{self.workflow_id}: work workflow has the wrong entity kind")
        if self.activity.entity_kind is not EntityKind.ACTIVITY:
            raise ValueError(f"{self.workflow_id}: activity workflow has the wrong entity kind")
        unknown = self.activity_creation_states - set(self.work.states)
        if unknown:
            raise ValueError(f"{self.workflow_id}: unknown creation states {sorted(unknown)}")

    def machine(self, kind: EntityKind) -> Workflow:
        return self.work if kind is EntityKind.WORK else self.activity

    def initial_state(self, kind: EntityKind) -> str:
        return self.machine(kind).initial_state

    def evaluate_transition(
        self,
        kind: EntityKind,
        current_state: str,
        event: WorkflowEvent,
        target: str | None = None,
    ) -> TransitionDecision:
        return self.machine(kind).evaluate(current_state, event, target)

    def accepts_new_activity(self, work_state: str) -> bool:
        return work_state in self.activity_creation_states

    def is_closed(self, work_state: str) -> bool:
        return self.work.is_terminal(work_state)

    def aggregate_event(self, activity_states: Sequence[str]) -> WorkflowEvent | None:
        """Event implied for the work by the states of ALL its activities.

        Only a complete set counts: with no activities, or with any activity
        still open, nothing is raised.
        """
        if not activity_states:
            return None
        if all(self.activity.is_terminal(s) for s in activity_states):
            return WorkflowEvent.ACTIVITIES_COMPLETED
        return None
