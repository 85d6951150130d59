"""
Canonical workflow types (``work_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the work and activity state machines: states are
opaque labels, transitions are keyed by the event that fires them, and
``Workflow.evaluate`` turns (current state, event) into a decision.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from ``db/``,
``services/``, ``selectors/`` or ``models/``.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* Explicit events that match no transition are rejected; automatic events
  that match no transition leave the state unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from work_kernel.domain.values import EntityKind


class WorkflowEvent(str, Enum):
    """What asks for a state change."""

    # Explicit, user-requested
    SET_STATUS = "set_status"
    REVIEW = "review"
    # Automatic, raised by the orchestrator
    ACTIVITY_CREATED = "activity_created"
    ACTIVITIES_COMPLETED = "activities_completed"

    @property
    def is_automatic(self) -> bool:
        return self in (WorkflowEvent.ACTIVITY_CREATED, WorkflowEvent.ACTIVITIES_COMPLETED)


class DecisionKind(str, Enum):
    MOVE = "move"
    STAY = "stay"
    REJECT = "reject"


@dataclass(frozen=True)
class Transition:
    """A legal state change, fired by ``event``."""

    from_state: str
    to_state: str
    event: WorkflowEvent
    description: str = ""


@dataclass(frozen=True)
class TransitionDecision:
    """Outcome of evaluating an event against a state."""

    kind: DecisionKind
    from_state: str
    event: WorkflowEvent
    to_state: str | None = None
    reason: str | None = None

    @property
    def accepted(self) -> bool:
        return self.kind is not DecisionKind.REJECT

    @property
    def changed(self) -> bool:
        return self.kind is DecisionKind.MOVE

    @classmethod
    def move(cls, from_state: str, to_state: str, event: WorkflowEvent) -> TransitionDecision:
        return cls(DecisionKind.MOVE, from_state, event, to_state=to_state)

    @classmethod
    def stay(cls, from_state: str, event: WorkflowEvent) -> TransitionDecision:
        return cls(DecisionKind.STAY, from_state, event, to_state=from_state)

    @classmethod
    def reject(cls, from_state: str, event: WorkflowEvent, reason: str) -> TransitionDecision:
        return cls(DecisionKind.REJECT, from_state, event, reason=reason)


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for one entity kind.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """

    name: str
    entity_kind: EntityKind
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state} is not a state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.from_state}->{t.to_state} "
                    "references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state} has an "
                    "outgoing transition"
                )

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def allowed_targets(self, state: str, event: WorkflowEvent | None = None) -> tuple[str, ...]:
        """States reachable in one step from ``state`` (optionally for one event)."""
        return tuple(
            t.to_state
            for t in self.transitions
            if t.from_state == state and (event is None or t.event is event)
        )

    def evaluate(
        self,
        current_state: str,
        event: WorkflowEvent,
        target: str | None = None,
    ) -> TransitionDecision:
        """Decide the next state for ``event`` raised while in ``current_state``.

        ``target`` is required for ``SET_STATUS`` and names the requested state.
        """
        if event is WorkflowEvent.SET_STATUS and target is None:
            raise ValueError("SET_STATUS requires a target state")

        if current_state not in self.states:
            return TransitionDecision.reject(
                current_state, event, f"unknown state for workflow {self.name}"
            )

        for t in self.transitions:
            if t.from_state != current_state or t.event is not event:
                continue
            if target is not None and t.to_state != target:
                continue
            return TransitionDecision.move(current_state, t.to_state, event)

        if event.is_automatic:
            return TransitionDecision.stay(current_state, event)

        if self.is_terminal(current_state):
            return TransitionDecision.reject(
                current_state, event, f"{current_state} is a terminal state"
            )
        requested = target or event.value
        return TransitionDecision.reject(
            current_state,
            event,
            f"{requested} is not reachable from {current_state}",
        )
