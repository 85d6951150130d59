"""
WorkflowOrchestrator -- the single entry point for work/activity commands.

Responsibility:
    Sequences reference resolution, validation, state-machine evaluation,
    number allocation and persistence for each command:

    create_work:         resolve -> validate -> allocate number -> New -> history
    create_activity:     resolve -> validate (permitted type, work state) ->
                         insert -> evaluate ACTIVITY_CREATED on the work
    set_activity_status: resolve -> validate target -> status + history ->
                         re-scan ALL sibling activities -> maybe promote work
    review_work:         resolve -> validate work is in Review -> Closed + history
    update_work:         resolve -> validate -> apply (refused once Closed)

Architecture position:
    Kernel > Services.  Owns its transaction boundaries: every command runs
    in its own session and commits exactly once.  The services it drives
    only flush.

Invariants enforced:
    - Atomic per command: state, history, number allocation and work
      version bump commit together or not at all.
    - Validation runs before any write and reports every failing check.
    - Per-entity linearizability: versioned rows make a concurrent writer
      fail at flush with StaleDataError; the whole command is then retried
      from a fresh read, up to ``max_retries`` attempts.

Failure modes:
    - ReferenceNotFoundError subclasses: unknown ids.  Never retried.
    - ValidationFailedError, IllegalTransitionError,
      ChildTypeNotPermittedError: from the validation result.  Never retried.
    - AllocationFailureError: number allocation failed.  Never retried.
    - ConcurrentModificationError: retry budget exhausted.
"""

from __future__ import annotations

import time
from typing import Any, Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from work_kernel.domain.clock import Clock, SystemClock
from work_kernel.domain.dtos import (
    ActivityStatusChange,
    NewActivity,
    NewWork,
    ReviewWork,
    UpdateWork,
    ValidationResult,
    WorkView,
)
from work_kernel.domain.values import EntityKind
from work_kernel.domain.workflow import WorkflowEvent
from work_kernel.domain.workflow_registry import WorkflowBinding, WorkflowRegistry
from work_kernel.domain.workflows.validators import (
    CHILD_TYPE_NOT_PERMITTED,
    ILLEGAL_TRANSITION,
    ValidationContext,
)
from work_kernel.exceptions import (
    ChildTypeNotPermittedError,
    ConcurrentModificationError,
    IllegalTransitionError,
    ValidationFailedError,
    WorkNotFoundError,
    WorkTypeNotFoundError,
)
from work_kernel.logging_config import LogContext, get_logger
from work_kernel.models.work import WorkModel
from work_kernel.selectors.work_selector import WorkSelector
from work_kernel.services.catalog_service import CatalogService
from work_kernel.services.work_store import WorkStore

logger = get_logger("services.workflow_orchestrator")

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 5


class WorkflowOrchestrator:
    """
    Command entry point over a session factory.

    Safe to share between threads: every command draws its own session.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        registry: WorkflowRegistry | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff: float = 0.01,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._registry = registry or WorkflowRegistry.default()
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff

    @property
    def registry(self) -> WorkflowRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_work(self, command: NewWork, actor: str = "system") -> UUID:
        """
        Create a work in its workflow's initial state.

        Returns:
            The new work's id.

        Raises:
            ReferenceNotFoundError: unknown domain, work-type, location,
                shop-group or parent work.
            ValidationFailedError: one or more field checks failed.
            ChildTypeNotPermittedError: the parent's type does not allow
                this work's type.
            AllocationFailureError: no work number could be issued.
        """
        return self._run(
            "create_work",
            actor,
            "work",
            None,
            lambda session: self._create_work(session, command, actor),
        )

    def create_activity(self, command: NewActivity, actor: str = "system") -> UUID:
        """
        Attach an activity to a work; the first one schedules the work.

        Raises:
            ReferenceNotFoundError: unknown work or activity-type.
            ChildTypeNotPermittedError: the activity-type is not permitted
                for the work's type.
            IllegalTransitionError: the work no longer accepts activities.
            ValidationFailedError: one or more field checks failed.
        """
        return self._run(
            "create_activity",
            actor,
            "work",
            command.work_id,
            lambda session: self._create_activity(session, command, actor),
        )

    def set_activity_status(self, command: ActivityStatusChange, actor: str = "system") -> None:
        """
        Move an activity to ``new_status`` and re-evaluate its work.

        Raises:
            ReferenceNotFoundError: unknown work or activity.
            IllegalTransitionError: ``new_status`` is not reachable from the
                activity's current state, or the work is closed.
        """
        self._run(
            "set_activity_status",
            actor,
            "activity",
            command.activity_id,
            lambda session: self._set_activity_status(session, command, actor),
            work_id=command.work_id,
        )

    def review_work(self, command: ReviewWork, actor: str = "system") -> None:
        """
        Close a work that is in Review.

        Raises:
            ReferenceNotFoundError: unknown work.
            IllegalTransitionError: the work is not in Review.
            ValidationFailedError: the work-type's validator rejected the
                follow-up description.
        """
        self._run(
            "review_work",
            actor,
            "work",
            command.work_id,
            lambda session: self._review_work(session, command, actor),
        )

    def update_work(self, command: UpdateWork, actor: str = "system") -> WorkView:
        """
        Apply a partial update to an open work.

        Returns:
            The updated work.

        Raises:
            ReferenceNotFoundError: unknown work, location or shop-group.
            ValidationFailedError: field checks failed or the work is closed.
        """
        return self._run(
            "update_work",
            actor,
            "work",
            command.work_id,
            lambda session: self._update_work(session, command, actor),
        )

    # ------------------------------------------------------------------
    # Transaction and retry
    # ------------------------------------------------------------------

    def _run(
        self,
        command_name: str,
        actor: str,
        entity_type: str,
        entity_id: UUID | None,
        body: Callable[[Session], T],
        work_id: UUID | None = None,
    ) -> T:
        work_id = work_id or (entity_id if entity_type == "work" else None)
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor=actor,
            command=command_name,
            work_id=str(work_id) if work_id else None,
            activity_id=str(entity_id) if entity_type == "activity" else None,
        ):
            t0 = time.monotonic()
            attempt = 0
            while True:
                attempt += 1
                session = self._session_factory()
                try:
                    result = body(session)
                    session.commit()
                    logger.info(
                        "command_completed",
                        extra={
                            "attempts": attempt,
                            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                        },
                    )
                    return result
                except (StaleDataError, OperationalError, IntegrityError) as exc:
                    session.rollback()
                    if not _is_retryable(exc):
                        logger.error("command_failed", exc_info=True)
                        raise
                    if attempt >= self._max_retries:
                        logger.error(
                            "command_retries_exhausted",
                            extra={"attempts": attempt, "error": type(exc).__name__},
                        )
                        raise ConcurrentModificationError(
                            entity_type, entity_id or "new", attempt, work_id=work_id
                        ) from exc
                    logger.warning(
                        "command_retry",
                        extra={"attempt": attempt, "error": type(exc).__name__},
                    )
                    time.sleep(self._retry_backoff * attempt)
                except Exception:
                    session.rollback()
                    raise
                finally:
                    session.close()

    # ------------------------------------------------------------------
    # Command bodies (run inside one transaction)
    # ------------------------------------------------------------------

    def _create_work(self, session: Session, command: NewWork, actor: str) -> UUID:
        catalog = CatalogService(session, self._registry, self._clock)
        store = WorkStore(session)

        domain = catalog.get_domain(command.domain_id)
        work_type = catalog.get_work_type(command.work_type_id)
        if work_type.domain_id != domain.id:
            raise WorkTypeNotFoundError(command.work_type_id)
        catalog.get_location(command.location_id)
        catalog.get_shop_group(command.shop_group_id)

        parent_work_type = None
        if command.parent_work_id is not None:
            parent = store.load_work(command.parent_work_id)
            if parent.domain_id != domain.id:
                raise WorkNotFoundError(command.parent_work_id)
            parent_work_type = catalog.get_work_type(parent.work_type_id)

        binding = self._registry.bind(work_type)
        ctx = ValidationContext(
            command=command,
            work_type=work_type,
            workflow=binding.workflow,
            parent_work_type=parent_work_type,
        )
        self._check(binding, ctx, {"work": None})

        initial_state = binding.workflow.initial_state(EntityKind.WORK)
        work = store.insert_work(command, work_type, initial_state, actor, self._clock.now())
        logger.info(
            "work_created",
            extra={
                "work_id": str(work.id),
                "work_number": work.work_number,
                "work_type_id": str(work_type.id),
                "status": initial_state,
            },
        )
        return work.id

    def _create_activity(self, session: Session, command: NewActivity, actor: str) -> UUID:
        catalog = CatalogService(session, self._registry, self._clock)
        store = WorkStore(session)

        work = store.load_work(command.work_id)
        work_type = catalog.get_work_type(work.work_type_id)
        activity_type = catalog.get_activity_type(command.activity_type_id)

        binding = self._registry.bind(work_type)
        ctx = ValidationContext(
            command=command,
            work_type=work_type,
            workflow=binding.workflow,
            work_state=work.status,
            activity_type=activity_type,
        )
        self._check(binding, ctx, {"work": work.id})

        now = self._clock.now()
        initial_state = binding.workflow.initial_state(EntityKind.ACTIVITY)
        activity = store.insert_activity(work, command, activity_type, initial_state, actor, now)
        logger.info(
            "activity_created",
            extra={
                "activity_id": str(activity.id),
                "activity_type_id": str(activity_type.id),
                "status": initial_state,
            },
        )

        decision = binding.evaluate_transition(
            EntityKind.WORK, work.status, WorkflowEvent.ACTIVITY_CREATED
        )
        self._apply_work_decision(store, work, decision, actor, now)
        return activity.id

    def _set_activity_status(
        self, session: Session, command: ActivityStatusChange, actor: str,
    ) -> None:
        catalog = CatalogService(session, self._registry, self._clock)
        store = WorkStore(session)

        work = store.load_work(command.work_id)
        activity = store.load_activity(work.id, command.activity_id)
        work_type = catalog.get_work_type(work.work_type_id)

        binding = self._registry.bind(work_type)
        ctx = ValidationContext(
            command=command,
            work_type=work_type,
            workflow=binding.workflow,
            work_state=work.status,
            activity_state=activity.status,
        )
        self._check(binding, ctx, {"work": work.id, "activity": activity.id})

        decision = binding.evaluate_transition(
            EntityKind.ACTIVITY, activity.status, WorkflowEvent.SET_STATUS, command.new_status
        )
        now = self._clock.now()
        from_state = activity.status
        store.change_status(
            activity, EntityKind.ACTIVITY, decision.to_state, actor, now, command.followup_comment
        )
        logger.info(
            "activity_status_changed",
            extra={"from_state": from_state, "to_state": decision.to_state},
        )

        # Re-scan every sibling: promotion needs ALL of them terminal.
        event = binding.workflow.aggregate_event(store.activity_states(work.id))
        if event is None:
            store.touch(work, actor, now)
            return
        work_decision = binding.evaluate_transition(EntityKind.WORK, work.status, event)
        self._apply_work_decision(store, work, work_decision, actor, now)

    def _review_work(self, session: Session, command: ReviewWork, actor: str) -> None:
        catalog = CatalogService(session, self._registry, self._clock)
        store = WorkStore(session)

        work = store.load_work(command.work_id)
        work_type = catalog.get_work_type(work.work_type_id)

        binding = self._registry.bind(work_type)
        ctx = ValidationContext(
            command=command,
            work_type=work_type,
            workflow=binding.workflow,
            work_state=work.status,
        )
        self._check(binding, ctx, {"work": work.id})

        decision = binding.evaluate_transition(EntityKind.WORK, work.status, WorkflowEvent.REVIEW)
        from_state = work.status
        store.change_status(
            work,
            EntityKind.WORK,
            decision.to_state,
            actor,
            self._clock.now(),
            command.followup_description,
        )
        logger.info(
            "work_reviewed",
            extra={"from_state": from_state, "to_state": decision.to_state},
        )

    def _update_work(self, session: Session, command: UpdateWork, actor: str) -> WorkView:
        catalog = CatalogService(session, self._registry, self._clock)
        store = WorkStore(session)

        work = store.load_work(command.work_id)
        work_type = catalog.get_work_type(work.work_type_id)
        if command.location_id is not None:
            catalog.get_location(command.location_id)
        if command.shop_group_id is not None:
            catalog.get_shop_group(command.shop_group_id)

        binding = self._registry.bind(work_type)
        ctx = ValidationContext(
            command=command,
            work_type=work_type,
            workflow=binding.workflow,
            work_state=work.status,
        )
        self._check(binding, ctx, {"work": work.id})

        store.apply_update(work, command, work_type, actor, self._clock.now())
        logger.info("work_updated", extra={"version": work.version})
        return WorkSelector(session).get_work_by_id(work.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_work_decision(self, store: WorkStore, work: WorkModel, decision, actor, now) -> None:
        if decision.changed:
            from_state = work.status
            store.change_status(work, EntityKind.WORK, decision.to_state, actor, now)
            logger.info(
                "work_promoted",
                extra={
                    "from_state": from_state,
                    "to_state": decision.to_state,
                    "event": decision.event.value,
                },
            )
        else:
            store.touch(work, actor, now)

    def _check(
        self,
        binding: WorkflowBinding,
        ctx: ValidationContext,
        entity_ids: dict[str, Any],
    ) -> None:
        result = binding.validate(ctx)
        if result.is_valid:
            return
        logger.warning(
            "validation_failed",
            extra={
                "validator": binding.validator.name,
                "codes": sorted({e.code for e in result.errors}),
                "fields": [e.field for e in result.errors if e.field],
            },
        )
        raise _error_for(result, entity_ids, type(ctx.command).__name__)


def _error_for(result: ValidationResult, entity_ids: dict[str, Any], subject: str) -> Exception:
    """Most specific exception for a failed validation; always carries all errors."""
    for error in result.errors:
        if error.code == ILLEGAL_TRANSITION:
            details = error.details or {}
            entity_type = details.get("entity_type", "work")
            return IllegalTransitionError(
                entity_type,
                entity_ids.get(entity_type),
                details.get("from_state"),
                details.get("requested"),
                reason=error.message,
                errors=result.errors,
            )
    for error in result.errors:
        if error.code == CHILD_TYPE_NOT_PERMITTED:
            details = error.details or {}
            return ChildTypeNotPermittedError(
                details.get("parent_type_id"),
                details.get("child_type_id"),
                errors=result.errors,
            )
    return ValidationFailedError(result.errors, subject=subject)


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, (StaleDataError, OperationalError)):
        return True
    # Two writers appending the same next history position.
    return isinstance(exc, IntegrityError) and "status_transition" in str(exc.orig)
