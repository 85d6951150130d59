"""
Typed exception hierarchy for the work kernel.

Every error raised by the kernel is a ``WorkKernelError`` subclass with a
class-level ``code`` (machine-readable, stable across releases) and the
context needed to report it stored as attributes, so callers catch by type
and read structured fields instead of parsing messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkKernelError (base)
    |
    +-- ReferenceNotFoundError
    |   +-- DomainNotFoundError
    |   +-- WorkTypeNotFoundError
    |   +-- ActivityTypeNotFoundError
    |   +-- LocationNotFoundError
    |   +-- ShopGroupNotFoundError
    |   +-- WorkNotFoundError
    |   +-- ActivityNotFoundError
    |
    +-- ValidationFailedError
    |
    +-- WorkflowError
    |   +-- IllegalTransitionError
    |   +-- ChildTypeNotPermittedError
    |
    +-- RegistryError
    |   +-- WorkflowNotFoundError
    |   +-- ValidatorNotFoundError
    |
    +-- CatalogError
    |   +-- WorkTypeReferencedError
    |   +-- DuplicateNameError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- AllocationFailureError
    |
    +-- HistoryImmutableError
    |
    +-- ImmutableFieldError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Reference       | REFERENCE_NOT_FOUND         | Referenced id does not exist
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_FAILED           | One or more field/business checks failed
----------------|-----------------------------|-----------------------------------------
Workflow        | ILLEGAL_TRANSITION          | State change not allowed from current state
                | CHILD_TYPE_NOT_PERMITTED    | Type not allowed under the parent type
----------------|-----------------------------|-----------------------------------------
Registry        | WORKFLOW_NOT_FOUND          | Unknown workflow id
                | VALIDATOR_NOT_FOUND         | Unknown validator name
----------------|-----------------------------|-----------------------------------------
Catalog         | WORK_TYPE_REFERENCED        | Type still used by work/activities
                | DUPLICATE_NAME              | Name already taken in the domain
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_MODIFICATION     | Version check failed after all retries
----------------|-----------------------------|-----------------------------------------
Allocation      | ALLOCATION_FAILURE          | Work number could not be issued
----------------|-----------------------------|-----------------------------------------
History         | HISTORY_IMMUTABLE           | Attempt to rewrite or delete a history entry
----------------|-----------------------------|-----------------------------------------
Identity        | IMMUTABLE_FIELD             | Work number or owning work id changed
"""

from __future__ import annotations

from typing import Any


class WorkKernelError(Exception):
    """Base exception for all work kernel errors."""

    code: str = "WORK_KERNEL_ERROR"


# Reference errors


class ReferenceNotFoundError(WorkKernelError):
    """A referenced id does not exist. Never retried."""

    code: str = "REFERENCE_NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: Any, entity_type: str | None = None):
        if entity_type is not None:
            self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class DomainNotFoundError(ReferenceNotFoundError):
    entity_type = "domain"


class WorkTypeNotFoundError(ReferenceNotFoundError):
    entity_type = "work_type"


class ActivityTypeNotFoundError(ReferenceNotFoundError):
    entity_type = "activity_type"


class LocationNotFoundError(ReferenceNotFoundError):
    entity_type = "location"


class ShopGroupNotFoundError(ReferenceNotFoundError):
    entity_type = "shop_group"


class WorkNotFoundError(ReferenceNotFoundError):
    entity_type = "work"


class ActivityNotFoundError(ReferenceNotFoundError):
    entity_type = "activity"


# Validation


class ValidationFailedError(WorkKernelError):
    """
    One or more checks failed.

    Carries every individual failure, not only the first one found, so the
    caller can report all problems at once.
    """

    code: str = "VALIDATION_FAILED"

    def __init__(self, errors: tuple | list, subject: str | None = None):
        self.errors = tuple(errors)
        self.subject = subject
        self.fields = tuple(e.field for e in self.errors if e.field)
        detail = "; ".join(e.message for e in self.errors)
        prefix = f"Validation failed for {subject}" if subject else "Validation failed"
        super().__init__(f"{prefix}: {detail}")


# Workflow


class WorkflowError(WorkKernelError):
    """Base exception for workflow errors."""

    code: str = "WORKFLOW_ERROR"


class IllegalTransitionError(WorkflowError):
    """Requested state change is not allowed from the entity's current state."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        from_state: str,
        requested: str,
        reason: str | None = None,
        errors: tuple = (),
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.from_state = from_state
        self.requested = requested
        self.reason = reason
        self.errors = tuple(errors)
        msg = f"Illegal transition for {entity_type} {entity_id}: {from_state} -> {requested}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ChildTypeNotPermittedError(WorkflowError):
    """A child type is not among the types permitted by the parent's type."""

    code: str = "CHILD_TYPE_NOT_PERMITTED"

    def __init__(self, parent_type_id: Any, child_type_id: Any, errors: tuple = ()):
        self.parent_type_id = str(parent_type_id)
        self.child_type_id = str(child_type_id)
        self.errors = tuple(errors)
        super().__init__(
            f"Type {child_type_id} is not permitted as a child of {parent_type_id}"
        )


# Registry


class RegistryError(WorkKernelError):
    code: str = "REGISTRY_ERROR"


class WorkflowNotFoundError(RegistryError):
    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str, available: list[str] | None = None):
        self.workflow_id = workflow_id
        self.available = sorted(available or [])
        super().__init__(
            f"No workflow registered under '{workflow_id}'. Available: {self.available}"
        )


class ValidatorNotFoundError(RegistryError):
    code: str = "VALIDATOR_NOT_FOUND"

    def __init__(self, validator_name: str, available: list[str] | None = None):
        self.validator_name = validator_name
        self.available = sorted(available or [])
        super().__init__(
            f"No validator registered under '{validator_name}'. Available: {self.available}"
        )


# Catalog


class CatalogError(WorkKernelError):
    code: str = "CATALOG_ERROR"


class WorkTypeReferencedError(CatalogError):
    """Work/activity type cannot be deleted while instances refer to it."""

    code: str = "WORK_TYPE_REFERENCED"

    def __init__(self, type_id: Any, reference_count: int):
        self.type_id = str(type_id)
        self.reference_count = reference_count
        super().__init__(
            f"Type {type_id} is referenced by {reference_count} instance(s)"
        )


class DuplicateNameError(CatalogError):
    code: str = "DUPLICATE_NAME"

    def __init__(self, entity_type: str, name: str):
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} named '{name}' already exists")


# Concurrency


class ConcurrencyError(WorkKernelError):
    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """Optimistic version check kept failing; the command was abandoned.

    ``entity_id`` names the command's target.  For activity commands the
    conflicting row is usually the owning work, whose version moves on every
    activity write; ``work_id`` carries it.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        attempts: int = 1,
        work_id: Any = None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.attempts = attempts
        self.work_id = str(work_id) if work_id is not None else None
        owner = f" of work {work_id}" if work_id is not None and entity_type != "work" else ""
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}{owner} "
            f"(gave up after {attempts} attempt(s))"
        )


# Allocation


class AllocationFailureError(WorkKernelError):
    """The sequence allocator could not issue a number."""

    code: str = "ALLOCATION_FAILURE"

    def __init__(self, sequence_name: str, reason: str):
        self.sequence_name = sequence_name
        self.reason = reason
        super().__init__(f"Could not allocate from sequence '{sequence_name}': {reason}")


# History


class HistoryImmutableError(WorkKernelError):
    """History entries are append-only."""

    code: str = "HISTORY_IMMUTABLE"

    def __init__(self, entity_type: str, entity_id: Any, operation: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.operation = operation
        super().__init__(
            f"History of {entity_type} {entity_id} is append-only; {operation} refused"
        )


# Identity


class ImmutableFieldError(WorkKernelError):
    """A field fixed at insert was changed on an existing row."""

    code: str = "IMMUTABLE_FIELD"

    def __init__(self, entity_type: str, entity_id: Any, fields: list[str]):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.fields = fields
        super().__init__(
            f"{entity_type} {entity_id}: {', '.join(fields)} cannot change after creation"
        )
