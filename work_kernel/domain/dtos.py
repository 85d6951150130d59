"""
Domain Data Transfer Objects.

Immutable value objects passed between the orchestrator, the pure
workflow/validation layer and the selectors.  No ORM, no I/O.

Groups:
    - Validation: ValidationError, CheckResult, ValidationResult
    - Catalog: DomainInfo, LocationInfo, ShopGroupInfo, CustomFieldDefinition,
      WorkTypeInfo, ActivityTypeInfo
    - Commands: NewWork, UpdateWork, NewActivity, ActivityStatusChange, ReviewWork
    - Views: StatusTransition, CustomFieldValue, WorkView, ActivityView,
      WorkTypeStatusStatistics
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from work_kernel.domain.values import ActivityTypeSubtype, ValueType

T = TypeVar("T")


# =============================================================================
# Validation
# =============================================================================


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Carries a machine-readable code, a human-readable message naming the
    offending field, the field name and optional details.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class CheckResult(Generic[T]):
    """
    Tagged outcome of one field check.

    Either ``ok`` with the validated payload, or not ok with the error that
    names the field.  Checks never raise; the pipeline aggregates them.
    """

    ok: bool
    payload: T | None = None
    error: ValidationError | None = None

    @classmethod
    def success(cls, payload: T | None = None) -> CheckResult[T]:
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(
        cls,
        message: str,
        field: str | None = None,
        code: str = "INVALID_FIELD",
        details: dict[str, Any] | None = None,
    ) -> CheckResult[T]:
        return cls(
            ok=False,
            error=ValidationError(code=code, message=message, field=field, details=details),
        )


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    Aggregates zero or more ValidationErrors. is_valid is True only when
    there are no errors; bool(result) == result.is_valid.
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors))

    @classmethod
    def from_checks(cls, *checks: CheckResult | ValidationResult) -> ValidationResult:
        """Fold check results (and nested results) into one, keeping every error."""
        errors: list[ValidationError] = []
        for check in checks:
            if isinstance(check, ValidationResult):
                errors.extend(check.errors)
            elif not check.ok and check.error is not None:
                errors.append(check.error)
        return cls.failure(*errors) if errors else cls.success()

    def merge(self, other: ValidationResult) -> ValidationResult:
        return ValidationResult.from_checks(self, other)

    def __bool__(self) -> bool:
        return self.is_valid


# =============================================================================
# Catalog
# =============================================================================


@dataclass(frozen=True)
class DomainInfo:
    id: UUID
    name: str
    description: str | None
    workflow_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class LocationInfo:
    id: UUID
    name: str
    description: str | None


@dataclass(frozen=True)
class ShopGroupInfo:
    id: UUID
    name: str
    description: str | None
    user_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class CustomFieldDefinition:
    """Definition of one custom field on a work or activity type."""

    id: UUID
    name: str
    value_type: ValueType
    label: str | None = None
    description: str | None = None
    group: str | None = None
    lov_field_reference: str | None = None
    is_mandatory: bool = False

    @classmethod
    def create(cls, name: str, value_type: ValueType, **kwargs: Any) -> CustomFieldDefinition:
        """New definition with a fresh id."""
        return cls(id=uuid4(), name=name, value_type=value_type, **kwargs)


@dataclass(frozen=True)
class WorkTypeInfo:
    """Administrator-defined schema for a class of work."""

    id: UUID
    domain_id: UUID
    title: str
    description: str | None
    workflow_id: str
    validator_name: str
    custom_fields: tuple[CustomFieldDefinition, ...] = ()
    child_work_type_ids: frozenset[UUID] = frozenset()
    activity_type_ids: frozenset[UUID] = frozenset()
    version: int = 1

    def field_by_name(self, name: str) -> CustomFieldDefinition | None:
        lowered = name.lower()
        for f in self.custom_fields:
            if f.name.lower() == lowered:
                return f
        return None


@dataclass(frozen=True)
class ActivityTypeInfo:
    """Administrator-defined schema for a class of activity."""

    id: UUID
    domain_id: UUID
    title: str
    description: str | None
    custom_fields: tuple[CustomFieldDefinition, ...] = ()
    version: int = 1

    def field_by_name(self, name: str) -> CustomFieldDefinition | None:
        lowered = name.lower()
        for f in self.custom_fields:
            if f.name.lower() == lowered:
                return f
        return None


# =============================================================================
# Commands
# =============================================================================


@dataclass(frozen=True)
class CustomFieldInput:
    """A value supplied by the caller for a custom field definition."""

    field_id: UUID
    value: Any


@dataclass(frozen=True)
class NewWork:
    domain_id: UUID
    work_type_id: UUID
    location_id: UUID
    shop_group_id: UUID
    title: str | None
    description: str | None
    custom_fields: tuple[CustomFieldInput, ...] = ()
    parent_work_id: UUID | None = None
    bucket_slot_id: str | None = None


@dataclass(frozen=True)
class UpdateWork:
    """Partial update; ``None`` leaves a field unchanged."""

    work_id: UUID
    title: str | None = None
    description: str | None = None
    custom_fields: tuple[CustomFieldInput, ...] | None = None
    location_id: UUID | None = None
    shop_group_id: UUID | None = None
    bucket_slot_id: str | None = None


@dataclass(frozen=True)
class NewActivity:
    work_id: UUID
    activity_type_id: UUID
    subtype: ActivityTypeSubtype
    title: str | None
    description: str | None
    custom_fields: tuple[CustomFieldInput, ...] = ()


@dataclass(frozen=True)
class ActivityStatusChange:
    work_id: UUID
    activity_id: UUID
    new_status: str
    followup_comment: str | None = None


@dataclass(frozen=True)
class ReviewWork:
    work_id: UUID
    followup_description: str | None = None


# =============================================================================
# Views
# =============================================================================


@dataclass(frozen=True)
class StatusTransition:
    """One history entry.  ``from_state`` is None only for the creation entry."""

    from_state: str | None
    to_state: str
    changed_at: datetime
    actor: str
    comment: str | None = None


@dataclass(frozen=True)
class CustomFieldValue:
    field_id: UUID
    name: str
    value_type: ValueType
    value: Any


@dataclass(frozen=True)
class WorkView:
    id: UUID
    domain_id: UUID
    work_type_id: UUID
    work_number: int
    title: str
    description: str | None
    location_id: UUID
    shop_group_id: UUID
    parent_work_id: UUID | None
    bucket_slot_id: str | None
    current_status: str
    status_comment: str | None
    custom_fields: tuple[CustomFieldValue, ...]
    activity_ids: tuple[UUID, ...]
    version: int
    created_at: datetime
    created_by: str
    history: tuple[StatusTransition, ...] | None = None


@dataclass(frozen=True)
class ActivityView:
    id: UUID
    work_id: UUID
    activity_type_id: UUID
    subtype: ActivityTypeSubtype
    title: str
    description: str | None
    current_status: str
    status_comment: str | None
    custom_fields: tuple[CustomFieldValue, ...]
    version: int
    created_at: datetime
    created_by: str
    history: tuple[StatusTransition, ...] | None = None


@dataclass(frozen=True)
class WorkTypeStatusStatistics:
    work_type_id: UUID
    status_counts: dict[str, int]
