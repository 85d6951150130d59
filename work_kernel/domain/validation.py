"""
Field-level validation checks (pure, no I/O).

Each ``check_*`` returns a ``CheckResult``; none of them raise and none of
them stop at the first problem.  Validators combine them with
``ValidationResult.from_checks`` so a caller always sees every failing
field at once.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable
from uuid import UUID

from work_kernel.domain.dtos import (
    CheckResult,
    CustomFieldDefinition,
    CustomFieldInput,
    ValidationResult,
)
from work_kernel.domain.values import ValueType

_TRUE = {"true", "yes", "1"}
_FALSE = {"false", "no", "0"}


def parse_value(value_type: ValueType, value: Any) -> Any:
    """Coerce ``value`` to the Python type behind ``value_type``.

    Raises:
        ValueError: if the value does not fit the declared type.
    """
    if value_type in (ValueType.STRING, ValueType.LOV):
        if not isinstance(value, str):
            raise ValueError(f"expected text, got {type(value).__name__}")
        return value
    if value_type is ValueType.NUMBER:
        if isinstance(value, bool):
            raise ValueError("expected an integer, got a boolean")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            return int(value.strip())
        raise ValueError(f"expected an integer, got {type(value).__name__}")
    if value_type is ValueType.DOUBLE:
        if isinstance(value, bool):
            raise ValueError("expected a number, got a boolean")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            return float(value.strip())
        raise ValueError(f"expected a number, got {type(value).__name__}")
    if value_type is ValueType.LOGICAL:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
            return value.strip().lower() in _TRUE
        raise ValueError(f"expected a boolean, got {value!r}")
    if value_type is ValueType.DATE:
        if isinstance(value, datetime):
            raise ValueError("expected a date, got a datetime")
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return date.fromisoformat(value.strip())
        raise ValueError(f"expected a date, got {type(value).__name__}")
    if value_type is ValueType.DATE_TIME:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return datetime.fromisoformat(value.strip())
        raise ValueError(f"expected a datetime, got {type(value).__name__}")
    raise ValueError(f"unsupported value type {value_type}")


def serialize_value(value_type: ValueType, value: Any) -> str:
    """Text form stored in the database for an already-parsed value."""
    if value_type is ValueType.LOGICAL:
        return "true" if value else "false"
    if value_type in (ValueType.DATE, ValueType.DATE_TIME):
        return value.isoformat()
    return str(value)


def deserialize_value(value_type: ValueType, text: str) -> Any:
    return parse_value(value_type, text)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def check_string_field(value: str | None, field_name: str) -> CheckResult[str]:
    """The field must be a non-empty string."""
    if value is None or not str(value).strip():
        return CheckResult.failure(
            f"The field '{field_name}' is required",
            field=field_name,
            code="REQUIRED_FIELD",
        )
    return CheckResult.success(value)


def check_field_presence(
    definitions: Iterable[CustomFieldDefinition],
    inputs: Iterable[CustomFieldInput] | None,
    field_name: str,
) -> CheckResult[CustomFieldInput]:
    """The custom field called ``field_name`` must be defined and valorized."""
    definition = next(
        (d for d in definitions if d.name.lower() == field_name.lower()), None
    )
    if definition is None:
        return CheckResult.failure(
            f"The custom field '{field_name}' is not present",
            field=field_name,
            code="UNKNOWN_CUSTOM_FIELD",
        )
    return check_definition_present(definition, inputs)


def check_definition_present(
    definition: CustomFieldDefinition,
    inputs: Iterable[CustomFieldInput] | None,
) -> CheckResult[CustomFieldInput]:
    """A non-blank value must be supplied for ``definition``'s id."""
    found = next(
        (i for i in (inputs or ()) if i.field_id == definition.id and not is_blank(i.value)),
        None,
    )
    if found is None:
        return CheckResult.failure(
            f"The custom field '{definition.name}' is required",
            field=definition.name,
            code="MISSING_CUSTOM_FIELD",
        )
    return CheckResult.success(found)


def check_custom_field_value(
    definition: CustomFieldDefinition,
    field_input: CustomFieldInput,
) -> CheckResult[Any]:
    """The supplied value must match the field's declared value type."""
    try:
        parsed = parse_value(definition.value_type, field_input.value)
    except (TypeError, ValueError) as exc:
        return CheckResult.failure(
            f"The custom field '{definition.name}' must be of type "
            f"{definition.value_type.value}: {exc}",
            field=definition.name,
            code="INVALID_CUSTOM_FIELD_TYPE",
            details={"value_type": definition.value_type.value},
        )
    return CheckResult.success(parsed)


def check_custom_fields(
    definitions: tuple[CustomFieldDefinition, ...],
    inputs: tuple[CustomFieldInput, ...] | None,
) -> ValidationResult:
    """Check every supplied value and every mandatory definition.

    Unknown and duplicated field ids, type mismatches and missing mandatory
    fields are all reported together.
    """
    by_id: dict[UUID, CustomFieldDefinition] = {d.id: d for d in definitions}
    checks: list[CheckResult] = []
    seen: set[UUID] = set()

    for field_input in inputs or ():
        definition = by_id.get(field_input.field_id)
        if definition is None:
            checks.append(
                CheckResult.failure(
                    f"The custom field '{field_input.field_id}' is not present",
                    field=str(field_input.field_id),
                    code="UNKNOWN_CUSTOM_FIELD",
                )
            )
            continue
        if field_input.field_id in seen:
            checks.append(
                CheckResult.failure(
                    f"The custom field '{definition.name}' is given more than once",
                    field=definition.name,
                    code="DUPLICATE_CUSTOM_FIELD",
                )
            )
            continue
        seen.add(field_input.field_id)
        if is_blank(field_input.value):
            # Blank optional values are dropped; blank mandatory ones are
            # reported by the presence check below.
            continue
        checks.append(check_custom_field_value(definition, field_input))

    for definition in definitions:
        if definition.is_mandatory:
            checks.append(check_definition_present(definition, inputs))

    return ValidationResult.from_checks(*checks)
