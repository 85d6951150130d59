"""
Configuration Validator (``work_config.validator``).

Responsibility
--------------
Validates a ``WorkConfiguration`` before it is handed out, so that seeding
the catalog cannot fail half way on a reference the file itself got wrong.

Invariants enforced
-------------------
* Workflow ids and validator names resolve in the registry.
* A work-type's workflow is one its domain enables (when the domain lists any).
* Child work-type and activity-type references name types of the same domain.
* Names are unique: domains, locations, shop-groups, type titles within a
  domain and custom field names within a type.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the
  configuration MUST NOT be used.
* Validation warnings  -> usable, but worth a look.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from work_config.schema import CustomFieldDef, DomainDef, WorkConfiguration
from work_kernel.domain.workflow_registry import WorkflowRegistry


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(
    config: WorkConfiguration,
    registry: WorkflowRegistry | None = None,
) -> ConfigValidationResult:
    """Validate a configuration against ``registry`` (built-ins by default)."""
    registry = registry or WorkflowRegistry.default()
    result = ConfigValidationResult()

    _validate_engine(config, result)
    catalog = config.catalog
    _validate_unique("domain", (d.name for d in catalog.domains), result)
    _validate_unique("location", (loc.name for loc in catalog.locations), result)
    _validate_unique("shop-group", (g.name for g in catalog.shop_groups), result)
    for domain in catalog.domains:
        _validate_domain(domain, registry, result)

    return result


def _validate_engine(config: WorkConfiguration, result: ConfigValidationResult) -> None:
    engine = config.engine
    if not engine.database_url:
        result.add_error("engine.database_url is empty")
    if engine.max_retries < 0:
        result.add_error(f"engine.max_retries must not be negative (got {engine.max_retries})")
    if engine.pool_size < 1:
        result.add_error(f"engine.pool_size must be positive (got {engine.pool_size})")


def _validate_unique(kind: str, names: Iterable[str], result: ConfigValidationResult) -> None:
    for name, count in Counter(names).items():
        if count > 1:
            result.add_error(f"Duplicate {kind}: '{name}' appears {count} times")


def _validate_fields(
    owner: str, fields: tuple[CustomFieldDef, ...], result: ConfigValidationResult,
) -> None:
    _validate_unique(f"custom field on {owner}", (f.name.lower() for f in fields), result)


def _validate_domain(
    domain: DomainDef, registry: WorkflowRegistry, result: ConfigValidationResult,
) -> None:
    for workflow_id in domain.workflow_ids:
        if not registry.has_workflow(workflow_id):
            result.add_error(f"Domain '{domain.name}' enables unknown workflow '{workflow_id}'")

    work_titles = {w.title for w in domain.work_types}
    activity_titles = {a.title for a in domain.activity_types}
    _validate_unique(f"work-type in '{domain.name}'", (w.title for w in domain.work_types), result)
    _validate_unique(
        f"activity-type in '{domain.name}'", (a.title for a in domain.activity_types), result,
    )

    if not domain.work_types:
        result.add_warning(f"Domain '{domain.name}' defines no work-types")

    for activity_type in domain.activity_types:
        _validate_fields(f"activity-type '{activity_type.title}'", activity_type.custom_fields, result)

    for work_type in domain.work_types:
        label = f"Work-type '{work_type.title}' in '{domain.name}'"
        if not registry.has_workflow(work_type.workflow_id):
            result.add_error(f"{label} uses unknown workflow '{work_type.workflow_id}'")
        elif domain.workflow_ids and work_type.workflow_id not in domain.workflow_ids:
            result.add_error(
                f"{label} uses workflow '{work_type.workflow_id}' not enabled for the domain"
            )
        if not registry.has_validator(work_type.validator_name):
            result.add_error(f"{label} uses unknown validator '{work_type.validator_name}'")
        for child in work_type.child_work_types:
            if child not in work_titles:
                result.add_error(f"{label} references unknown child work-type '{child}'")
        for activity in work_type.activity_types:
            if activity not in activity_titles:
                result.add_error(f"{label} references unknown activity-type '{activity}'")
        _validate_fields(f"work-type '{work_type.title}'", work_type.custom_fields, result)
