"""
WorkConfiguration schema.

Defines the human-authored configuration artifact: engine settings plus
the bootstrap catalog of domains, locations, shop-groups, work-types and
activity-types.  YAML is parsed into these types by the loader, checked by
the validator and seeded into the database by the bridges.

Cross references inside the catalog are by name (work-type and
activity-type titles within their domain); ids only exist once the
catalog has been applied.
"""

from __future__ import annotations

from dataclasses import dataclass

from work_kernel.domain.values import ValueType

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineSettings:
    """Database engine and orchestrator settings."""

    database_url: str
    pool_size: int = 20
    max_overflow: int = 10
    max_retries: int = 5
    echo: bool = False


# ---------------------------------------------------------------------------
# Reference records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LocationDef:
    name: str
    description: str | None = None


@dataclass(frozen=True)
class ShopGroupDef:
    name: str
    description: str | None = None
    user_ids: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Type catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomFieldDef:
    """A custom field declared on a work-type or activity-type."""

    name: str
    value_type: ValueType
    label: str | None = None
    description: str | None = None
    group: str | None = None
    lov_field_reference: str | None = None
    is_mandatory: bool = False


@dataclass(frozen=True)
class ActivityTypeDef:
    title: str
    description: str | None = None
    custom_fields: tuple[CustomFieldDef, ...] = ()


@dataclass(frozen=True)
class WorkTypeDef:
    """A work-type; child and activity types are referenced by title."""

    title: str
    workflow_id: str
    validator_name: str
    description: str | None = None
    custom_fields: tuple[CustomFieldDef, ...] = ()
    child_work_types: tuple[str, ...] = ()
    activity_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class DomainDef:
    name: str
    description: str | None = None
    workflow_ids: tuple[str, ...] = ()
    work_types: tuple[WorkTypeDef, ...] = ()
    activity_types: tuple[ActivityTypeDef, ...] = ()


@dataclass(frozen=True)
class WorkCatalog:
    """Everything the bridges seed into an empty (or partially seeded) database."""

    domains: tuple[DomainDef, ...] = ()
    locations: tuple[LocationDef, ...] = ()
    shop_groups: tuple[ShopGroupDef, ...] = ()


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkConfiguration:
    """The validated configuration returned by ``get_active_config()``."""

    config_id: str
    version: int
    engine: EngineSettings
    catalog: WorkCatalog
    checksum: str = ""
