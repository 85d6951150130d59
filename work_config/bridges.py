"""
Config -> Kernel Bridges.

Functions that turn a ``WorkCatalog`` into catalog rows through the
kernel's ``CatalogService``.  They live in work_config (the producer)
because the kernel must never import work_config.

Usage:
    from work_config import get_active_config
    from work_config.bridges import apply_catalog

    config = get_active_config()
    with session_scope() as session:
        ids = apply_catalog(session, config.catalog)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from work_config.schema import CustomFieldDef, DomainDef, WorkCatalog
from work_kernel.domain.clock import Clock
from work_kernel.domain.dtos import CustomFieldDefinition
from work_kernel.domain.workflow_registry import WorkflowRegistry
from work_kernel.logging_config import get_logger
from work_kernel.services.catalog_service import CatalogService

logger = get_logger("config.bridges")


@dataclass
class CatalogIds:
    """Ids of the seeded catalog, keyed by configured name.

    Type maps are keyed by ``(domain name, title)``.
    """

    domains: dict[str, UUID] = field(default_factory=dict)
    locations: dict[str, UUID] = field(default_factory=dict)
    shop_groups: dict[str, UUID] = field(default_factory=dict)
    work_types: dict[tuple[str, str], UUID] = field(default_factory=dict)
    activity_types: dict[tuple[str, str], UUID] = field(default_factory=dict)


def build_field_definitions(fields: tuple[CustomFieldDef, ...]) -> list[CustomFieldDefinition]:
    return [
        CustomFieldDefinition.create(
            f.name,
            f.value_type,
            label=f.label,
            description=f.description,
            group=f.group,
            lov_field_reference=f.lov_field_reference,
            is_mandatory=f.is_mandatory,
        )
        for f in fields
    ]


def apply_catalog(
    session: Session,
    catalog: WorkCatalog,
    registry: WorkflowRegistry | None = None,
    clock: Clock | None = None,
    actor: str = "config",
) -> CatalogIds:
    """Seed ``catalog`` into the session's database.

    Idempotent: records whose name (or title within the domain) already
    exists are reused as they are, never updated.  Flush-only; the caller
    commits.
    """
    catalog_service = CatalogService(session, registry=registry, clock=clock)
    ids = CatalogIds()

    for loc in catalog.locations:
        existing = catalog_service.find_location_by_name(loc.name)
        info = existing or catalog_service.create_location(loc.name, loc.description, actor=actor)
        ids.locations[loc.name] = info.id

    for group in catalog.shop_groups:
        existing = catalog_service.find_shop_group_by_name(group.name)
        info = existing or catalog_service.create_shop_group(
            group.name, group.description, group.user_ids, actor=actor,
        )
        ids.shop_groups[group.name] = info.id

    for domain in catalog.domains:
        _apply_domain(catalog_service, domain, ids, actor)

    logger.info(
        "catalog_applied",
        extra={
            "domain_count": len(ids.domains),
            "work_type_count": len(ids.work_types),
            "activity_type_count": len(ids.activity_types),
        },
    )
    return ids


def _apply_domain(
    catalog_service: CatalogService, domain: DomainDef, ids: CatalogIds, actor: str,
) -> None:
    existing = catalog_service.find_domain_by_name(domain.name)
    domain_id = (
        existing
        or catalog_service.create_domain(
            domain.name, domain.description, domain.workflow_ids, actor=actor,
        )
    ).id
    ids.domains[domain.name] = domain_id

    for activity_type in domain.activity_types:
        found = catalog_service.find_activity_type_by_title(domain_id, activity_type.title)
        info = found or catalog_service.create_activity_type(
            domain_id,
            activity_type.title,
            activity_type.description,
            build_field_definitions(activity_type.custom_fields),
            actor=actor,
        )
        ids.activity_types[(domain.name, activity_type.title)] = info.id

    # Work-types may reference each other (or themselves) as children, so
    # they are created first and linked in a second pass.
    created: list = []
    for work_type in domain.work_types:
        found = catalog_service.find_work_type_by_title(domain_id, work_type.title)
        if found is None:
            found = catalog_service.create_work_type(
                domain_id,
                work_type.title,
                work_type.workflow_id,
                work_type.validator_name,
                description=work_type.description,
                custom_fields=build_field_definitions(work_type.custom_fields),
                activity_type_ids=[
                    ids.activity_types[(domain.name, t)] for t in work_type.activity_types
                ],
                actor=actor,
            )
            created.append((work_type, found))
        ids.work_types[(domain.name, work_type.title)] = found.id

    for work_type, info in created:
        if work_type.child_work_types:
            catalog_service.update_work_type(
                info.id,
                expected_version=info.version,
                child_work_type_ids=[
                    ids.work_types[(domain.name, t)] for t in work_type.child_work_types
                ],
                actor=actor,
            )
