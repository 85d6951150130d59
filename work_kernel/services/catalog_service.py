"""
CatalogService -- reference records and the work/activity type catalog.

Responsibility:
    Creates and resolves domains, locations and shop-groups, and manages the
    administrator-defined work-types and activity-types: create, read,
    version-guarded update and reference-guarded delete.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.

Invariants enforced:
    - Every type update is guarded by the caller's expected version and
      increments the version exactly once.
    - A type is never deleted while works or activities refer to it.
    - Workflow ids and validator names stored on a work-type resolve in the
      registry at the time they are written.

Failure modes:
    - ReferenceNotFoundError subclasses for unknown ids.
    - DuplicateNameError for a name or title already taken.
    - ConcurrentModificationError when the expected version is stale.
    - WorkTypeReferencedError on delete of a referenced type.
    - WorkflowNotFoundError / ValidatorNotFoundError for unknown keys.
"""

from __future__ import annotations

from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from work_kernel.domain.clock import Clock, SystemClock
from work_kernel.domain.dtos import (
    ActivityTypeInfo,
    CustomFieldDefinition,
    DomainInfo,
    LocationInfo,
    ShopGroupInfo,
    WorkTypeInfo,
)
from work_kernel.domain.workflow_registry import WorkflowRegistry
from work_kernel.exceptions import (
    ActivityTypeNotFoundError,
    ConcurrentModificationError,
    DomainNotFoundError,
    DuplicateNameError,
    LocationNotFoundError,
    ShopGroupNotFoundError,
    WorkflowNotFoundError,
    WorkTypeNotFoundError,
    WorkTypeReferencedError,
)
from work_kernel.logging_config import get_logger
from work_kernel.models.reference import DomainModel, LocationModel, ShopGroupModel
from work_kernel.models.work import ActivityModel, WorkModel
from work_kernel.models.work_type import (
    ActivityTypeModel,
    CustomFieldDefinitionModel,
    WorkTypeModel,
)
from work_kernel.services.base import BaseService

logger = get_logger("services.catalog")


class CatalogService(BaseService[WorkTypeModel]):
    """
    Catalog management.

    All public methods return frozen DTOs, never ORM instances.
    """

    def __init__(
        self,
        session: Session,
        registry: WorkflowRegistry | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._registry = registry or WorkflowRegistry.default()
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Domains, locations, shop-groups
    # ------------------------------------------------------------------

    def create_domain(
        self,
        name: str,
        description: str | None = None,
        workflow_ids: Iterable[str] = (),
        actor: str = "system",
    ) -> DomainInfo:
        workflow_ids = list(workflow_ids)
        for workflow_id in workflow_ids:
            if not self._registry.has_workflow(workflow_id):
                raise WorkflowNotFoundError(workflow_id, self._registry.list_workflows())
        self._ensure_unique(DomainModel, DomainModel.name == name, "domain", name)
        domain = DomainModel(
            name=name,
            description=description,
            workflow_ids=workflow_ids,
            **self._created(actor),
        )
        self.session.add(domain)
        self.session.flush()
        logger.info("domain_created", extra={"domain_id": str(domain.id), "domain_name": name})
        return domain.to_dto()

    def get_domain(self, domain_id: UUID) -> DomainInfo:
        return self._domain(domain_id).to_dto()

    def find_domain_by_name(self, name: str) -> DomainInfo | None:
        domain = self._find(DomainModel, DomainModel.name == name)
        return domain.to_dto() if domain else None

    def create_location(
        self,
        name: str,
        description: str | None = None,
        actor: str = "system",
    ) -> LocationInfo:
        self._ensure_unique(LocationModel, LocationModel.name == name, "location", name)
        location = LocationModel(name=name, description=description, **self._created(actor))
        self.session.add(location)
        self.session.flush()
        logger.info("location_created", extra={"location_id": str(location.id), "location_name": name})
        return location.to_dto()

    def get_location(self, location_id: UUID) -> LocationInfo:
        location = self.session.get(LocationModel, location_id)
        if location is None:
            raise LocationNotFoundError(location_id)
        return location.to_dto()

    def find_location_by_name(self, name: str) -> LocationInfo | None:
        location = self._find(LocationModel, LocationModel.name == name)
        return location.to_dto() if location else None

    def create_shop_group(
        self,
        name: str,
        description: str | None = None,
        user_ids: Iterable[str] = (),
        actor: str = "system",
    ) -> ShopGroupInfo:
        self._ensure_unique(ShopGroupModel, ShopGroupModel.name == name, "shop_group", name)
        group = ShopGroupModel(
            name=name,
            description=description,
            user_ids=list(user_ids),
            **self._created(actor),
        )
        self.session.add(group)
        self.session.flush()
        logger.info("shop_group_created", extra={"shop_group_id": str(group.id), "shop_group_name": name})
        return group.to_dto()

    def get_shop_group(self, shop_group_id: UUID) -> ShopGroupInfo:
        group = self.session.get(ShopGroupModel, shop_group_id)
        if group is None:
            raise ShopGroupNotFoundError(shop_group_id)
        return group.to_dto()

    def find_shop_group_by_name(self, name: str) -> ShopGroupInfo | None:
        group = self._find(ShopGroupModel, ShopGroupModel.name == name)
        return group.to_dto() if group else None

    # ------------------------------------------------------------------
    # Work-types
    # ------------------------------------------------------------------

    def create_work_type(
        self,
        domain_id: UUID,
        title: str,
        workflow_id: str,
        validator_name: str,
        description: str | None = None,
        custom_fields: Sequence[CustomFieldDefinition] = (),
        child_work_type_ids: Iterable[UUID] = (),
        activity_type_ids: Iterable[UUID] = (),
        actor: str = "system",
    ) -> WorkTypeInfo:
        """
        Create a work-type in ``domain_id``.

        Raises:
            DomainNotFoundError: unknown domain.
            DuplicateNameError: title already used in the domain, or two custom
                fields share a name.
            WorkflowNotFoundError: workflow unknown or not enabled for the domain.
            ValidatorNotFoundError: validator unknown.
            WorkTypeNotFoundError / ActivityTypeNotFoundError: dangling child ids.
        """
        domain = self._domain(domain_id)
        self._check_bindings(domain, workflow_id, validator_name)
        self._ensure_unique(
            WorkTypeModel,
            (WorkTypeModel.domain_id == domain_id) & (WorkTypeModel.title == title),
            "work_type",
            title,
        )
        self._check_field_names(custom_fields)
        child_ids = self._existing_work_type_ids(child_work_type_ids)
        activity_ids = self._existing_activity_type_ids(activity_type_ids)

        work_type = WorkTypeModel(
            domain_id=domain_id,
            title=title,
            description=description,
            workflow_id=workflow_id,
            validator_name=validator_name,
            child_work_type_ids=child_ids,
            activity_type_ids=activity_ids,
            custom_fields=[
                CustomFieldDefinitionModel.from_dto(d, i) for i, d in enumerate(custom_fields)
            ],
            **self._created(actor),
        )
        self.session.add(work_type)
        self.session.flush()
        logger.info(
            "work_type_created",
            extra={"work_type_id": str(work_type.id), "title": title, "workflow_id": workflow_id},
        )
        return work_type.to_dto()

    def get_work_type(self, work_type_id: UUID) -> WorkTypeInfo:
        return self._work_type(work_type_id).to_dto()

    def list_work_types(self, domain_id: UUID | None = None) -> list[WorkTypeInfo]:
        stmt = select(WorkTypeModel).order_by(WorkTypeModel.title)
        if domain_id is not None:
            stmt = stmt.where(WorkTypeModel.domain_id == domain_id)
        return [wt.to_dto() for wt in self.session.execute(stmt).scalars().all()]

    def find_work_type_by_title(self, domain_id: UUID, title: str) -> WorkTypeInfo | None:
        work_type = self._find(
            WorkTypeModel,
            (WorkTypeModel.domain_id == domain_id) & (WorkTypeModel.title == title),
        )
        return work_type.to_dto() if work_type else None

    def update_work_type(
        self,
        work_type_id: UUID,
        expected_version: int,
        title: str | None = None,
        description: str | None = None,
        workflow_id: str | None = None,
        validator_name: str | None = None,
        custom_fields: Sequence[CustomFieldDefinition] | None = None,
        child_work_type_ids: Iterable[UUID] | None = None,
        activity_type_ids: Iterable[UUID] | None = None,
        actor: str = "system",
    ) -> WorkTypeInfo:
        """
        Update a work-type; ``None`` leaves a field unchanged.

        Raises:
            ConcurrentModificationError: ``expected_version`` is stale.
        """
        work_type = self._work_type(work_type_id)
        self._check_version(work_type, expected_version, "work_type")

        if workflow_id is not None or validator_name is not None:
            self._check_bindings(
                self._domain(work_type.domain_id),
                workflow_id or work_type.workflow_id,
                validator_name or work_type.validator_name,
            )
        if title is not None and title != work_type.title:
            self._ensure_unique(
                WorkTypeModel,
                (WorkTypeModel.domain_id == work_type.domain_id) & (WorkTypeModel.title == title),
                "work_type",
                title,
            )
            work_type.title = title
        if description is not None:
            work_type.description = description
        if workflow_id is not None:
            work_type.workflow_id = workflow_id
        if validator_name is not None:
            work_type.validator_name = validator_name
        if custom_fields is not None:
            self._check_field_names(custom_fields)
            self._replace_fields(work_type.custom_fields, custom_fields)
        if child_work_type_ids is not None:
            work_type.child_work_type_ids = self._existing_work_type_ids(child_work_type_ids)
        if activity_type_ids is not None:
            work_type.activity_type_ids = self._existing_activity_type_ids(activity_type_ids)

        self._touch(work_type, actor)
        self._flush_versioned("work_type", work_type.id)
        logger.info(
            "work_type_updated",
            extra={"work_type_id": str(work_type.id), "version": work_type.version},
        )
        return work_type.to_dto()

    def delete_work_type(self, work_type_id: UUID) -> None:
        """
        Raises:
            WorkTypeReferencedError: works of this type exist.
        """
        work_type = self._work_type(work_type_id)
        count = self.session.execute(
            select(func.count()).select_from(WorkModel).where(WorkModel.work_type_id == work_type_id)
        ).scalar_one()
        if count:
            raise WorkTypeReferencedError(work_type_id, count)
        self.session.delete(work_type)
        self.session.flush()
        logger.info("work_type_deleted", extra={"work_type_id": str(work_type_id)})

    # ------------------------------------------------------------------
    # Activity-types
    # ------------------------------------------------------------------

    def create_activity_type(
        self,
        domain_id: UUID,
        title: str,
        description: str | None = None,
        custom_fields: Sequence[CustomFieldDefinition] = (),
        actor: str = "system",
    ) -> ActivityTypeInfo:
        self._domain(domain_id)
        self._ensure_unique(
            ActivityTypeModel,
            (ActivityTypeModel.domain_id == domain_id) & (ActivityTypeModel.title == title),
            "activity_type",
            title,
        )
        self._check_field_names(custom_fields)
        activity_type = ActivityTypeModel(
            domain_id=domain_id,
            title=title,
            description=description,
            custom_fields=[
                CustomFieldDefinitionModel.from_dto(d, i) for i, d in enumerate(custom_fields)
            ],
            **self._created(actor),
        )
        self.session.add(activity_type)
        self.session.flush()
        logger.info(
            "activity_type_created",
            extra={"activity_type_id": str(activity_type.id), "title": title},
        )
        return activity_type.to_dto()

    def get_activity_type(self, activity_type_id: UUID) -> ActivityTypeInfo:
        return self._activity_type(activity_type_id).to_dto()

    def find_activity_type_by_title(self, domain_id: UUID, title: str) -> ActivityTypeInfo | None:
        activity_type = self._find(
            ActivityTypeModel,
            (ActivityTypeModel.domain_id == domain_id) & (ActivityTypeModel.title == title),
        )
        return activity_type.to_dto() if activity_type else None

    def update_activity_type(
        self,
        activity_type_id: UUID,
        expected_version: int,
        title: str | None = None,
        description: str | None = None,
        custom_fields: Sequence[CustomFieldDefinition] | None = None,
        actor: str = "system",
    ) -> ActivityTypeInfo:
        activity_type = self._activity_type(activity_type_id)
        self._check_version(activity_type, expected_version, "activity_type")

        if title is not None and title != activity_type.title:
            self._ensure_unique(
                ActivityTypeModel,
                (ActivityTypeModel.domain_id == activity_type.domain_id)
                & (ActivityTypeModel.title == title),
                "activity_type",
                title,
            )
            activity_type.title = title
        if description is not None:
            activity_type.description = description
        if custom_fields is not None:
            self._check_field_names(custom_fields)
            self._replace_fields(activity_type.custom_fields, custom_fields)

        self._touch(activity_type, actor)
        self._flush_versioned("activity_type", activity_type.id)
        logger.info(
            "activity_type_updated",
            extra={"activity_type_id": str(activity_type.id), "version": activity_type.version},
        )
        return activity_type.to_dto()

    def delete_activity_type(self, activity_type_id: UUID) -> None:
        activity_type = self._activity_type(activity_type_id)
        count = self.session.execute(
            select(func.count())
            .select_from(ActivityModel)
            .where(ActivityModel.activity_type_id == activity_type_id)
        ).scalar_one()
        if count:
            raise WorkTypeReferencedError(activity_type_id, count)
        self.session.delete(activity_type)
        self.session.flush()
        logger.info("activity_type_deleted", extra={"activity_type_id": str(activity_type_id)})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _created(self, actor: str) -> dict:
        return {"created_at": self._clock.now(), "created_by": actor}

    def _touch(self, row, actor: str) -> None:
        row.updated_at = self._clock.now()
        row.updated_by = actor
        # The version must move even when only child definitions changed.
        flag_modified(row, "updated_at")

    def _find(self, model, criterion):
        return self.session.execute(select(model).where(criterion)).scalar_one_or_none()

    def _ensure_unique(self, model, criterion, entity_type: str, name: str) -> None:
        if self._find(model, criterion) is not None:
            raise DuplicateNameError(entity_type, name)

    def _domain(self, domain_id: UUID) -> DomainModel:
        domain = self.session.get(DomainModel, domain_id)
        if domain is None:
            raise DomainNotFoundError(domain_id)
        return domain

    def _work_type(self, work_type_id: UUID) -> WorkTypeModel:
        work_type = self.session.get(WorkTypeModel, work_type_id)
        if work_type is None:
            raise WorkTypeNotFoundError(work_type_id)
        return work_type

    def _activity_type(self, activity_type_id: UUID) -> ActivityTypeModel:
        activity_type = self.session.get(ActivityTypeModel, activity_type_id)
        if activity_type is None:
            raise ActivityTypeNotFoundError(activity_type_id)
        return activity_type

    def _existing_work_type_ids(self, ids: Iterable[UUID]) -> list[str]:
        return [str(self._work_type(i).id) for i in ids]

    def _existing_activity_type_ids(self, ids: Iterable[UUID]) -> list[str]:
        return [str(self._activity_type(i).id) for i in ids]

    def _check_bindings(self, domain: DomainModel, workflow_id: str, validator_name: str) -> None:
        self._registry.get_workflow(workflow_id)
        self._registry.get_validator(validator_name)
        if domain.workflow_ids and workflow_id not in domain.workflow_ids:
            raise WorkflowNotFoundError(workflow_id, list(domain.workflow_ids))

    @staticmethod
    def _check_version(row, expected_version: int, entity_type: str) -> None:
        if row.version != expected_version:
            logger.warning(
                "catalog_version_mismatch",
                extra={
                    "entity_type": entity_type,
                    "entity_id": str(row.id),
                    "expected_version": expected_version,
                    "actual_version": row.version,
                },
            )
            raise ConcurrentModificationError(entity_type, row.id)

    @staticmethod
    def _check_field_names(definitions: Sequence[CustomFieldDefinition]) -> None:
        """Custom field names are unique per type, ignoring case."""
        seen: set[str] = set()
        for definition in definitions:
            key = definition.name.lower()
            if key in seen:
                raise DuplicateNameError("custom_field", definition.name)
            seen.add(key)

    @staticmethod
    def _replace_fields(
        current: list[CustomFieldDefinitionModel],
        definitions: Sequence[CustomFieldDefinition],
    ) -> None:
        """Reconcile owned definitions in place, keyed by definition id."""
        existing = {f.id: f for f in current}
        replacement: list[CustomFieldDefinitionModel] = []
        for position, dto in enumerate(definitions):
            row = existing.get(dto.id)
            if row is None:
                row = CustomFieldDefinitionModel.from_dto(dto, position)
            else:
                row.position = position
                row.name = dto.name
                row.label = dto.label
                row.description = dto.description
                row.value_type = dto.value_type.value
                row.group_name = dto.group
                row.lov_field_reference = dto.lov_field_reference
                row.is_mandatory = dto.is_mandatory
            replacement.append(row)
        current[:] = replacement

    def _flush_versioned(self, entity_type: str, entity_id: UUID) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError(entity_type, entity_id) from exc
