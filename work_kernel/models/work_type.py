"""
Module: work_kernel.models.work_type
Responsibility: ORM persistence for the administrator-defined schemas of
    works and activities: work-types, activity-types and their ordered
    custom-field definitions.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects (for to_dto).
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - ``version`` is the SQLAlchemy version counter: every UPDATE of a type
      row increments it and is guarded by it (optimistic concurrency).
    - Titles are unique per domain.
    - Custom-field definitions are owned by exactly one type and kept in
      declaration order (``position``).

Failure modes:
    - StaleDataError when an UPDATE races a concurrent one.
    - IntegrityError on duplicate (domain_id, title).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from work_kernel.db.base import Base, TrackedBase, UUIDString
from work_kernel.domain.dtos import ActivityTypeInfo, CustomFieldDefinition, WorkTypeInfo
from work_kernel.domain.values import ValueType


class WorkTypeModel(TrackedBase):
    """
    Schema and workflow binding for a class of works.

    ``child_work_type_ids`` and ``activity_type_ids`` are JSON lists of
    UUID strings; they are replaced wholesale, never mutated in place.
    """

    __tablename__ = "work_types"

    __table_args__ = (
        UniqueConstraint("domain_id", "title", name="uq_work_type_domain_title"),
        Index("idx_work_type_domain", "domain_id"),
    )

    domain_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("domains.id"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Registry keys
    workflow_id: Mapped[str] = mapped_column(String(100), nullable=False)
    validator_name: Mapped[str] = mapped_column(String(100), nullable=False)

    child_work_type_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    activity_type_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    custom_fields: Mapped[list[CustomFieldDefinitionModel]] = relationship(
        "CustomFieldDefinitionModel",
        primaryjoin="WorkTypeModel.id == CustomFieldDefinitionModel.work_type_id",
        order_by="CustomFieldDefinitionModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<WorkType {self.title} v{self.version}>"

    def to_dto(self) -> WorkTypeInfo:
        return WorkTypeInfo(
            id=self.id,
            domain_id=self.domain_id,
            title=self.title,
            description=self.description,
            workflow_id=self.workflow_id,
            validator_name=self.validator_name,
            custom_fields=tuple(f.to_dto() for f in self.custom_fields),
            child_work_type_ids=frozenset(UUID(i) for i in self.child_work_type_ids or ()),
            activity_type_ids=frozenset(UUID(i) for i in self.activity_type_ids or ()),
            version=self.version,
        )


class ActivityTypeModel(TrackedBase):
    """Schema for a class of activities."""

    __tablename__ = "activity_types"

    __table_args__ = (
        UniqueConstraint("domain_id", "title", name="uq_activity_type_domain_title"),
    )

    domain_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("domains.id"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    custom_fields: Mapped[list[CustomFieldDefinitionModel]] = relationship(
        "CustomFieldDefinitionModel",
        primaryjoin="ActivityTypeModel.id == CustomFieldDefinitionModel.activity_type_id",
        order_by="CustomFieldDefinitionModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<ActivityType {self.title} v{self.version}>"

    def to_dto(self) -> ActivityTypeInfo:
        return ActivityTypeInfo(
            id=self.id,
            domain_id=self.domain_id,
            title=self.title,
            description=self.description,
            custom_fields=tuple(f.to_dto() for f in self.custom_fields),
            version=self.version,
        )


class CustomFieldDefinitionModel(Base):
    """One custom field declared by a work-type or an activity-type."""

    __tablename__ = "custom_field_definitions"

    __table_args__ = (
        CheckConstraint(
            "(work_type_id IS NULL) <> (activity_type_id IS NULL)",
            name="ck_custom_field_single_owner",
        ),
        Index("idx_custom_field_work_type", "work_type_id"),
        Index("idx_custom_field_activity_type", "activity_type_id"),
    )

    work_type_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("work_types.id"), nullable=True,
    )
    activity_type_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("activity_types.id"), nullable=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False)
    group_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lov_field_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_dto(self) -> CustomFieldDefinition:
        return CustomFieldDefinition(
            id=self.id,
            name=self.name,
            value_type=ValueType(self.value_type),
            label=self.label,
            description=self.description,
            group=self.group_name,
            lov_field_reference=self.lov_field_reference,
            is_mandatory=self.is_mandatory,
        )

    @classmethod
    def from_dto(cls, dto: CustomFieldDefinition, position: int) -> CustomFieldDefinitionModel:
        return cls(
            id=dto.id,
            position=position,
            name=dto.name,
            label=dto.label,
            description=dto.description,
            value_type=dto.value_type.value,
            group_name=dto.group,
            lov_field_reference=dto.lov_field_reference,
            is_mandatory=dto.is_mandatory,
        )
