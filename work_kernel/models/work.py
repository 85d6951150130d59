"""
Module: work_kernel.models.work
Responsibility: ORM persistence for works, their activities, the custom
    field values both carry, and the append-only status history.
Architecture position: Kernel > Models.  May import from db/base.py, domain
    value objects, the exception hierarchy and logging_config.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - ``work_number`` is unique (uq_work_number) and written once, at insert.
    - ``creation_seq`` is unique per activity (uq_activity_creation_seq) and
      orders activities by creation.
    - ``version`` on works and activities is the SQLAlchemy version counter.
      Every change to an activity also updates its work row, so a decision
      taken on a stale set of siblings fails at flush with StaleDataError.
    - History rows are append-only: (entity_type, entity_id, position) is
      unique and ORM listeners refuse UPDATE and DELETE.
    - ``work_number`` and an activity's ``work_id`` are refused by
      before_update listeners once the row exists.

Failure modes:
    - StaleDataError on a concurrent update of the same work or activity.
    - IntegrityError on a duplicate history position (two writers appending
      the same next entry).
    - HistoryImmutableError on any attempt to modify or delete history.
    - ImmutableFieldError when a work's number or an activity's work id
      changes on an existing row.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.attributes import get_history

from work_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from work_kernel.domain.dtos import CustomFieldValue, StatusTransition
from work_kernel.domain.validation import deserialize_value
from work_kernel.domain.values import ValueType
from work_kernel.exceptions import HistoryImmutableError, ImmutableFieldError
from work_kernel.logging_config import get_logger

logger = get_logger("models.work")


class WorkModel(TrackedBase):
    """
    A job tracked through its work-type's lifecycle.

    Contract:
        ``status`` and the newest history entry always agree; both are
        written in the same flush by the orchestrator.
    """

    __tablename__ = "works"

    __table_args__ = (
        UniqueConstraint("work_number", name="uq_work_number"),
        Index("idx_work_domain", "domain_id"),
        Index("idx_work_type_status", "work_type_id", "status"),
        Index("idx_work_parent", "parent_work_id"),
    )

    domain_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("domains.id"), nullable=False,
    )
    work_type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("work_types.id"), nullable=False,
    )
    work_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False,
    )
    shop_group_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shop_groups.id"), nullable=False,
    )
    parent_work_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("works.id"), nullable=True,
    )
    # Scheduling window; owned by an external scheduler
    bucket_slot_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(String(50), nullable=False)
    status_comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    activities: Mapped[list[ActivityModel]] = relationship(
        "ActivityModel",
        back_populates="work",
        order_by="ActivityModel.creation_seq",
    )

    custom_field_values: Mapped[list[CustomFieldValueModel]] = relationship(
        "CustomFieldValueModel",
        primaryjoin="WorkModel.id == CustomFieldValueModel.work_id",
        order_by="CustomFieldValueModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Work #{self.work_number} {self.status} v{self.version}>"


class ActivityModel(TrackedBase):
    """A sub-task owned by exactly one work; ``work_id`` never changes."""

    __tablename__ = "activities"

    __table_args__ = (
        UniqueConstraint("creation_seq", name="uq_activity_creation_seq"),
        Index("idx_activity_work", "work_id"),
    )

    work_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("works.id"), nullable=False,
    )
    activity_type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("activity_types.id"), nullable=False,
    )
    creation_seq: Mapped[int] = mapped_column(BigInteger, nullable=False)
    subtype: Mapped[str] = mapped_column(String(50), nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(50), nullable=False)
    status_comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    work: Mapped[WorkModel] = relationship("WorkModel", back_populates="activities")

    custom_field_values: Mapped[list[CustomFieldValueModel]] = relationship(
        "CustomFieldValueModel",
        primaryjoin="ActivityModel.id == CustomFieldValueModel.activity_id",
        order_by="CustomFieldValueModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Activity {self.creation_seq} {self.status} v{self.version}>"


class CustomFieldValueModel(Base):
    """
    A custom field value on a work or an activity.

    The field's name and value type are copied from the definition at write
    time, so values stay readable after the type's schema changes.
    """

    __tablename__ = "custom_field_values"

    __table_args__ = (
        Index("idx_cf_value_work", "work_id"),
        Index("idx_cf_value_activity", "activity_id"),
    )

    work_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("works.id"), nullable=True,
    )
    activity_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("activities.id"), nullable=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    field_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False)
    value_text: Mapped[str] = mapped_column(Text, nullable=False)

    def to_dto(self) -> CustomFieldValue:
        value_type = ValueType(self.value_type)
        return CustomFieldValue(
            field_id=self.field_id,
            name=self.name,
            value_type=value_type,
            value=deserialize_value(value_type, self.value_text),
        )


class StatusTransitionModel(Base):
    """One status history entry.  Append-only.

    ``position`` counts entries per entity from 0 (the creation entry, whose
    ``from_state`` is NULL).
    """

    __tablename__ = "status_transitions"

    __table_args__ = (
        UniqueConstraint(
            "entity_type", "entity_id", "position",
            name="uq_status_transition_position",
        ),
    )

    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    from_state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_state: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StatusTransition {self.entity_type}:{self.entity_id} "
            f"#{self.position} {self.from_state}->{self.to_state}>"
        )

    def to_dto(self) -> StatusTransition:
        return StatusTransition(
            from_state=self.from_state,
            to_state=self.to_state,
            changed_at=self.changed_at,
            actor=self.actor,
            comment=self.comment,
        )


@event.listens_for(StatusTransitionModel, "before_update")
def prevent_history_update(mapper, connection, target):
    raise HistoryImmutableError(target.entity_type, target.entity_id, "update")


@event.listens_for(StatusTransitionModel, "before_delete")
def prevent_history_delete(mapper, connection, target):
    raise HistoryImmutableError(target.entity_type, target.entity_id, "delete")


def _refuse_changes(target, entity_type: str, fields: tuple[str, ...]) -> None:
    changed = [name for name in fields if get_history(target, name).has_changes()]
    if not changed:
        return
    logger.error(
        "immutable_field_change_blocked",
        extra={"entity_type": entity_type, "entity_id": str(target.id), "fields": changed},
    )
    raise ImmutableFieldError(entity_type, target.id, changed)


@event.listens_for(WorkModel, "before_update")
def prevent_work_number_change(mapper, connection, target):
    _refuse_changes(target, "work", ("work_number",))


@event.listens_for(ActivityModel, "before_update")
def prevent_activity_move(mapper, connection, target):
    _refuse_changes(target, "activity", ("work_id",))
