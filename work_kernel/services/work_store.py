"""
WorkStore -- persistence of works, activities and their status changes.

Responsibility:
    Loads work and activity rows for a command, inserts new ones with their
    allocated numbers and creation history entry, and applies status
    changes together with the matching history append.

Architecture position:
    Kernel > Services.  Flush-only.  Decisions (which state, whether a
    command is allowed) are taken by the orchestrator through the pure
    domain layer; this service only writes them down.

Invariants enforced:
    - A status column is never written without its history entry, and a
      history entry is never appended without the status change, since
      ``change_status`` does both in one flush.
    - Work numbers and activity creation sequences come from
      ``SequenceService`` inside the caller's transaction.
    - Every activity write also touches the owning work row, bumping its
      version, so decisions about a work made from a stale view of its
      activities fail at flush.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm.attributes import flag_modified

from work_kernel.domain.dtos import (
    ActivityTypeInfo,
    CustomFieldDefinition,
    CustomFieldInput,
    NewActivity,
    NewWork,
    UpdateWork,
    WorkTypeInfo,
)
from work_kernel.domain.validation import is_blank, parse_value, serialize_value
from work_kernel.domain.values import EntityKind
from work_kernel.exceptions import ActivityNotFoundError, WorkNotFoundError
from work_kernel.logging_config import get_logger
from work_kernel.models.work import ActivityModel, CustomFieldValueModel, WorkModel
from work_kernel.services.base import BaseService
from work_kernel.services.history_service import HistoryService
from work_kernel.services.sequence_service import SequenceService

logger = get_logger("services.work_store")


def build_field_values(
    definitions: Sequence[CustomFieldDefinition],
    inputs: Sequence[CustomFieldInput],
) -> list[CustomFieldValueModel]:
    """Rows for already-validated inputs, in definition order; blanks dropped."""
    by_id = {i.field_id: i for i in inputs if not is_blank(i.value)}
    rows: list[CustomFieldValueModel] = []
    for definition in definitions:
        field_input = by_id.get(definition.id)
        if field_input is None:
            continue
        value = parse_value(definition.value_type, field_input.value)
        rows.append(
            CustomFieldValueModel(
                position=len(rows),
                field_id=definition.id,
                name=definition.name,
                value_type=definition.value_type.value,
                value_text=serialize_value(definition.value_type, value),
            )
        )
    return rows


class WorkStore(BaseService[WorkModel]):
    """Writes for the work/activity aggregate."""

    def __init__(self, session, sequences: SequenceService | None = None):
        super().__init__(session)
        self._sequences = sequences or SequenceService(session)
        self._history = HistoryService(session)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_work(self, work_id: UUID) -> WorkModel:
        work = self.session.get(WorkModel, work_id)
        if work is None:
            raise WorkNotFoundError(work_id)
        return work

    def load_activity(self, work_id: UUID, activity_id: UUID) -> ActivityModel:
        """The activity, which must belong to ``work_id``."""
        activity = self.session.get(ActivityModel, activity_id)
        if activity is None or activity.work_id != work_id:
            raise ActivityNotFoundError(activity_id)
        return activity

    def activity_states(self, work_id: UUID) -> list[str]:
        """Current status of every activity of the work, read from storage."""
        self.session.flush()
        return list(
            self.session.execute(
                select(ActivityModel.status)
                .where(ActivityModel.work_id == work_id)
                .order_by(ActivityModel.creation_seq)
            ).scalars().all()
        )

    # ------------------------------------------------------------------
    # Inserts
    # ------------------------------------------------------------------

    def insert_work(
        self,
        command: NewWork,
        work_type: WorkTypeInfo,
        initial_state: str,
        actor: str,
        now: datetime,
    ) -> WorkModel:
        work_number = self._sequences.next_value(SequenceService.WORK_NUMBER)
        work = WorkModel(
            domain_id=command.domain_id,
            work_type_id=command.work_type_id,
            work_number=work_number,
            title=command.title,
            description=command.description,
            location_id=command.location_id,
            shop_group_id=command.shop_group_id,
            parent_work_id=command.parent_work_id,
            bucket_slot_id=command.bucket_slot_id,
            status=initial_state,
            custom_field_values=build_field_values(
                work_type.custom_fields, command.custom_fields
            ),
            created_at=now,
            created_by=actor,
        )
        self.session.add(work)
        self.session.flush()
        self._history.append(EntityKind.WORK, work.id, None, initial_state, now, actor)
        logger.debug(
            "work_inserted",
            extra={"work_id": str(work.id), "work_number": work_number},
        )
        return work

    def insert_activity(
        self,
        work: WorkModel,
        command: NewActivity,
        activity_type: ActivityTypeInfo,
        initial_state: str,
        actor: str,
        now: datetime,
    ) -> ActivityModel:
        creation_seq = self._sequences.next_value(SequenceService.ACTIVITY)
        activity = ActivityModel(
            work_id=work.id,
            activity_type_id=command.activity_type_id,
            creation_seq=creation_seq,
            subtype=command.subtype.value,
            title=command.title,
            description=command.description,
            status=initial_state,
            custom_field_values=build_field_values(
                activity_type.custom_fields, command.custom_fields
            ),
            created_at=now,
            created_by=actor,
        )
        self.session.add(activity)
        self.session.flush()
        self._history.append(EntityKind.ACTIVITY, activity.id, None, initial_state, now, actor)
        logger.debug(
            "activity_inserted",
            extra={"activity_id": str(activity.id), "creation_seq": creation_seq},
        )
        return activity

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def change_status(
        self,
        row: WorkModel | ActivityModel,
        kind: EntityKind,
        to_state: str,
        actor: str,
        now: datetime,
        comment: str | None = None,
    ) -> None:
        """Write the new status and its history entry in one flush."""
        from_state = row.status
        row.status = to_state
        row.status_comment = comment
        row.updated_at = now
        row.updated_by = actor
        flag_modified(row, "updated_at")
        self._history.append(kind, row.id, from_state, to_state, now, actor, comment)

    def touch(self, work: WorkModel, actor: str, now: datetime) -> None:
        """Dirty the work row so its version moves with this transaction."""
        work.updated_at = now
        work.updated_by = actor
        # An equal timestamp would otherwise emit no UPDATE.
        flag_modified(work, "updated_at")
        self.session.flush()

    def apply_update(
        self,
        work: WorkModel,
        command: UpdateWork,
        work_type: WorkTypeInfo,
        actor: str,
        now: datetime,
    ) -> None:
        if command.title is not None:
            work.title = command.title
        if command.description is not None:
            work.description = command.description
        if command.location_id is not None:
            work.location_id = command.location_id
        if command.shop_group_id is not None:
            work.shop_group_id = command.shop_group_id
        if command.bucket_slot_id is not None:
            work.bucket_slot_id = command.bucket_slot_id
        if command.custom_fields is not None:
            work.custom_field_values = build_field_values(
                work_type.custom_fields, command.custom_fields
            )
        work.updated_at = now
        work.updated_by = actor
        flag_modified(work, "updated_at")
        self.session.flush()
