"""
HistoryService -- append-only status history per entity.

Responsibility:
    Appends transition records for works and activities and reads them back
    newest first.

Architecture position:
    Kernel > Services.  Flush-only; called by ``WorkStore`` in the same
    flush as the status column it describes.

Invariants enforced:
    - Append-only: rows are never updated or deleted (ORM listeners on
      ``StatusTransitionModel`` refuse both).
    - Linear: each appended entry's ``from_state`` equals the previous
      entry's ``to_state``; the first entry has no ``from_state``.
    - (entity_type, entity_id, position) is unique, so two writers that
      raced on the same next position cannot both commit.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from work_kernel.domain.dtos import StatusTransition
from work_kernel.domain.values import EntityKind
from work_kernel.logging_config import get_logger
from work_kernel.models.work import StatusTransitionModel
from work_kernel.services.base import BaseService

logger = get_logger("services.history")


class HistoryService(BaseService[StatusTransitionModel]):
    """Append and read status history."""

    def _latest(self, kind: EntityKind, entity_id: UUID) -> StatusTransitionModel | None:
        return self.session.execute(
            select(StatusTransitionModel)
            .where(
                StatusTransitionModel.entity_type == kind.value,
                StatusTransitionModel.entity_id == entity_id,
            )
            .order_by(StatusTransitionModel.position.desc())
            .limit(1)
        ).scalar_one_or_none()

    def append(
        self,
        kind: EntityKind,
        entity_id: UUID,
        from_state: str | None,
        to_state: str,
        changed_at: datetime,
        actor: str,
        comment: str | None = None,
    ) -> StatusTransition:
        """
        Append one entry.

        Raises:
            ValueError: ``from_state`` does not continue the existing history.
        """
        latest = self._latest(kind, entity_id)
        expected_from = latest.to_state if latest else None
        if from_state != expected_from:
            raise ValueError(
                f"History of {kind.value} {entity_id} ends in {expected_from}; "
                f"cannot append a transition from {from_state}"
            )
        row = StatusTransitionModel(
            entity_type=kind.value,
            entity_id=entity_id,
            position=latest.position + 1 if latest else 0,
            from_state=from_state,
            to_state=to_state,
            changed_at=changed_at,
            actor=actor,
            comment=comment,
        )
        self.session.add(row)
        self.session.flush()
        logger.debug(
            "history_appended",
            extra={
                "entity_type": kind.value,
                "entity_id": str(entity_id),
                "from_state": from_state,
                "to_state": to_state,
                "position": row.position,
            },
        )
        return row.to_dto()

    def list_newest_first(self, kind: EntityKind, entity_id: UUID) -> tuple[StatusTransition, ...]:
        rows = self.session.execute(
            select(StatusTransitionModel)
            .where(
                StatusTransitionModel.entity_type == kind.value,
                StatusTransitionModel.entity_id == entity_id,
            )
            .order_by(StatusTransitionModel.position.desc())
        ).scalars().all()
        return tuple(r.to_dto() for r in rows)
