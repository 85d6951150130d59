"""
Module: work_kernel.selectors.work_selector
Responsibility: Read-only queries over works and activities: lookup by id
    with optional history, history listing, cursor pagination with text
    filtering, child lookup and per-work-type status statistics.
Architecture position: Kernel > Selectors.  Imports db/, models/ and domain
    DTOs.  MUST NOT import from services/ or outer layers.

Cursor pagination:
    Entries are ordered by creation sequence (work number for works,
    creation sequence for activities).  Given an anchor, the page is the
    ``context_size`` entries up to and including the anchor followed by the
    ``limit`` entries after it, all in ascending order.  Without an anchor,
    ``limit`` pages forward from the oldest entry; ``context_size`` alone
    returns the newest entries.  Paging forward re-anchors on the last entry
    of a page, paging backward on the entry before the first one.

Failure modes:
    - WorkNotFoundError / ActivityNotFoundError for unknown ids, including
      unknown anchors.
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import Select, func, or_, select

from work_kernel.domain.dtos import (
    ActivityView,
    StatusTransition,
    WorkTypeStatusStatistics,
    WorkView,
)
from work_kernel.domain.values import ActivityTypeSubtype, EntityKind
from work_kernel.exceptions import ActivityNotFoundError, WorkNotFoundError
from work_kernel.models.work import ActivityModel, StatusTransitionModel, WorkModel
from work_kernel.selectors.base import BaseSelector


class WorkSelector(BaseSelector[WorkModel]):
    """Read access to works and activities."""

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _history(self, kind: EntityKind, entity_id: UUID) -> tuple[StatusTransition, ...]:
        rows = self.session.execute(
            select(StatusTransitionModel)
            .where(
                StatusTransitionModel.entity_type == kind.value,
                StatusTransitionModel.entity_id == entity_id,
            )
            .order_by(StatusTransitionModel.position.desc())
        ).scalars().all()
        return tuple(r.to_dto() for r in rows)

    def _activity_ids(self, work_id: UUID) -> tuple[UUID, ...]:
        return tuple(
            self.session.execute(
                select(ActivityModel.id)
                .where(ActivityModel.work_id == work_id)
                .order_by(ActivityModel.creation_seq)
            ).scalars().all()
        )

    def _work_view(self, work: WorkModel, include_history: bool = False) -> WorkView:
        return WorkView(
            id=work.id,
            domain_id=work.domain_id,
            work_type_id=work.work_type_id,
            work_number=work.work_number,
            title=work.title,
            description=work.description,
            location_id=work.location_id,
            shop_group_id=work.shop_group_id,
            parent_work_id=work.parent_work_id,
            bucket_slot_id=work.bucket_slot_id,
            current_status=work.status,
            status_comment=work.status_comment,
            custom_fields=tuple(v.to_dto() for v in work.custom_field_values),
            activity_ids=self._activity_ids(work.id),
            version=work.version,
            created_at=work.created_at,
            created_by=work.created_by,
            history=self._history(EntityKind.WORK, work.id) if include_history else None,
        )

    def _activity_view(self, activity: ActivityModel, include_history: bool = False) -> ActivityView:
        return ActivityView(
            id=activity.id,
            work_id=activity.work_id,
            activity_type_id=activity.activity_type_id,
            subtype=ActivityTypeSubtype(activity.subtype),
            title=activity.title,
            description=activity.description,
            current_status=activity.status,
            status_comment=activity.status_comment,
            custom_fields=tuple(v.to_dto() for v in activity.custom_field_values),
            version=activity.version,
            created_at=activity.created_at,
            created_by=activity.created_by,
            history=(
                self._history(EntityKind.ACTIVITY, activity.id) if include_history else None
            ),
        )

    def _cursor_page(
        self,
        stmt: Select,
        seq_col,
        anchor_seq: int | None,
        context_size: int,
        limit: int,
    ) -> list:
        if context_size < 0 or limit < 0:
            raise ValueError("context_size and limit must not be negative")
        rows: list = []
        if anchor_seq is None:
            if limit:
                return list(
                    self.session.execute(stmt.order_by(seq_col.asc()).limit(limit)).scalars()
                )
            anchor_clause = None
        else:
            anchor_clause = seq_col <= anchor_seq
        if context_size:
            before = stmt if anchor_clause is None else stmt.where(anchor_clause)
            rows.extend(
                reversed(
                    self.session.execute(
                        before.order_by(seq_col.desc()).limit(context_size)
                    ).scalars().all()
                )
            )
        if anchor_seq is not None and limit:
            rows.extend(
                self.session.execute(
                    stmt.where(seq_col > anchor_seq).order_by(seq_col.asc()).limit(limit)
                ).scalars()
            )
        return rows

    # ------------------------------------------------------------------
    # Works
    # ------------------------------------------------------------------

    def _work(self, work_id: UUID) -> WorkModel:
        work = self.session.get(WorkModel, work_id)
        if work is None:
            raise WorkNotFoundError(work_id)
        return work

    def get_work_by_id(self, work_id: UUID, include_history: bool = False) -> WorkView:
        return self._work_view(self._work(work_id), include_history)

    def get_work_by_number(self, work_number: int) -> WorkView | None:
        work = self.session.execute(
            select(WorkModel).where(WorkModel.work_number == work_number)
        ).scalar_one_or_none()
        return self._work_view(work) if work else None

    def get_work_history(self, work_id: UUID) -> tuple[StatusTransition, ...]:
        """Transition records of the work, newest first."""
        self._work(work_id)
        return self._history(EntityKind.WORK, work_id)

    def search_work(
        self,
        anchor_id: UUID | None = None,
        context_size: int = 0,
        limit: int = 0,
        search_text: str | None = None,
        domain_id: UUID | None = None,
    ) -> list[WorkView]:
        stmt = select(WorkModel)
        if domain_id is not None:
            stmt = stmt.where(WorkModel.domain_id == domain_id)
        stmt = _text_filter(stmt, WorkModel, search_text)
        anchor_seq = self._work(anchor_id).work_number if anchor_id is not None else None
        rows = self._cursor_page(stmt, WorkModel.work_number, anchor_seq, context_size, limit)
        return [self._work_view(w) for w in rows]

    def find_children(self, domain_id: UUID, parent_work_id: UUID) -> list[WorkView]:
        rows = self.session.execute(
            select(WorkModel)
            .where(
                WorkModel.domain_id == domain_id,
                WorkModel.parent_work_id == parent_work_id,
            )
            .order_by(WorkModel.work_number)
        ).scalars().all()
        return [self._work_view(w) for w in rows]

    def work_status_statistics(
        self, domain_id: UUID | None = None,
    ) -> list[WorkTypeStatusStatistics]:
        """Number of works per (work-type, status), ordered by work-type id."""
        stmt = select(WorkModel.work_type_id, WorkModel.status, func.count()).group_by(
            WorkModel.work_type_id, WorkModel.status
        )
        if domain_id is not None:
            stmt = stmt.where(WorkModel.domain_id == domain_id)

        counts: dict[UUID, dict[str, int]] = defaultdict(dict)
        for work_type_id, status, count in self.session.execute(stmt).all():
            counts[work_type_id][status] = count
        return [
            WorkTypeStatusStatistics(work_type_id=type_id, status_counts=dict(sorted(c.items())))
            for type_id, c in sorted(counts.items(), key=lambda item: str(item[0]))
        ]

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    def _activity(self, activity_id: UUID) -> ActivityModel:
        activity = self.session.get(ActivityModel, activity_id)
        if activity is None:
            raise ActivityNotFoundError(activity_id)
        return activity

    def get_activity(self, activity_id: UUID, include_history: bool = False) -> ActivityView:
        return self._activity_view(self._activity(activity_id), include_history)

    def get_activity_history(self, activity_id: UUID) -> tuple[StatusTransition, ...]:
        self._activity(activity_id)
        return self._history(EntityKind.ACTIVITY, activity_id)

    def list_activities(self, work_id: UUID) -> list[ActivityView]:
        self._work(work_id)
        rows = self.session.execute(
            select(ActivityModel)
            .where(ActivityModel.work_id == work_id)
            .order_by(ActivityModel.creation_seq)
        ).scalars().all()
        return [self._activity_view(a) for a in rows]

    def search_activities(
        self,
        anchor_id: UUID | None = None,
        context_size: int = 0,
        limit: int = 0,
        search_text: str | None = None,
        work_id: UUID | None = None,
    ) -> list[ActivityView]:
        stmt = select(ActivityModel)
        if work_id is not None:
            stmt = stmt.where(ActivityModel.work_id == work_id)
        stmt = _text_filter(stmt, ActivityModel, search_text)
        anchor_seq = self._activity(anchor_id).creation_seq if anchor_id is not None else None
        rows = self._cursor_page(stmt, ActivityModel.creation_seq, anchor_seq, context_size, limit)
        return [self._activity_view(a) for a in rows]


def _text_filter(stmt: Select, model, search_text: str | None) -> Select:
    """Any whitespace-separated token, case-insensitive, in title or description."""
    tokens = (search_text or "").split()
    if not tokens:
        return stmt
    clauses = []
    for token in tokens:
        needle = token.lower()
        clauses.append(func.lower(model.title).contains(needle, autoescape=True))
        clauses.append(func.lower(model.description).contains(needle, autoescape=True))
    return stmt.where(or_(*clauses))
