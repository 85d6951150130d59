"""
SequenceService -- monotonic number allocation via locked counter rows.

Responsibility:
    Issues work numbers and activity creation sequences.  A dedicated
    counter table holds one row per sequence name; every allocation locks
    that row (``SELECT ... FOR UPDATE``) and increments it, so values are
    unique and never decrease under any number of concurrent callers.

Architecture position:
    Kernel > Services.  Called by ``WorkStore`` inside the orchestrator's
    transaction, in the same flush as the row that carries the number.

Invariants enforced:
    - Uniqueness and monotonicity: the locked counter row is the sole
      source of the next value.  Aggregate-max-plus-one is never used.
    - Atomicity: the increment becomes visible only when the caller's
      transaction commits.  A rollback returns the value, so a failed create
      never leaves a consumed number without its work.

Failure modes:
    - IntegrityError on a concurrent first use of a sequence: handled with a
      savepoint rollback and a locked re-read.
    - OperationalError (lock timeout, deadlock): propagated untouched; the
      orchestrator retries the whole command.
    - Any other storage error: raised as ``AllocationFailureError``.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column

from work_kernel.db.base import Base
from work_kernel.exceptions import AllocationFailureError
from work_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence holding the last issued value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Transactional sequence allocation.

    Contract:
        ``next_value(name)`` returns a value strictly greater than every
        value previously committed for ``name``.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller controls boundaries.
        - Does NOT promise gap-free numbering across rolled-back callers.

    Usage:
        with session_scope() as session:
            number = SequenceService(session).next_value(SequenceService.WORK_NUMBER)
            session.add(WorkModel(work_number=number, ...))
    """

    # Well-known sequence names
    WORK_NUMBER = "work"
    ACTIVITY = "activity"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock, increment and return the named counter.

        Preconditions:
            - The caller is within an active transaction.

        Postconditions:
            - The counter row stays locked until the transaction ends.

        Raises:
            AllocationFailureError: storage refused the increment.
            OperationalError: transient lock failure, safe to retry.
        """
        try:
            value = self._increment(sequence_name)
        except OperationalError:
            raise
        except SQLAlchemyError as exc:
            logger.error(
                "sequence_allocation_failed",
                extra={"sequence_name": sequence_name, "error": str(exc)},
            )
            raise AllocationFailureError(sequence_name, str(exc)) from exc

        if value <= 0:
            raise AllocationFailureError(sequence_name, f"non-positive value {value}")
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def _increment(self, sequence_name: str) -> int:
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use; another writer may create the row at the same time.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Last issued value, or None if the sequence was never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def initialize_sequences(self) -> None:
        """Create the well-known counters at zero if they are missing."""
        for name in (self.WORK_NUMBER, self.ACTIVITY):
            if self.current_value(name) is None:
                self._session.add(SequenceCounter(name=name, current_value=0))
        self._session.flush()
