"""
Tests for SequenceService.

Covers:
- First use creates the counter
- Strictly increasing values per name, independent names
- Values survive commit and are not reused after rollback
- Storage failures surface as AllocationFailureError
"""

import inspect
from unittest.mock import patch

import pytest
from sqlalchemy.exc import DatabaseError, OperationalError

from work_kernel.db.engine import session_scope
from work_kernel.exceptions import AllocationFailureError
from work_kernel.services.sequence_service import SequenceCounter, SequenceService


class TestSequenceService:
    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("work") == 1

    def test_values_strictly_increase(self, session):
        sequences = SequenceService(session)
        values = [sequences.next_value("work") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_names_are_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value(SequenceService.WORK_NUMBER)
        sequences.next_value(SequenceService.WORK_NUMBER)
        assert sequences.next_value(SequenceService.ACTIVITY) == 1
        assert sequences.current_value(SequenceService.WORK_NUMBER) == 2

    def test_current_value_of_unused_sequence(self, session):
        assert SequenceService(session).current_value("never") is None

    def test_committed_values_are_not_reissued(self, session_factory):
        with session_scope(session_factory) as s:
            first = SequenceService(s).next_value("work")
        with session_scope(session_factory) as s:
            second = SequenceService(s).next_value("work")
        assert second > first

    def test_rolled_back_value_may_be_reissued(self, session_factory):
        with session_scope(session_factory) as s:
            SequenceService(s).next_value("work")

        s = session_factory()
        SequenceService(s).next_value("work")
        s.rollback()
        s.close()

        with session_scope(session_factory) as s:
            assert SequenceService(s).next_value("work") == 2

    def test_initialize_sequences(self, session):
        sequences = SequenceService(session)
        sequences.initialize_sequences()
        assert sequences.current_value(SequenceService.WORK_NUMBER) == 0
        assert sequences.current_value(SequenceService.ACTIVITY) == 0
        assert sequences.next_value(SequenceService.WORK_NUMBER) == 1
        # Idempotent
        sequences.initialize_sequences()
        assert session.query(SequenceCounter).count() == 2

    def test_storage_failure_is_allocation_failure(self, session):
        sequences = SequenceService(session)
        with patch.object(
            SequenceService,
            "_increment",
            side_effect=DatabaseError("UPDATE sequence_counters", {}, Exception("disk I/O error")),
        ):
            with pytest.raises(AllocationFailureError) as exc_info:
                sequences.next_value("work")
        assert exc_info.value.sequence_name == "work"
        assert exc_info.value.code == "ALLOCATION_FAILURE"

    def test_transient_lock_failure_propagates(self, session):
        sequences = SequenceService(session)
        with patch.object(
            SequenceService,
            "_increment",
            side_effect=OperationalError("SELECT", {}, Exception("database is locked")),
        ):
            with pytest.raises(OperationalError):
                sequences.next_value("work")

    def test_non_positive_value_is_allocation_failure(self, session):
        with patch.object(SequenceService, "_increment", return_value=0):
            with pytest.raises(AllocationFailureError):
                SequenceService(session).next_value("work")

    def test_uses_locked_counter_row(self):
        source = inspect.getsource(SequenceService._locked_counter)
        assert "with_for_update()" in source
