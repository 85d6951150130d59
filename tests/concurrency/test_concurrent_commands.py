"""
Concurrent command tests.

Threads share one session factory and race through a Barrier.  Against
SQLite the database lock serializes writers; against PostgreSQL
(DATABASE_URL) row locks and version checks do.  Either way the outcome
must be the same as some serial order:

- Work numbers are unique and contiguous
- A work is promoted exactly once however its activities interleave
- Exactly one of several concurrent reviews closes a work
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from work_kernel.domain.dtos import ActivityStatusChange, ReviewWork
from work_kernel.exceptions import IllegalTransitionError
from work_kernel.selectors.work_selector import WorkSelector
from work_kernel.services.workflow_orchestrator import WorkflowOrchestrator

pytestmark = pytest.mark.slow_locks

NUM_THREADS = 10


@pytest.fixture
def patient_orchestrator(session_factory, deterministic_clock, registry):
    """Enough retries for every thread to lose a version race once per rival."""
    return WorkflowOrchestrator(
        session_factory,
        clock=deterministic_clock,
        registry=registry,
        max_retries=NUM_THREADS * 2,
        retry_backoff=0.005,
    )


def _race(fn, args):
    """Run ``fn`` once per item of ``args``, all threads released together."""
    barrier = Barrier(len(args), timeout=30)

    def run(arg):
        barrier.wait()
        try:
            return fn(arg), None
        except Exception as exc:
            return None, exc

    with ThreadPoolExecutor(max_workers=len(args)) as pool:
        return list(pool.map(run, args))


def _view(session_factory, work_id):
    with session_factory() as s:
        return WorkSelector(s).get_work_by_id(work_id, include_history=True)


def test_work_numbers_unique_and_contiguous(
    patient_orchestrator, make_new_work, session_factory,
):
    per_thread = 5

    def create_batch(i):
        return [
            patient_orchestrator.create_work(make_new_work(title=f"T{i}-{n}"))
            for n in range(per_thread)
        ]

    results = _race(create_batch, list(range(NUM_THREADS)))

    assert [exc for _, exc in results if exc] == []
    work_ids = [work_id for batch, _ in results for work_id in batch]
    numbers = sorted(_view(session_factory, w).work_number for w in work_ids)
    assert numbers == list(range(1, NUM_THREADS * per_thread + 1))


def test_concurrent_completions_promote_once(
    patient_orchestrator, make_new_work, make_new_activity, session_factory,
):
    work_id = patient_orchestrator.create_work(make_new_work())
    activity_ids = [
        patient_orchestrator.create_activity(make_new_activity(work_id))
        for _ in range(NUM_THREADS)
    ]

    results = _race(
        lambda activity_id: patient_orchestrator.set_activity_status(
            ActivityStatusChange(work_id, activity_id, "Completed")
        ),
        activity_ids,
    )

    assert [exc for _, exc in results if exc] == []
    view = _view(session_factory, work_id)
    assert view.current_status == "Review"
    assert [e.to_state for e in view.history] == ["Review", "ScheduledJob", "New"]
    for newer, older in zip(view.history, view.history[1:]):
        assert newer.from_state == older.to_state


def test_concurrent_first_activities_schedule_once(
    patient_orchestrator, make_new_work, make_new_activity, session_factory,
):
    work_id = patient_orchestrator.create_work(make_new_work())

    results = _race(
        lambda i: patient_orchestrator.create_activity(
            make_new_activity(work_id, title=f"Step {i}")
        ),
        list(range(NUM_THREADS)),
    )

    assert [exc for _, exc in results if exc] == []
    view = _view(session_factory, work_id)
    assert len(view.activity_ids) == NUM_THREADS
    assert [e.to_state for e in view.history] == ["ScheduledJob", "New"]


def test_concurrent_reviews_close_once(
    patient_orchestrator, make_new_work, make_new_activity, session_factory,
):
    work_id = patient_orchestrator.create_work(make_new_work())
    activity_id = patient_orchestrator.create_activity(make_new_activity(work_id))
    patient_orchestrator.set_activity_status(
        ActivityStatusChange(work_id, activity_id, "Completed")
    )

    results = _race(
        lambda i: patient_orchestrator.review_work(
            ReviewWork(work_id, f"review {i}"), actor=f"reviewer-{i}"
        ),
        list(range(NUM_THREADS)),
    )

    errors = [exc for _, exc in results if exc]
    assert len(errors) == NUM_THREADS - 1
    assert all(isinstance(exc, IllegalTransitionError) for exc in errors)
    view = _view(session_factory, work_id)
    assert view.current_status == "Closed"
    assert [e.to_state for e in view.history].count("Closed") == 1
