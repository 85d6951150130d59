"""
BaseService -- abstract base for the flush-only kernel services.

Responsibility:
    Common constructor and session contract for the services that write
    rows (sequence allocation, catalog, history, work store).  They receive
    a SQLAlchemy ``Session`` and use ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services.  Only ``WorkflowOrchestrator`` (and the catalog
    bridge in ``work_config``) own transaction boundaries.

Failure modes:
    - A subclass that commits on its own breaks the atomicity of a command:
      state, history and sequence increment would no longer land together.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from work_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only services.

    Contract:
        Accepts a ``Session`` from the caller and persists with
        ``session.flush()`` inside the caller's transaction.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT host read-only queries; those live in
          ``work_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
