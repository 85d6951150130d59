"""Services for the work kernel (write side)."""

from work_kernel.services.catalog_service import CatalogService
from work_kernel.services.history_service import HistoryService
from work_kernel.services.sequence_service import SequenceCounter, SequenceService
from work_kernel.services.work_store import WorkStore, build_field_values
from work_kernel.services.workflow_orchestrator import WorkflowOrchestrator

__all__ = [
    "CatalogService",
    "HistoryService",
    "SequenceCounter",
    "SequenceService",
    "WorkStore",
    "WorkflowOrchestrator",
    "build_field_values",
]
