"""Selectors for the work kernel (read side)."""

from work_kernel.selectors.work_selector import WorkSelector

__all__ = [
    "WorkSelector",
]
