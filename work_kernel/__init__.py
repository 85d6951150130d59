"""
Work Kernel - work/activity tracking core.

A transactional workflow engine for facility maintenance work with:
- Concurrency-safe work-number allocation
- Pluggable per-work-type workflows and validators
- Aggregate promotion of works from their activities' states
- Append-only, linearizable status history
"""

__version__ = "0.1.0"
