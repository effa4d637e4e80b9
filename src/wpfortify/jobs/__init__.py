"""Job control, transient job state and result history."""

from __future__ import annotations

from wpfortify.jobs.history import HistoryRecord, ResultStore
from wpfortify.jobs.service import JobService, PollResult, resolve_components
from wpfortify.jobs.state_store import FileStateStore, MemoryStateStore, StateStore

__all__ = [
    "FileStateStore",
    "HistoryRecord",
    "JobService",
    "MemoryStateStore",
    "PollResult",
    "ResultStore",
    "StateStore",
    "resolve_components",
]
