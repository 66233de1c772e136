"""Sync pipeline: state, locks, scheduling and the sync/delete runner."""

from .locks import LOCK_TTL, LockManager
from .orchestrator import SyncRunner
from .queue_manager import HIGH_PRIORITY, MAX_RETRIES, QueueManager
from .runner import DEFAULT_PRIORITY, LocalTaskRunner, TaskRunner
from .state import StateStore

__all__ = [
    "DEFAULT_PRIORITY",
    "HIGH_PRIORITY",
    "LOCK_TTL",
    "LocalTaskRunner",
    "LockManager",
    "MAX_RETRIES",
    "QueueManager",
    "StateStore",
    "SyncRunner",
    "TaskRunner",
]
