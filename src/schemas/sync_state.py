"""Per-item synchronization state.

One SyncState exists per content item. It is written only by the queue
manager and the sync runner, always while holding the item's processing
lock, and persisted as a small JSON document by the state store.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """Closed set of sync lifecycle states."""

    UNKNOWN = "unknown"
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def in_flight(self) -> bool:
        return self in (SyncStatus.PENDING, SyncStatus.PROCESSING)


class SyncState(BaseModel):
    """Sync bookkeeping attached to a content item.

    Attributes:
        item_id: Content item identifier
        status: Current lifecycle state
        last_transition_at: When status last changed
        last_synced_at: When the item last synced successfully
        retry_count: Number of retry enqueues since the last success
        cached_file_path: Last known destination path in the repository
        last_commit_reference: URL of the last commit, for observability
    """

    item_id: int
    status: SyncStatus = SyncStatus.UNKNOWN
    last_transition_at: datetime | None = None
    last_synced_at: datetime | None = None
    retry_count: int = Field(default=0, ge=0)
    cached_file_path: str | None = None
    last_commit_reference: str | None = None


class SyncJob(BaseModel):
    """A scheduled request to sync an item; held only by the task runner."""

    item_id: int
    priority: int = 10
    enqueued_at: datetime
