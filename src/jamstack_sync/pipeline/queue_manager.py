"""Queue manager: the sync state machine.

    unknown/cancelled/success/error --enqueue--> pending
    pending --process--> processing --ok--> success
                                    --fail--> error
    any --cancel--> cancelled

Items that are pending or processing reject further enqueues, and an item
whose retry count reached MAX_RETRIES is not enqueued again until it
syncs successfully or is cancelled.
"""

import logging
from collections import Counter
from datetime import datetime, timezone

from jamstack_sync.content import ContentSource
from schemas.outcomes import BulkSummary, RetrySummary
from schemas.settings import SyncSettings
from schemas.sync_state import SyncState, SyncStatus

from .locks import LockManager
from .orchestrator import SyncRunner
from .runner import DEFAULT_PRIORITY, TaskRunner
from .state import StateStore

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
HIGH_PRIORITY = 5


def _now() -> datetime:
    return datetime.now(timezone.utc)


class QueueManager:
    """Schedules item syncs and records their outcome.

    Attributes:
        settings: Sync settings (enabled content types)
        content_source: Source of content items
        sync_runner: Runs the sync pipeline for one item
        task_runner: Scheduler that calls process() for each job
        state_store: Per-item sync state persistence
        locks: Per-item processing locks
    """

    def __init__(
        self,
        settings: SyncSettings,
        content_source: ContentSource,
        sync_runner: SyncRunner,
        task_runner: TaskRunner,
        state_store: StateStore,
        locks: LockManager,
    ):
        self.settings = settings
        self.content_source = content_source
        self.sync_runner = sync_runner
        self.task_runner = task_runner
        self.state_store = state_store
        self.locks = locks

    def _transition(self, state: SyncState, status: SyncStatus) -> None:
        state.status = status
        state.last_transition_at = _now()
        self.state_store.save(state)

    def enqueue(self, item_id: int, priority: int = DEFAULT_PRIORITY) -> bool:
        """Schedule a sync for an item.

        Enqueueing an item in the error state counts as a retry.

        Args:
            item_id: Content item identifier
            priority: Runner priority; lower runs first

        Returns:
            True if a job was scheduled, False if the enqueue was a no-op
        """
        if self.content_source.get_item(item_id) is None:
            logger.warning(f"Cannot enqueue item {item_id}: item not found")
            return False

        state = self.state_store.get(item_id)

        if state.status.in_flight:
            logger.info(f"Item {item_id} already {state.status.value}, skipping enqueue")
            return False

        if state.retry_count >= MAX_RETRIES:
            logger.warning(
                f"Item {item_id} reached the retry limit ({MAX_RETRIES}), not enqueued"
            )
            return False

        if state.status is SyncStatus.ERROR:
            state.retry_count += 1
            logger.info(f"Retrying item {item_id} (attempt {state.retry_count})")
        else:
            state.retry_count = 0

        if self.task_runner.is_scheduled(item_id):
            logger.info(f"Item {item_id} already scheduled, skipping enqueue")
            return False

        self._transition(state, SyncStatus.PENDING)
        self.task_runner.schedule(item_id, priority)
        logger.info(f"Enqueued item {item_id} at priority {priority}")
        return True

    def cancel(self, item_id: int) -> None:
        """Drop an item's scheduled job and mark it cancelled.

        A run already in progress is not interrupted and keeps its lock;
        only an expired lock is cleared.
        """
        self.task_runner.unschedule(item_id)
        self.locks.release(item_id)

        state = self.state_store.get(item_id)
        state.retry_count = 0
        self._transition(state, SyncStatus.CANCELLED)
        logger.info(f"Cancelled sync for item {item_id}")

    def process(self, item_id: int) -> None:
        """Run the sync for an item under its processing lock.

        Sync failures are recorded as status error and never raised. A
        pending item that no longer exists in the content source is cancelled.
        """
        if self.content_source.get_item(item_id) is None:
            logger.error(f"Cannot process item {item_id}: item not found")
            state = self.state_store.get(item_id)
            if state.status is SyncStatus.PENDING:
                state.retry_count = 0
                self._transition(state, SyncStatus.CANCELLED)
            return

        token = self.locks.acquire(item_id)
        if token is None:
            logger.info(f"Item {item_id} is already being processed, skipping")
            return

        try:
            state = self.state_store.get(item_id)
            if state.retry_count >= MAX_RETRIES:
                logger.error(
                    f"Item {item_id} exceeded {MAX_RETRIES} retries, marking as error"
                )
                self._transition(state, SyncStatus.ERROR)
                return

            self._transition(state, SyncStatus.PROCESSING)

            try:
                self.sync_runner.run(item_id)
            except Exception as e:
                logger.error(f"Sync failed for item {item_id}: {e}")
                self._transition(self.state_store.get(item_id), SyncStatus.ERROR)
                return

            # The runner records the path and commit, so reload before updating
            state = self.state_store.get(item_id)
            state.retry_count = 0
            state.last_synced_at = _now()
            self._transition(state, SyncStatus.SUCCESS)
            logger.info(f"Item {item_id} synced successfully")
        finally:
            self.locks.release(item_id, token)

    def get_status(self, item_id: int | None = None) -> SyncStatus | dict[int, SyncStatus]:
        """Return one item's status, or every known item's status by id."""
        if item_id is not None:
            return self.state_store.get(item_id).status
        return {state.item_id: state.status for state in self.state_store.all()}

    def retry_failed(self) -> RetrySummary:
        """Re-enqueue every errored item that still has retries left."""
        summary = RetrySummary()
        for state in self.state_store.all():
            if state.status is not SyncStatus.ERROR:
                continue
            if state.retry_count >= MAX_RETRIES:
                summary.skipped += 1
                continue
            if self.enqueue(state.item_id):
                summary.retried += 1
            else:
                summary.skipped += 1

        logger.info(f"Retried {summary.retried} failed items, skipped {summary.skipped}")
        return summary

    def bulk_enqueue(self) -> BulkSummary:
        """Enqueue every published item of the enabled content types."""
        items = self.content_source.list_items(self.settings.enabled_content_types)
        summary = BulkSummary()
        for item in items:
            if not item.is_published:
                continue
            summary.total += 1
            if self.enqueue(item.id):
                summary.enqueued += 1
            else:
                summary.skipped += 1

        logger.info(
            f"Bulk sync: {summary.enqueued} of {summary.total} items enqueued, "
            f"{summary.skipped} skipped"
        )
        return summary

    def get_queue_stats(self) -> dict[str, int]:
        """Count items per status, plus a total."""
        counts = Counter(state.status for state in self.state_store.all())
        stats = {status.value: counts.get(status, 0) for status in SyncStatus}
        stats["total"] = sum(counts.values())
        return stats

    def recover_pending(self) -> int:
        """Reschedule jobs persisted as pending or orphaned while processing.

        Jobs are held in memory by the local runner, so a pending item left by
        another process (or an interrupted run) has to be picked up again from
        its persisted state. Processing items without a live lock are returned
        to pending first.

        Returns:
            Number of jobs scheduled
        """
        recovered = 0
        for state in self.state_store.all():
            item_id = state.item_id
            if state.status is SyncStatus.PROCESSING:
                if self.locks.is_locked(item_id):
                    continue
                logger.warning(f"Recovering orphaned job for item {item_id}")
                self._transition(state, SyncStatus.PENDING)
            elif state.status is not SyncStatus.PENDING:
                continue

            if self.task_runner.schedule(item_id, DEFAULT_PRIORITY):
                recovered += 1

        if recovered:
            logger.info(f"Recovered {recovered} pending jobs")
        return recovered
