"""Task runners that execute scheduled sync jobs.

The queue manager hands jobs to a TaskRunner and the runner calls back into
the queue manager, one item at a time, to process them. LocalTaskRunner is
an in-process runner: a priority heap drained either on demand or by a
polling loop that shuts down gracefully on SIGTERM/SIGINT.
"""

import heapq
import itertools
import logging
import signal
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from time import sleep
from typing import Callable

from schemas.sync_state import SyncJob

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 10


class TaskRunner(ABC):
    """Abstract job scheduler keyed by item id."""

    @abstractmethod
    def schedule(self, item_id: int, priority: int = DEFAULT_PRIORITY) -> bool:
        """Schedule a job for the item.

        Returns:
            True if scheduled, False if a job for the item is already scheduled
        """
        pass

    @abstractmethod
    def unschedule(self, item_id: int) -> bool:
        """Remove the item's scheduled job, returning whether there was one."""
        pass

    @abstractmethod
    def is_scheduled(self, item_id: int) -> bool:
        pass


class LocalTaskRunner(TaskRunner):
    """In-process task runner ordered by priority, then by enqueue order.

    Lower priority numbers run first.

    Attributes:
        handler: Callable invoked with the item id of each job run
        poll_interval: Seconds between polls when no jobs are scheduled
        shutdown_requested: Flag for graceful shutdown
    """

    def __init__(
        self,
        handler: Callable[[int], None] | None = None,
        poll_interval: int = 5,
    ):
        self.handler = handler
        self.poll_interval = poll_interval
        self.shutdown_requested = False
        self._heap: list[tuple[int, int, int]] = []
        self._jobs: dict[int, SyncJob] = {}
        self._entries: dict[int, int] = {}
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._jobs)

    def schedule(self, item_id: int, priority: int = DEFAULT_PRIORITY) -> bool:
        if item_id in self._jobs:
            return False

        self._jobs[item_id] = SyncJob(
            item_id=item_id,
            priority=priority,
            enqueued_at=datetime.now(timezone.utc),
        )
        entry = next(self._counter)
        self._entries[item_id] = entry
        heapq.heappush(self._heap, (priority, entry, item_id))
        logger.debug(f"Scheduled item {item_id} at priority {priority}")
        return True

    def unschedule(self, item_id: int) -> bool:
        # Heap entries of unscheduled jobs are skipped when popped
        self._entries.pop(item_id, None)
        return self._jobs.pop(item_id, None) is not None

    def is_scheduled(self, item_id: int) -> bool:
        return item_id in self._jobs

    def pending(self) -> list[SyncJob]:
        """Scheduled jobs in the order they will run."""
        return sorted(
            self._jobs.values(), key=lambda job: (job.priority, job.enqueued_at)
        )

    def _next_job(self) -> SyncJob | None:
        while self._heap:
            _, entry, item_id = heapq.heappop(self._heap)
            if self._entries.get(item_id) == entry:
                del self._entries[item_id]
                return self._jobs.pop(item_id)
        return None

    def run_once(self) -> bool:
        """Run the next scheduled job if there is one.

        Returns:
            True if a job was run (successfully or not), False if none were scheduled
        """
        job = self._next_job()
        if job is None:
            return False

        if self.handler is None:
            raise RuntimeError("LocalTaskRunner has no handler")

        try:
            self.handler(job.item_id)
        except Exception as e:
            logger.error(f"Error running job for item {job.item_id}: {str(e)}")
        return True

    def run_pending(self) -> int:
        """Run every scheduled job, including jobs scheduled while draining.

        Returns:
            Number of jobs run
        """
        count = 0
        while not self.shutdown_requested and self.run_once():
            count += 1
        return count

    def _handle_shutdown(self, signum, frame) -> None:
        """Handle shutdown signals (SIGTERM, SIGINT) gracefully.

        Sets a flag to request shutdown after the current job completes.
        """
        logger.info("Shutdown signal received, will exit after current job")
        self.shutdown_requested = True

    def run_forever(self, on_idle: Callable[[], object] | None = None) -> None:
        """Continuously run jobs with polling and graceful shutdown.

        Args:
            on_idle: Called when nothing is scheduled, e.g. to pick up jobs
                     persisted by other processes. The runner sleeps unless
                     it scheduled an item that the previous call did not.
        """
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

        previous: set[int] = set()
        while not self.shutdown_requested:
            if self.run_once():
                continue
            if on_idle is not None:
                on_idle()
            scheduled = set(self._jobs)
            # Items rescheduled on every idle tick would otherwise spin
            if not scheduled - previous:
                sleep(self.poll_interval)
            previous = scheduled

        logger.info("Task runner exiting gracefully")
