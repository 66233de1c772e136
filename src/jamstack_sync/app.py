"""Application context: builds every sync component once and wires them together."""

import logging

from jamstack_sync.clients import GitHubClient
from jamstack_sync.content import ContentSource
from jamstack_sync.media import MediaProcessor
from jamstack_sync.pipeline import (
    LocalTaskRunner,
    LockManager,
    QueueManager,
    StateStore,
    SyncRunner,
    TaskRunner,
)
from jamstack_sync.transformers import FormatTransformer, HugoTransformer
from schemas.settings import SyncSettings

logger = logging.getLogger(__name__)

LOCKS_DIRNAME = "locks"


class Application:
    """Holds the configured components for one process.

    Any component may be passed in to replace the default, which is how
    tests substitute mocks.

    Example:
        with Application(settings, JsonContentSource(Path("content"))) as app:
            app.queue.enqueue(42)
            app.task_runner.run_pending()
    """

    def __init__(
        self,
        settings: SyncSettings,
        content_source: ContentSource,
        client: GitHubClient | None = None,
        media: MediaProcessor | None = None,
        transformer: FormatTransformer | None = None,
        task_runner: TaskRunner | None = None,
    ):
        self.settings = settings
        self.content_source = content_source
        self.client = client or GitHubClient(settings)
        self.media = media or MediaProcessor(settings, content_source)
        self.transformer = transformer or HugoTransformer()
        self.state_store = StateStore(settings.state_dir)
        self.locks = LockManager(settings.state_dir / LOCKS_DIRNAME)
        self.task_runner = task_runner or LocalTaskRunner()

        self.sync_runner = SyncRunner(
            settings,
            content_source,
            self.client,
            self.media,
            self.transformer,
            self.state_store,
        )
        self.queue = QueueManager(
            settings,
            content_source,
            self.sync_runner,
            self.task_runner,
            self.state_store,
            self.locks,
        )

        if isinstance(self.task_runner, LocalTaskRunner) and self.task_runner.handler is None:
            self.task_runner.handler = self.queue.process

    def close(self) -> None:
        self.client.close()
        self.media.close()

    def __enter__(self) -> "Application":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
