"""Sync runner: publishes one item to the repository, or removes it.

A sync run fetches the item, prepares its images, renders the document and
lands everything in a single commit. Temporary media files are removed
whatever the outcome. A deletion removes the document and then, best
effort, every image stored for the item.
"""

import logging

from jamstack_sync.clients import ClientError, GitHubClient
from jamstack_sync.content import ContentSource
from jamstack_sync.exceptions import (
    ItemNotFound,
    NotPublishable,
    PathUnresolvable,
    PayloadTooLarge,
)
from jamstack_sync.media import MediaProcessor, image_directory
from jamstack_sync.transformers import FormatTransformer
from schemas.content_item import ContentItem
from schemas.outcomes import DeletionOutcome, SyncOutcome
from schemas.settings import SyncSettings

from .state import StateStore

logger = logging.getLogger(__name__)


class SyncRunner:
    """Runs the sync and delete pipelines for single items.

    Example:
        runner = SyncRunner(settings, source, client, media, HugoTransformer(), store)
        outcome = runner.run(42)
        print(outcome.commit_reference)
    """

    def __init__(
        self,
        settings: SyncSettings,
        content_source: ContentSource,
        client: GitHubClient,
        media: MediaProcessor,
        transformer: FormatTransformer,
        state_store: StateStore,
    ):
        self.settings = settings
        self.content_source = content_source
        self.client = client
        self.media = media
        self.transformer = transformer
        self.state_store = state_store

    def run(self, item_id: int) -> SyncOutcome:
        """Publish an item: images and document in one atomic commit.

        Args:
            item_id: Content item identifier

        Returns:
            SyncOutcome with the document path and commit details

        Raises:
            ItemNotFound: If the content source has no such item
            NotPublishable: If the item is not published (nothing is sent remotely)
            PayloadTooLarge: If the payload exceeds the soft limit and enforcement is on
            ClientError: If the commit fails
        """
        logger.info(f"Sync started for item {item_id}")

        item = self.content_source.get_item(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        if not item.is_published:
            raise NotPublishable(item_id, item.status.value)

        try:
            featured = self.media.process_featured_image(item)
            content = self.media.process_content_images(item)

            document = self.transformer.render(
                item,
                image_mapping=content.mapping,
                featured_image_path=featured.featured_path,
            )

            payload: dict[str, bytes] = {document.path: document.text.encode("utf-8")}
            payload.update(featured.files)
            payload.update(content.files)
            payload_bytes = self._check_payload(item_id, payload)

            logger.info(
                f"Committing {len(payload)} files for item {item_id} "
                f"({payload_bytes} bytes)"
            )
            commit = self.client.create_atomic_commit(payload, f"Update: {item.title}")
        finally:
            self.media.cleanup(item_id)

        reference = self.client.commit_url(commit.commit_sha)

        state = self.state_store.get(item_id)
        state.cached_file_path = document.path
        state.last_commit_reference = reference
        self.state_store.save(state)

        logger.info(f"Sync completed for item {item_id}: {reference}")
        return SyncOutcome(
            item_id=item_id,
            file_path=document.path,
            commit=commit,
            commit_reference=reference,
            files=len(payload),
            payload_bytes=payload_bytes,
        )

    def delete(self, item_id: int) -> DeletionOutcome:
        """Remove an item's document and images from the repository.

        Works for items that no longer exist in the content source as long as
        their path was cached by an earlier sync.

        Raises:
            PathUnresolvable: If there is neither a cached path nor an item
            ClientError: If deleting the document fails
        """
        logger.info(f"Deletion started for item {item_id}")

        item = self.content_source.get_item(item_id)
        file_path = self._resolve_path(item_id, item)
        label = item.title if item is not None else f"Post #{item_id}"

        self.client.delete_file(file_path, f"Delete: {label}")
        outcome = DeletionOutcome(item_id=item_id, deleted=[file_path])
        logger.info(f"Deleted {file_path}")

        images_dir = image_directory(item_id)
        try:
            entries = self.client.list_directory(images_dir)
        except ClientError as e:
            logger.warning(f"Could not list image directory {images_dir}: {e}")
            entries = []

        if not entries:
            logger.info(f"No images found to delete in {images_dir}")

        for entry in entries:
            if entry.type != "file":
                continue
            try:
                self.client.delete_file(entry.path, f"Delete image: {entry.name}")
            except ClientError as e:
                logger.warning(f"Failed to delete image {entry.path}: {e}")
                outcome.failed.append(entry.path)
                continue
            outcome.deleted.append(entry.path)

        logger.info(
            f"Deletion completed for item {item_id}: {len(outcome.deleted)} files "
            f"deleted, {len(outcome.failed)} failed"
        )
        return outcome

    def _resolve_path(self, item_id: int, item: ContentItem | None) -> str:
        state = self.state_store.get(item_id)
        if state.cached_file_path:
            logger.debug(f"Using cached file path {state.cached_file_path}")
            return state.cached_file_path

        if item is None:
            raise PathUnresolvable(item_id)

        path = self.transformer.get_file_path(item)
        state.cached_file_path = path
        self.state_store.save(state)
        logger.info(f"Generated and cached file path {path} for item {item_id}")
        return path

    def _check_payload(self, item_id: int, payload: dict[str, bytes]) -> int:
        size = sum(len(content) for content in payload.values())
        limit = self.settings.payload_soft_limit
        if size > limit:
            if self.settings.enforce_payload_limit:
                raise PayloadTooLarge(size, limit)
            logger.warning(
                f"Commit payload for item {item_id} is {size / 1048576:.2f} MiB, "
                f"over the {limit / 1048576:.2f} MiB soft limit"
            )
        return size
