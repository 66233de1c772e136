"""Transient results produced while syncing an item."""

from pathlib import Path

from pydantic import BaseModel

from .remote import CommitResult


class MediaAsset(BaseModel):
    """An image downloaded and re-encoded for one sync run.

    Attributes:
        original_url: URL the image was fetched from
        local_temp_path: Downloaded file inside the item's temp scope
        encoded_variants: Encoded bytes keyed by format name, in preference order
        final_relative_path: Site-relative path used in the rendered document
        files: Repository path -> bytes to commit for this image
    """

    original_url: str
    local_temp_path: Path
    encoded_variants: dict[str, bytes] = {}
    final_relative_path: str
    files: dict[str, bytes] = {}


class MediaResult(BaseModel):
    """Files and URL remapping produced by the media processor for one item."""

    files: dict[str, bytes] = {}
    mapping: dict[str, str] = {}
    featured_path: str | None = None


class RenderedDocument(BaseModel):
    """A document rendered by a format transformer."""

    text: str
    path: str


class SyncOutcome(BaseModel):
    """Successful sync of one item."""

    item_id: int
    file_path: str
    commit: CommitResult
    commit_reference: str
    files: int = 0
    payload_bytes: int = 0


class DeletionOutcome(BaseModel):
    """Result of removing an item's files from the repository.

    Attributes:
        item_id: Content item identifier
        deleted: Paths confirmed deleted (document first)
        failed: Image paths whose deletion failed
    """

    item_id: int
    deleted: list[str] = []
    failed: list[str] = []


class RetrySummary(BaseModel):
    retried: int = 0
    skipped: int = 0


class BulkSummary(BaseModel):
    total: int = 0
    enqueued: int = 0
    skipped: int = 0
